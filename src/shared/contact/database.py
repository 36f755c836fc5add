"""Database models for contact messages."""

from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, Index
from datetime import datetime
import uuid

# Import Base from the shared database module to use the same declarative base
from src.shared.common.database import Base


class ContactMessage(Base):
    """Message submitted through the public contact form."""
    __tablename__ = "contact_messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, index=True)  # Stored lower-cased
    phone = Column(String, nullable=True)
    subject = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String, default="new", nullable=False, index=True)  # new, read, replied, closed
    priority = Column(String, default="medium", nullable=False, index=True)  # low, medium, high, urgent

    # Submission metadata
    ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    fingerprint = Column(String, nullable=True, index=True)  # sha256 of ip + user agent + accept-language
    submission_time = Column(DateTime, nullable=True)
    form_fill_time = Column(Integer, nullable=True)  # Milliseconds between form render and submit
    verified = Column(Boolean, default=False, nullable=False)  # True when a reCAPTCHA token was verified

    # Staff reply
    reply_message = Column(Text, nullable=True)
    replied_by = Column(String, nullable=True)
    replied_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_contact_messages_status_created', 'status', 'created_at'),
    )
