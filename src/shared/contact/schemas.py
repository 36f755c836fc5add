"""Pydantic schemas for contact API."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
from enum import Enum

from src.shared.contact.input_validation import validate_name, validate_phone, validate_subject


HONEYPOT_FIELDS = ("website", "url", "link")


class MessageStatus(str, Enum):
    """Contact message lifecycle."""
    NEW = "new"
    READ = "read"
    REPLIED = "replied"
    CLOSED = "closed"


class MessagePriority(str, Enum):
    """Contact message priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class MessageSortField(str, Enum):
    """Columns the admin inbox can be ordered by, under their wire names."""
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"
    PRIORITY = "priority"
    STATUS = "status"
    NAME = "name"
    EMAIL = "email"
    SUBJECT = "subject"


class BulkAction(str, Enum):
    MARK_READ = "mark-read"
    MARK_CLOSED = "mark-closed"
    SET_PRIORITY = "set-priority"
    DELETE = "delete"


class ContactSubmission(BaseModel):
    """
    Contact form submission as it enters the pipeline.

    Wire names follow the public form (captchaToken, formStartTime, agreeToTerms).
    Decoy fields (website, url, link) are read before this model is built and never reach it.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    email: EmailStr
    phone: Optional[str] = None
    subject: str
    message: str
    captcha_token: str = Field(..., alias="captchaToken")
    form_start_time: int = Field(..., alias="formStartTime")
    agree_to_terms: Optional[bool] = Field(None, alias="agreeToTerms")

    @field_validator("name")
    @classmethod
    def validate_name_field(cls, v):
        return validate_name(v, "Name")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower()

    @field_validator("phone", mode="before")
    @classmethod
    def validate_phone_field(cls, v):
        if v is not None and not isinstance(v, str):
            v = str(v)
        return validate_phone(v)

    @field_validator("subject")
    @classmethod
    def validate_subject_field(cls, v):
        return validate_subject(v)


class ContactClient(BaseModel):
    """Connection metadata of the submitting client."""
    ip: str
    user_agent: Optional[str] = None
    accept_language: Optional[str] = None


class ContactCreatedData(BaseModel):
    id: str
    priority: MessagePriority


class ContactResponse(BaseModel):
    """Schema for contact form response."""
    success: bool
    message: str
    data: Optional[ContactCreatedData] = None


class ContactMessageResponse(BaseModel):
    """Stored contact message as returned to admins."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    phone: Optional[str] = None
    subject: str
    message: str
    status: MessageStatus
    priority: MessagePriority
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    fingerprint: Optional[str] = None
    submission_time: Optional[datetime] = None
    form_fill_time: Optional[int] = None
    verified: bool = False
    reply_message: Optional[str] = None
    replied_by: Optional[str] = None
    replied_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int


class ContactMessageList(BaseModel):
    messages: List[ContactMessageResponse]
    pagination: Pagination


class StatusUpdateRequest(BaseModel):
    status: MessageStatus


class PriorityUpdateRequest(BaseModel):
    priority: MessagePriority


class BulkUpdateRequest(BaseModel):
    """
    Bulk inbox action.

    `action` is checked against BulkAction by the route; unknown actions are a 400.
    """
    message_ids: Optional[List[str]] = Field(None, alias="messageIds")
    action: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True)


class ContactMessageSummary(BaseModel):
    """Short form of a message for the stats dashboard."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    subject: str
    status: MessageStatus
    priority: MessagePriority
    created_at: datetime


class ReplyRequest(BaseModel):
    """Admin reply to a contact message."""
    reply_message: str = Field(..., alias="replyMessage", min_length=1, max_length=5000)
    replied_by: str = Field("admin", alias="repliedBy", max_length=200)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("reply_message")
    @classmethod
    def validate_reply(cls, v):
        if not v.strip():
            raise ValueError("Reply message is required")
        return v.strip()


def extract_honeypot_fields(body: Dict[str, Any]) -> Dict[str, Any]:
    """Pick the decoy fields out of a raw request body."""
    return {name: body.get(name) for name in HONEYPOT_FIELDS if name in body}
