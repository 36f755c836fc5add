"""Contact routes: public submission endpoint guarded by the abuse-defense pipeline."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.shared.common.config import ContactSecurityConfig
from src.shared.common.database import get_db
from src.shared.contact.captcha import CaptchaVerifier
from src.shared.contact.database import ContactMessage
from src.shared.contact.email_utils import notify_new_contact_message
from src.shared.contact.fingerprint import get_client_ip
from src.shared.contact.pipeline import ContactPipeline, PipelineState
from src.shared.contact.rate_limit import ContactRateLimiters
from src.shared.contact.schemas import ContactClient, ContactCreatedData, ContactResponse, MessageStatus
from src.shared.settings.settings_service import SettingsService, get_settings_service

router = APIRouter(prefix="/api/contact", tags=["contact"])

# Process-local limiter state, shared by every request this worker serves
_rate_limiters: Optional[ContactRateLimiters] = None
_captcha_verifier: Optional[CaptchaVerifier] = None


def get_contact_rate_limiters() -> ContactRateLimiters:
    global _rate_limiters
    if _rate_limiters is None:
        _rate_limiters = ContactRateLimiters()
    return _rate_limiters


def get_captcha_verifier() -> CaptchaVerifier:
    global _captcha_verifier
    if _captcha_verifier is None:
        _captcha_verifier = CaptchaVerifier(ContactSecurityConfig.from_env())
    return _captcha_verifier


def get_contact_pipeline(
    rate_limiters: ContactRateLimiters = Depends(get_contact_rate_limiters),
    captcha_verifier: CaptchaVerifier = Depends(get_captcha_verifier),
) -> ContactPipeline:
    return ContactPipeline(rate_limiters, captcha_verifier)


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def submit_contact_form(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    pipeline: ContactPipeline = Depends(get_contact_pipeline),
    settings_service: SettingsService = Depends(get_settings_service),
):
    """
    Submit a contact form message.

    The body runs through sanitization, honeypot, timing, content, rate limit and
    CAPTCHA gates before it is stored. Rejections are raised as ContactRejection and
    rendered by the app's exception handler. A filled honeypot gets the same success
    answer a person would see, without anything being stored.
    """
    try:
        body = await request.json()
    except ValueError:
        body = None

    client = ContactClient(
        ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        accept_language=request.headers.get("Accept-Language"),
    )
    result = await pipeline.evaluate(body, client)

    if result.absorbed:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"success": True, "message": "Message sent successfully"},
        )

    submission = result.submission
    contact_message = ContactMessage(
        name=submission.name,
        email=submission.email,
        phone=submission.phone,
        subject=submission.subject,
        message=submission.message,
        priority=result.priority.value,
        status=MessageStatus.NEW.value,
        ip=client.ip,
        user_agent=client.user_agent,
        fingerprint=result.fingerprint,
        submission_time=datetime.utcnow(),
        form_fill_time=result.form_fill_time,
        verified=result.captcha_method == "recaptcha",
    )

    try:
        db.add(contact_message)
        db.commit()
        db.refresh(contact_message)
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to store contact message from {client.ip}: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Failed to send message. Please try again."},
        )
    result.advance(PipelineState.PERSISTED)

    logging.info(f"Contact message received from {contact_message.email} (IP: {client.ip}, priority: {contact_message.priority})")

    # Staff alert runs after the response; its failure never touches the stored message
    background_tasks.add_task(
        notify_new_contact_message,
        {
            "id": contact_message.id,
            "name": contact_message.name,
            "email": contact_message.email,
            "phone": contact_message.phone,
            "subject": contact_message.subject,
            "message": contact_message.message,
            "priority": contact_message.priority,
        },
        settings_service,
    )

    return ContactResponse(
        success=True,
        message="Your message has been sent successfully. We will get back to you soon.",
        data=ContactCreatedData(id=contact_message.id, priority=result.priority),
    )
