"""Admin routes for reading and answering contact messages."""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy import extract, func, or_
from sqlalchemy.orm import Session

from src.shared.admin.dependencies import verify_admin
from src.shared.common.database import get_db
from src.shared.contact.database import ContactMessage
from src.shared.contact.email_utils import send_reply_email
from src.shared.contact.schemas import (
    BulkAction,
    BulkUpdateRequest,
    ContactMessageList,
    ContactMessageResponse,
    ContactMessageSummary,
    MessagePriority,
    MessageSortField,
    MessageStatus,
    Pagination,
    PriorityUpdateRequest,
    ReplyRequest,
    StatusUpdateRequest,
)
from src.shared.settings.settings_service import SettingsService, get_settings_service

router = APIRouter(prefix="/api/admin/messages", tags=["admin"])

SORT_COLUMNS = {
    MessageSortField.CREATED_AT: ContactMessage.created_at,
    MessageSortField.UPDATED_AT: ContactMessage.updated_at,
    MessageSortField.PRIORITY: ContactMessage.priority,
    MessageSortField.STATUS: ContactMessage.status,
    MessageSortField.NAME: ContactMessage.name,
    MessageSortField.EMAIL: ContactMessage.email,
    MessageSortField.SUBJECT: ContactMessage.subject,
}


def _get_message_or_404(db: Session, message_id: str) -> ContactMessage:
    message = db.query(ContactMessage).filter(ContactMessage.id == message_id).first()
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contact message not found"
        )
    return message


def _as_naive_utc(moment: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


@router.get("", response_model=ContactMessageList)
async def list_contact_messages(
    status_filter: Optional[MessageStatus] = Query(None, alias="status"),
    priority: Optional[MessagePriority] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    sort_by: MessageSortField = Query(MessageSortField.CREATED_AT, alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
):
    """List contact messages, newest first unless another order is asked for, with optional filters."""
    query = db.query(ContactMessage)

    if status_filter:
        query = query.filter(ContactMessage.status == status_filter.value)
    if priority:
        query = query.filter(ContactMessage.priority == priority.value)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            ContactMessage.name.ilike(pattern),
            ContactMessage.email.ilike(pattern),
            ContactMessage.subject.ilike(pattern),
            ContactMessage.message.ilike(pattern),
        ))
    if start_date:
        query = query.filter(ContactMessage.created_at >= _as_naive_utc(start_date))
    if end_date:
        query = query.filter(ContactMessage.created_at <= _as_naive_utc(end_date))

    column = SORT_COLUMNS[sort_by]
    order = column.asc() if sort_order == "asc" else column.desc()

    total = query.count()
    messages = (
        query.order_by(order, ContactMessage.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return ContactMessageList(
        messages=[ContactMessageResponse.model_validate(m) for m in messages],
        pagination=Pagination(current=page, pages=math.ceil(total / limit), total=total, limit=limit),
    )


@router.get("/stats")
async def get_contact_stats(
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Inbox dashboard numbers: counts by status and priority, response rate and time, recent and monthly volume."""
    def count(*statuses: MessageStatus) -> int:
        query = db.query(ContactMessage)
        if statuses:
            query = query.filter(ContactMessage.status.in_([s.value for s in statuses]))
        return query.count()

    total = count()
    answered = count(MessageStatus.REPLIED, MessageStatus.CLOSED)
    response_rate = round(answered / total * 100, 1) if total else 0

    replied = (
        db.query(ContactMessage.created_at, ContactMessage.replied_at)
        .filter(ContactMessage.replied_at.isnot(None))
        .all()
    )
    if replied:
        total_seconds = sum((replied_at - created_at).total_seconds() for created_at, replied_at in replied)
        avg_response_hours = round(total_seconds / len(replied) / 3600, 1)
    else:
        avg_response_hours = 0

    by_priority = (
        db.query(ContactMessage.priority, func.count(ContactMessage.id))
        .group_by(ContactMessage.priority)
        .all()
    )

    year = extract("year", ContactMessage.created_at)
    month = extract("month", ContactMessage.created_at)
    by_month = (
        db.query(year, month, func.count(ContactMessage.id))
        .group_by(year, month)
        .order_by(year.desc(), month.desc())
        .limit(12)
        .all()
    )

    recent = db.query(ContactMessage).order_by(ContactMessage.created_at.desc()).limit(10).all()

    return {
        "success": True,
        "data": {
            "totalMessages": total,
            "newMessages": count(MessageStatus.NEW),
            "readMessages": count(MessageStatus.READ),
            "repliedMessages": count(MessageStatus.REPLIED),
            "closedMessages": count(MessageStatus.CLOSED),
            "responseRate": response_rate,
            "avgResponseHours": avg_response_hours,
            "messagesByPriority": {priority: n for priority, n in by_priority},
            "recentMessages": [
                ContactMessageSummary.model_validate(m).model_dump(mode="json") for m in recent
            ],
            "messagesByMonth": [
                {"year": int(y), "month": int(m), "count": n} for y, m, n in by_month
            ],
        },
    }


@router.get("/{message_id}", response_model=ContactMessageResponse)
async def get_contact_message(
    message_id: str,
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
):
    """Fetch one message. Opening a new message marks it as read."""
    message = _get_message_or_404(db, message_id)
    if message.status == MessageStatus.NEW.value:
        message.status = MessageStatus.READ.value
        db.commit()
        db.refresh(message)
    return ContactMessageResponse.model_validate(message)


@router.patch("/{message_id}/status", response_model=ContactMessageResponse)
async def update_message_status(
    message_id: str,
    update: StatusUpdateRequest,
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
):
    message = _get_message_or_404(db, message_id)
    message.status = update.status.value
    db.commit()
    db.refresh(message)
    return ContactMessageResponse.model_validate(message)


@router.patch("/{message_id}/priority", response_model=ContactMessageResponse)
async def update_message_priority(
    message_id: str,
    update: PriorityUpdateRequest,
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
):
    message = _get_message_or_404(db, message_id)
    message.priority = update.priority.value
    db.commit()
    db.refresh(message)
    return ContactMessageResponse.model_validate(message)


@router.delete("/{message_id}")
async def delete_contact_message(
    message_id: str,
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    message = _get_message_or_404(db, message_id)
    db.delete(message)
    db.commit()
    logging.info(f"Contact message {message_id} deleted")
    return {"success": True, "message": "Message deleted successfully"}


@router.patch("/bulk-update")
async def bulk_update_messages(
    request: BulkUpdateRequest,
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Apply one action to many messages.

    modifiedCount counts only messages that actually changed; deletedCount counts
    messages removed. Unknown ids are skipped.
    """
    if not request.message_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message IDs are required")

    try:
        action = BulkAction(request.action)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid action")

    query = db.query(ContactMessage).filter(ContactMessage.id.in_(request.message_ids))

    if action == BulkAction.DELETE:
        deleted = query.delete(synchronize_session=False)
        db.commit()
        logging.info(f"Bulk deleted {deleted} contact messages")
        return {"success": True, "message": "Messages deleted successfully", "data": {"deletedCount": deleted}}

    if action == BulkAction.SET_PRIORITY:
        try:
            priority = MessagePriority((request.data or {}).get("priority"))
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Valid priority is required")
        column, value = ContactMessage.priority, priority.value
        message = f"Priority set to {priority.value}"
    elif action == BulkAction.MARK_READ:
        column, value = ContactMessage.status, MessageStatus.READ.value
        message = "Messages marked as read"
    else:
        column, value = ContactMessage.status, MessageStatus.CLOSED.value
        message = "Messages marked as closed"

    modified = query.filter(column != value).update(
        {column: value, ContactMessage.updated_at: datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    logging.info(f"Bulk {action.value} changed {modified} contact messages")
    return {"success": True, "message": message, "data": {"modifiedCount": modified}}


@router.post("/{message_id}/reply", response_model=ContactMessageResponse)
async def reply_to_message(
    message_id: str,
    reply: ReplyRequest,
    background_tasks: BackgroundTasks,
    admin: str = Depends(verify_admin),
    db: Session = Depends(get_db),
    settings_service: SettingsService = Depends(get_settings_service),
):
    """
    Store a reply and email it to the sender.

    The reply is committed first; the email goes out in the background and a
    failed send is only logged.
    """
    message = _get_message_or_404(db, message_id)
    message.reply_message = reply.reply_message
    message.replied_by = reply.replied_by
    message.replied_at = datetime.utcnow()
    message.status = MessageStatus.REPLIED.value
    db.commit()
    db.refresh(message)

    logging.info(f"Contact message {message.id} replied by {reply.replied_by}")

    background_tasks.add_task(
        send_reply_email,
        message.email,
        message.name,
        reply.reply_message,
        message.subject,
        settings_service,
    )
    return ContactMessageResponse.model_validate(message)
