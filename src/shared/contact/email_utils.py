"""Email notifications for contact messages (staff alerts and replies to senders)."""

import html
import os
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Dict, Optional

from src.shared.settings.settings_service import SettingsService


def send_email(to_email: str, subject: str, text_body: str, html_body: Optional[str] = None,
               reply_to: Optional[str] = None, from_name: Optional[str] = None) -> bool:
    """
    Send an email using SMTP.

    Returns:
        True if email sent successfully, False otherwise
    """
    try:
        # Get email configuration from environment variables
        smtp_host = os.environ.get("SMTP_HOST", "smtp.gmail.com")
        smtp_port = int(os.environ.get("SMTP_PORT", "587"))
        smtp_user = os.environ.get("SMTP_USER")
        smtp_password = os.environ.get("SMTP_PASSWORD")

        if not smtp_user or not smtp_password:
            logging.error("SMTP credentials not configured")
            return False

        msg = MIMEMultipart('alternative')
        msg['From'] = f"{from_name} <{smtp_user}>" if from_name else smtp_user
        msg['To'] = to_email
        msg['Subject'] = subject
        if reply_to:
            msg['Reply-To'] = reply_to

        msg.attach(MIMEText(text_body, 'plain'))
        if html_body:
            msg.attach(MIMEText(html_body, 'html'))

        with smtplib.SMTP(smtp_host, smtp_port, timeout=30) as server:
            server.starttls()  # Enable encryption
            server.login(smtp_user, smtp_password)
            server.send_message(msg)

        logging.info(f"Email sent successfully to {to_email}")
        return True

    except Exception as e:
        logging.error(f"Failed to send email to {to_email}: {str(e)}", exc_info=True)
        return False


def _sender_name(settings_service: SettingsService, fallback: str) -> str:
    return settings_service.get_value("email", "fromName") or fallback

def notify_new_contact_message(message: Dict[str, Any], settings_service: SettingsService) -> bool:
    """
    Alert staff about a newly stored contact message.

    Runs as a background task after the message is committed. Failures are logged
    and never touch the stored message.
    """
    try:
        notifications = settings_service.get_category("notifications")
        if not notifications.get("enableEmailNotifications", True) or not notifications.get("notifyOnContactMessage", True):
            logging.info(f"Contact notification disabled in settings, skipping message {message['id']}")
            return False

        general = settings_service.get_category("general")
        recipient = os.environ.get("SUPPORT_EMAIL") or general.get("contactEmail")
        if not recipient:
            logging.error("No recipient configured for contact notifications")
            return False

        site_name = general.get("siteName", "Contact Form")
        subject = f"[{site_name} Contact] {message['priority'].upper()}: {message['subject']}"
        text_body = f"""
New contact form submission:

Name: {message['name']}
Email: {message['email']}
Phone: {message.get('phone') or 'N/A'}
Subject: {message['subject']}
Priority: {message['priority']}

Message:
{message['message']}

---
Message ID: {message['id']}
Reply directly to this email to respond to {message['name']} ({message['email']}).
"""
        html_body = f"""
<h2>New Contact Form Submission</h2>
<p><strong>From:</strong> {html.escape(message['name'])} ({html.escape(message['email'])})</p>
<p><strong>Phone:</strong> {html.escape(message.get('phone') or 'N/A')}</p>
<p><strong>Subject:</strong> {html.escape(message['subject'])}</p>
<p><strong>Priority:</strong> {html.escape(message['priority'])}</p>
<hr>
<p style="white-space: pre-wrap;">{html.escape(message['message'])}</p>
"""
        return send_email(recipient, subject, text_body, html_body, reply_to=message['email'],
                          from_name=_sender_name(settings_service, site_name))
    except Exception as e:
        logging.error(f"Failed to notify staff about contact message {message.get('id')}: {str(e)}", exc_info=True)
        return False


def send_reply_email(user_email: str, user_name: str, reply_message: str, original_subject: str,
                     settings_service: SettingsService) -> bool:
    """Email an admin's reply back to the person who used the contact form."""
    try:
        notifications = settings_service.get_category("notifications")
        if not notifications.get("sendReplyEmails", True):
            logging.info(f"Reply emails disabled in settings, not emailing {user_email}")
            return False

        general = settings_service.get_category("general")
        site_name = general.get("siteName", "")
        subject = f"Re: {original_subject} - {site_name}".rstrip(" -")

        text_body = f"""
Hello {user_name},

Thank you for contacting {site_name}. Here is our response to your message:

{reply_message}

If you have any additional questions, please don't hesitate to contact us again.

Best regards,
The {site_name} Team
"""
        html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6; color: #333;">
    <h2 style="color: #3b82f6;">Hello {html.escape(user_name)}!</h2>
    <p>Thank you for contacting {html.escape(site_name)}. Here is our response to your message:</p>
    <div style="background-color: #f8fafc; border-left: 4px solid #3b82f6; padding: 20px; margin: 30px 0;">
        <p style="margin: 0; white-space: pre-wrap;">{html.escape(reply_message)}</p>
    </div>
    <p>Email: {html.escape(general.get('contactEmail', ''))}<br>Phone: {html.escape(general.get('contactPhone', ''))}</p>
    <p>Best regards,<br><strong>The {html.escape(site_name)} Team</strong></p>
</body>
</html>
"""
        return send_email(user_email, subject, text_body, html_body,
                          reply_to=general.get("contactEmail"), from_name=_sender_name(settings_service, site_name))
    except Exception as e:
        logging.error(f"Failed to send reply email to {user_email}: {str(e)}", exc_info=True)
        return False
