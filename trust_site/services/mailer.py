"""
Outbound email for the contact form.
"""
from email.message import EmailMessage
import logging
import re
import smtplib
from typing import Optional

from trust_site.config import settings
from trust_site.exceptions import InvalidArgument, UpstreamUnavailable

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
SMTP_TIMEOUT_SECONDS = 15


def build_contact_message(
    first_name: str,
    last_name: Optional[str],
    email: str,
    phone: Optional[str],
    message: str,
) -> EmailMessage:
    full_name = " ".join(part for part in (first_name, last_name) if part)

    msg = EmailMessage()
    msg["Subject"] = f"New Contact Form Submission from {first_name}"
    msg["From"] = settings.SMTP_USERNAME or settings.CONTACT_RECIPIENT
    msg["To"] = settings.CONTACT_RECIPIENT
    msg["Reply-To"] = email
    msg.set_content(
        f"Name: {full_name}\n"
        f"Email: {email}\n"
        f"Phone: {phone or '-'}\n"
        f"\n"
        f"Message:\n{message}\n"
    )
    return msg


def send_contact_message(
    first_name: str,
    email: str,
    message: str,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
) -> None:
    """
    Email a contact form submission to CONTACT_RECIPIENT.

    Raises:
        InvalidArgument: If a required field is missing or the email is malformed
        UpstreamUnavailable: If mail is not configured or delivery fails
    """
    first_name = (first_name or "").strip()
    email = (email or "").strip()
    message = (message or "").strip()
    if not first_name or not email or not message:
        raise InvalidArgument("Missing required fields")
    if not EMAIL_PATTERN.match(email):
        raise InvalidArgument("Invalid email address")

    if not settings.SMTP_HOST or not settings.CONTACT_RECIPIENT:
        logger.error("Contact form submitted but SMTP_HOST/CONTACT_RECIPIENT are not configured")
        raise UpstreamUnavailable("Email delivery is not configured")

    msg = build_contact_message(first_name, (last_name or "").strip(), email, (phone or "").strip(), message)

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
            smtp.starttls()
            if settings.SMTP_USERNAME:
                smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send contact email: {str(e)}", exc_info=True)
        raise UpstreamUnavailable("Email delivery failed")

    logger.info(f"Contact email sent for {email}")
