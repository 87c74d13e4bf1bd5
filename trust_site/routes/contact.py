"""
Contact form submission.
"""
from fastapi import APIRouter, Request

from trust_site.schemas import ContactRequest
from trust_site.services.mailer import send_contact_message
from trust_site.utils.rate_limit import limiter, RATE_LIMITS

router = APIRouter()


@router.post("/contact")
@limiter.limit(RATE_LIMITS["contact"])
def submit_contact(request: Request, body: ContactRequest):
    """
    Email a contact form submission to the trust.

    Runs in the threadpool since SMTP delivery blocks.
    """
    send_contact_message(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        phone=body.phone,
        message=body.message,
    )
    return {"ok": True}
