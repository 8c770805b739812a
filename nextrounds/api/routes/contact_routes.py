"""
Contact Routes

POST /contact - Send a message to the support inbox
"""

from fastapi import APIRouter, Depends, HTTPException

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger
from nextrounds.core.rate_limit import SlidingWindowLimiter
from nextrounds.schemas.schemas import ContactRequest, MessageResponse
from nextrounds.services.email_service import EmailSendError, send_contact_message
from nextrounds.utils.email_validation import validate_email

settings = get_settings()
logger = get_logger(__name__)

router = APIRouter(tags=["Contact"])

_contact_limiter = SlidingWindowLimiter(
    max_calls=settings.contact_rate_limit,
    window_seconds=settings.contact_rate_window_seconds
)


def get_contact_limiter() -> SlidingWindowLimiter:
    return _contact_limiter


@router.post("/contact", response_model=MessageResponse)
def contact(
    data: ContactRequest,
    limiter: SlidingWindowLimiter = Depends(get_contact_limiter)
):
    """Limited per sender address."""
    name, email = data.name.strip(), data.email.strip()
    subject, message = data.subject.strip(), data.message.strip()

    if not name or not email or not subject or not message:
        raise HTTPException(status_code=400, detail="All fields are required")

    is_valid, error = validate_email(email)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)

    allowed, retry_after = limiter.check(email.lower())
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Too many requests. Please try again in {retry_after} seconds.",
                "time_left": retry_after,
            }
        )

    try:
        send_contact_message(name, email, subject, message)
    except EmailSendError:
        raise HTTPException(status_code=500, detail="Failed to send message. Please try again later.")

    return {"success": True, "message": "Message sent successfully"}
