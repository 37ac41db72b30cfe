import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, EmailStr, Field

import emails
from config import get_settings
from errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/email", tags=["contact"])


class ContactBody(BaseModel):
    fullName: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = ""
    message: str = Field(..., min_length=1)


@router.post("/send")
def send_contact_message(body: ContactBody, request: Request, settings=Depends(get_settings)):
    mailer = request.app.state.mailer
    try:
        mailer.send(
            settings.contact_email,
            f"New Contact Form Message from {body.fullName}",
            emails.contact_message(body.fullName, body.email, body.phone, body.message),
        )
    except Exception as exc:
        logger.error("Email sending error: %s", exc)
        raise UpstreamUnavailable("Failed to send message")
    return {"success": True, "message": "Message sent successfully!"}
