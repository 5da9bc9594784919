"""LMS email service: signed delivery with SMTP fallback."""

from .core import (
    BODY_MAX_LENGTH,
    SUBJECT_MAX_LENGTH,
    EmailService,
    LmsEmailTooBigException,
)
from .models import EmailDetails, EmailServiceAttachment, Priority, SendingMethod

__all__ = [
    "BODY_MAX_LENGTH",
    "SUBJECT_MAX_LENGTH",
    "EmailDetails",
    "EmailService",
    "EmailServiceAttachment",
    "LmsEmailTooBigException",
    "Priority",
    "SendingMethod",
]
