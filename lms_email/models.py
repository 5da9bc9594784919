"""Pydantic models for the LMS email service.

Models:
    - Priority / SendingMethod: request enums
    - EmailServiceAttachment: attachment reference (filename + URL)
    - EmailDetails: the structured email request
    - SisRecipient, SisAttachment, SisMessage, SisPriority: wire format of the
      signing service
    - Result: response of the signing service
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, List

from pydantic import BaseModel, ConfigDict, Field


class Priority(str, Enum):
    """Priority of an outgoing message.

    Attributes:
        LOW: X-Priority 5.
        NORMAL: X-Priority 3.
        HIGH: X-Priority 1.
    """

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"

    @property
    def x_priority(self) -> int:
        """Numeric value for the ``X-Priority`` header (1 = highest)."""
        return _X_PRIORITY[self]


_X_PRIORITY = {Priority.HIGH: 1, Priority.NORMAL: 3, Priority.LOW: 5}


class SendingMethod(str, Enum):
    """Whether the signed path is attempted before SMTP.

    Attributes:
        PRIMARY: Try the signing service first, fall back to SMTP.
        SECONDARY: Always deliver unsigned through SMTP.
    """

    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"


class EmailServiceAttachment(BaseModel):
    """Attachment referenced by URL; both fields are needed for it to be sent."""

    model_config = ConfigDict(populate_by_name=True)

    filename: Annotated[
        str | None,
        Field(default=None, description="File name shown to the recipient")
    ]
    url: Annotated[
        str | None,
        Field(default=None, description="Location the attachment is downloaded from")
    ]


class EmailDetails(BaseModel):
    """Structured email request.

    Attributes:
        subject: Subject line, truncated to 500 characters on send.
        body: Message body, truncated to about 5 MB on send.
        recipients: Target addresses.
        attachments: Attachments to download and include.
        enable_html: Send the body as ``text/html`` instead of ``text/plain``.
        priority: Message priority; NORMAL when omitted.
        from_: Sender address; the configured default when omitted.
    """

    model_config = ConfigDict(populate_by_name=True)

    subject: Annotated[str | None, Field(default=None)]
    body: Annotated[str | None, Field(default=None)]
    recipients: Annotated[List[str], Field(default_factory=list)]
    attachments: Annotated[
        List[EmailServiceAttachment],
        Field(default_factory=list, alias="emailServiceAttachmentList")
    ]
    enable_html: Annotated[bool, Field(default=False, alias="enableHtml")]
    priority: Annotated[Priority | None, Field(default=None)]
    from_: Annotated[str | None, Field(default=None, alias="from")]


# --------------------------------------------------------------------------
# Signing service wire format
# --------------------------------------------------------------------------


class SisPriority(str, Enum):
    """Priority values understood by the signing service."""

    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"


class SisRecipient(BaseModel):
    """Recipient entry of a signed message."""

    type: Annotated[str, Field(default="TO")]
    address: str


class SisAttachment(BaseModel):
    """Base64 encoded attachment of a signed message."""

    model_config = ConfigDict(populate_by_name=True)

    type: Annotated[str, Field(default="binary")]
    content_type: Annotated[str, Field(alias="contentType")]
    content: Annotated[str, Field(description="Base64 encoded bytes")]
    file_name: Annotated[str | None, Field(default=None, alias="fileName")]


class SisMessage(BaseModel):
    """Message posted to the signing service."""

    model_config = ConfigDict(populate_by_name=True)

    from_: Annotated[str | None, Field(default=None, alias="from")]
    subject: Annotated[str | None, Field(default=None)]
    body: Annotated[str | None, Field(default=None)]
    recipients: Annotated[List[SisRecipient], Field(default_factory=list)]
    content_type: Annotated[str, Field(default="text/plain", alias="contentType")]
    signature_address: Annotated[str | None, Field(default=None, alias="signatureAddress")]
    test_email_address: Annotated[str | None, Field(default=None, alias="testEmailAddress")]
    attach: Annotated[List[SisAttachment], Field(default_factory=list)]
    priority: Annotated[SisPriority, Field(default=SisPriority.NORMAL)]

    def to_payload(self) -> dict:
        """Return the JSON body expected by the signing service."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Result(BaseModel):
    """Outcome reported by the signing service."""

    model_config = ConfigDict(extra="ignore")

    success: Annotated[bool, Field(default=False)]
    message: Annotated[str | None, Field(default=None)]
