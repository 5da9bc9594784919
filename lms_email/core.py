"""Email dispatch workflow: signed delivery first, SMTP as fallback."""

from __future__ import annotations

import asyncio
import base64
from email.message import EmailMessage
from enum import Enum
from typing import List, Optional

import aiohttp

from .attachments import AttachmentManager, FetchedAttachment
from .config import EmailServiceConfig
from .logger import get_logger
from .models import (
    EmailDetails,
    EmailServiceAttachment,
    Priority,
    Result,
    SendingMethod,
    SisAttachment,
    SisMessage,
    SisPriority,
    SisRecipient,
)
from .prometheus import EmailMetrics
from .signing import SignedEmailService
from .transport import MailTransport

SUBJECT_MAX_LENGTH = 500
# roughly the equivalent of 5 MB
BODY_MAX_LENGTH = 5242880
MAX_SIGNING_TRIES = 3

SIGNED_ADDRESS = "essnorep@iu.edu"
UNSIGNED_ADDRESS = "donotsign@garbage.foo"
TEST_EMAIL_ADDRESS = "iu-uits-es-ess-lms-notify@exchange.iu.edu"

TRUNCATION_NOTICE = f"\nThe message body exceeded {BODY_MAX_LENGTH} characters and this message was truncated!"

SIGNING_IO_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


class LmsEmailTooBigException(RuntimeError):
    """Raised when the assembled MIME message exceeds :data:`BODY_MAX_LENGTH` bytes."""

    def __init__(self, message: str = "Email message is too big"):
        super().__init__(message)
        self.code = "email_too_big"


class UnsignedRecipientError(ValueError):
    """Raised outside production when there is no address to redirect unsigned mail to."""

    def __init__(self, message: str = "No unsigned recipient configured for non-production delivery"):
        super().__init__(message)
        self.code = "missing_unsigned_recipient"


class DeliveryOutcome(Enum):
    """Outcome of a single signed delivery attempt."""

    SUCCESS = "success"
    RETRY = "retry"


def translate_priority(priority: Optional[Priority]) -> SisPriority:
    """Map a request priority onto the signing service enum."""
    if priority == Priority.LOW:
        return SisPriority.LOW
    if priority == Priority.HIGH:
        return SisPriority.HIGH
    return SisPriority.NORMAL


def truncate_subject(subject: Optional[str]) -> Optional[str]:
    if subject is not None and len(subject) > SUBJECT_MAX_LENGTH:
        return subject[:SUBJECT_MAX_LENGTH]
    return subject


def truncate_body(body: Optional[str]) -> Optional[str]:
    if body is not None and len(body) > BODY_MAX_LENGTH:
        return body[:BODY_MAX_LENGTH] + TRUNCATION_NOTICE
    return body


class EmailService:
    """Send LMS notification emails.

    Each call is one sequential workflow: normalise the request, try the
    signing service up to :data:`MAX_SIGNING_TRIES` times, then fall back to
    plain SMTP. Collaborators are plain attributes so they can be swapped.
    """

    def __init__(
        self,
        config: EmailServiceConfig,
        *,
        signer: SignedEmailService | None = None,
        transport: MailTransport | None = None,
        attachments: AttachmentManager | None = None,
        metrics: EmailMetrics | None = None,
        logger=None,
    ):
        self.config = config
        self.signer = signer or SignedEmailService(
            config.signing_url,
            token=config.signing_token,
            user=config.signing_user,
            password=config.signing_password,
            timeout=config.signing_timeout,
        )
        self.transport = transport or MailTransport(
            config.smtp_host,
            config.smtp_port,
            config.smtp_user,
            config.smtp_password,
            use_tls=config.smtp_use_tls,
            start_tls=config.smtp_start_tls,
        )
        self.attachments = attachments or AttachmentManager(timeout=config.attachment_timeout)
        self.metrics = metrics or EmailMetrics()
        self.logger = logger or get_logger()

    def get_standard_header(self) -> str:
        """Return the subject prefix used by LMS notifications."""
        return f"[LMS {self.config.env.upper()} Notifications]"

    async def close(self) -> None:
        await self.transport.close()

    # ------------------------------------------------------------------ public
    async def send_email(
        self,
        details: EmailDetails,
        digitally_sign: bool,
        unsigned_to: Optional[str] = None,
        method: SendingMethod = SendingMethod.PRIMARY,
    ) -> None:
        """Deliver ``details``.

        Args:
            details: The email request.
            digitally_sign: Ask the signing service for a real signature.
            unsigned_to: Outside production, the address unsigned mail is
                redirected to instead of the configured default.
            method: PRIMARY tries the signing service first, SECONDARY goes
                straight to SMTP.

        Raises:
            LmsEmailTooBigException: The unsigned message is over the size limit.
            UnsignedRecipientError: No redirect address outside production.
        """
        subject = details.subject
        body = details.body
        recipients = list(details.recipients)
        attachments = list(details.attachments)
        enable_html = details.enable_html
        priority = details.priority or Priority.NORMAL
        sender = details.from_ if details.from_ is not None else self.config.default_from

        if not self.config.enabled:
            self.logger.info(
                "mail.enabled is false. Logging message\nrecipients: %s\nSubject: %s\nBody:\n%s\n",
                ",".join(recipients),
                subject,
                body,
            )
            self.metrics.inc_suppressed()
            return

        subject = truncate_subject(subject)
        body = truncate_body(body)

        if method == SendingMethod.PRIMARY and self.config.signing_enabled:
            for attempt in range(1, MAX_SIGNING_TRIES + 1):
                outcome = await self._attempt_signed(
                    recipients, subject, body, attachments, enable_html, priority, digitally_sign, sender
                )
                if outcome is DeliveryOutcome.SUCCESS:
                    self.metrics.inc_signed_sent()
                    return
                if attempt < MAX_SIGNING_TRIES:
                    self.logger.warning("Retry attempt #%d for the SIS Email Signing Service", attempt)
            self.metrics.inc_signing_fallback()

        await self._send_unsigned(
            recipients, subject, body, attachments, enable_html, priority, sender, unsigned_to
        )

    # ------------------------------------------------------------------ signed
    async def _attempt_signed(
        self,
        recipients: List[str],
        subject: Optional[str],
        body: Optional[str],
        attachments: List[EmailServiceAttachment],
        enable_html: bool,
        priority: Priority,
        digitally_sign: bool,
        sender: str,
    ) -> DeliveryOutcome:
        try:
            result = await self._send_signed(
                recipients, subject, body, attachments, enable_html, priority, digitally_sign, sender
            )
        except SIGNING_IO_ERRORS:
            self.logger.exception("Bad email!")
            self.metrics.inc_signing_failure("io")
            return DeliveryOutcome.RETRY
        if result.success:
            return DeliveryOutcome.SUCCESS
        self.metrics.inc_signing_failure("result")
        return DeliveryOutcome.RETRY

    async def _send_signed(
        self,
        recipients: List[str],
        subject: Optional[str],
        body: Optional[str],
        attachments: List[EmailServiceAttachment],
        enable_html: bool,
        priority: Priority,
        digitally_sign: bool,
        sender: str,
    ) -> Result:
        """Build a :class:`SisMessage` and post it to the signing service.

        Raises:
            aiohttp.ClientError: An attachment or the service could not be reached.
        """
        fetched = await self.attachments.fetch_all(attachments)
        message = SisMessage(
            from_=sender,
            subject=subject,
            body=body,
            recipients=[SisRecipient(type="TO", address=address) for address in recipients],
            content_type="text/html" if enable_html else "text/plain",
            signature_address=SIGNED_ADDRESS if digitally_sign else UNSIGNED_ADDRESS,
            test_email_address=TEST_EMAIL_ADDRESS,
            attach=[self._to_sis_attachment(att) for att in fetched],
            priority=translate_priority(priority),
        )
        return await self.signer.post_email(message)

    @staticmethod
    def _to_sis_attachment(att: FetchedAttachment) -> SisAttachment:
        return SisAttachment(
            type="binary",
            content_type=att.content_type,
            content=base64.b64encode(att.content).decode("ascii"),
            file_name=att.filename,
        )

    # ---------------------------------------------------------------- unsigned
    def _redirect_target(self, unsigned_to: Optional[str]) -> str:
        if unsigned_to and unsigned_to.strip():
            return unsigned_to.strip()
        if self.config.default_unsigned_to:
            return self.config.default_unsigned_to
        raise UnsignedRecipientError()

    @staticmethod
    def _production_banner(recipients: List[str], enable_html: bool) -> str:
        newline = "<br />" if enable_html else ""
        banner = f"** In production, this message will go to {newline}\r\n"
        for recipient in recipients:
            banner += f" - TO: {recipient} {newline}\r\n"
        return banner

    async def _send_unsigned(
        self,
        recipients: List[str],
        subject: Optional[str],
        body: Optional[str],
        attachments: List[EmailServiceAttachment],
        enable_html: bool,
        priority: Priority,
        sender: str,
        unsigned_to: Optional[str],
    ) -> None:
        self.logger.warning("Sending unsigned email")

        if not self.config.is_production:
            body = self._production_banner(recipients, enable_html) + "\r\n" + (body or "")
            recipients = [self._redirect_target(unsigned_to)]

        message = await self._build_email(recipients, subject, body, attachments, enable_html, priority, sender)

        if len(message.as_bytes()) > BODY_MAX_LENGTH:
            self.metrics.inc_too_big()
            raise LmsEmailTooBigException()

        await self.transport.send(message)
        self.metrics.inc_unsigned_sent()
        self.logger.info("Unsigned email sent to %s", ", ".join(recipients))

    async def _build_email(
        self,
        recipients: List[str],
        subject: Optional[str],
        body: Optional[str],
        attachments: List[EmailServiceAttachment],
        enable_html: bool,
        priority: Priority,
        sender: str,
    ) -> EmailMessage:
        """Translate the request into an :class:`EmailMessage`."""
        msg = EmailMessage()
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)
        # header values cannot carry line breaks
        msg["Subject"] = " ".join((subject or "").splitlines())
        msg["X-Priority"] = str(priority.x_priority)
        msg.set_content(body or "", subtype="html" if enable_html else "plain")

        for att in await self.attachments.fetch_all(attachments):
            maintype, _, subtype = att.content_type.partition("/")
            if not subtype:
                maintype, subtype = self.attachments.guess_mime(att.filename)
            msg.add_attachment(att.content, maintype=maintype, subtype=subtype, filename=att.filename)
        return msg
