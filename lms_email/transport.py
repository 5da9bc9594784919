"""SMTP mail transport used for unsigned delivery."""

from __future__ import annotations

import asyncio
from email.message import EmailMessage
from typing import Optional

from .logger import get_logger
from .smtp_pool import SMTPParams, SMTPPool


class MailTransport:
    """Send fully built MIME messages through a pooled SMTP connection.

    Errors raised by aiosmtplib propagate unchanged; the broken connection is
    dropped from the pool first so the next send reconnects.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str] = None,
        password: Optional[str] = None,
        *,
        use_tls: bool = False,
        start_tls: bool = False,
        pool: SMTPPool | None = None,
        logger=None,
    ):
        self.params = SMTPParams(host, port, user, password, use_tls, start_tls)
        self.pool = pool or SMTPPool()
        self.logger = logger or get_logger("LmsEmailService.transport")
        self._lock = asyncio.Lock()

    async def send(self, message: EmailMessage) -> None:
        """Deliver ``message`` to the recipients in its headers."""
        async with self._lock:
            await self.pool.cleanup()
            smtp = await self.pool.get_connection(self.params)
            try:
                await smtp.send_message(message)
            except Exception:
                await self.pool.discard(self.params)
                raise
        self.logger.debug(
            "Message handed to %s:%s (to=%s)", self.params.host, self.params.port, message.get("To")
        )

    async def close(self) -> None:
        await self.pool.close()
