"""asyncio-friendly SMTP connection pool keyed by connection parameters."""

from __future__ import annotations

import asyncio
import time
from typing import Dict, NamedTuple, Optional, Tuple

import aiosmtplib


class SMTPParams(NamedTuple):
    host: str
    port: int
    user: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False
    start_tls: bool = False


class SMTPPool:
    """Reuse one SMTP connection per parameter set to reduce connection overhead."""

    def __init__(self, ttl: int = 300):
        """Create a pool with the given time-to-live, in seconds."""
        self.ttl = ttl
        self.pool: Dict[SMTPParams, Tuple[aiosmtplib.SMTP, float]] = {}
        self.lock = asyncio.Lock()

    async def _connect(self, params: SMTPParams) -> aiosmtplib.SMTP:
        """Open a new SMTP connection and authenticate if needed."""
        # use_tls is direct TLS (port 465); start_tls upgrades a plain session
        smtp = aiosmtplib.SMTP(
            hostname=params.host,
            port=params.port,
            start_tls=params.start_tls,
            use_tls=params.use_tls,
            timeout=10.0,
        )

        async def _do_connect():
            await smtp.connect()
            if params.user and params.password:
                await smtp.login(params.user, params.password)

        await asyncio.wait_for(_do_connect(), timeout=15.0)
        return smtp

    async def _is_alive(self, smtp: aiosmtplib.SMTP) -> bool:
        """Return ``True`` when the connection responds correctly to NOOP."""
        try:
            code, _ = await asyncio.wait_for(smtp.noop(), timeout=5.0)
            return code == 250
        except Exception:
            return False

    @staticmethod
    async def _quit(smtp: aiosmtplib.SMTP) -> None:
        try:
            await smtp.quit()
        except Exception:
            pass

    async def get_connection(self, params: SMTPParams) -> aiosmtplib.SMTP:
        """Return a live connection for ``params``, reconnecting when stale."""
        async with self.lock:
            entry = self.pool.pop(params, None)

        if entry:
            smtp, last_used = entry
            if (time.time() - last_used) < self.ttl and await self._is_alive(smtp):
                async with self.lock:
                    self.pool[params] = (smtp, time.time())
                return smtp
            await self._quit(smtp)

        smtp = await self._connect(params)
        async with self.lock:
            self.pool[params] = (smtp, time.time())
        return smtp

    async def discard(self, params: SMTPParams) -> None:
        """Drop and close the connection registered for ``params``."""
        async with self.lock:
            entry = self.pool.pop(params, None)
        if entry:
            await self._quit(entry[0])

    async def cleanup(self) -> None:
        """Close idle or broken connections still registered in the pool."""
        now = time.time()
        async with self.lock:
            items = list(self.pool.items())

        expired = []
        for params, (smtp, last_used) in items:
            if (now - last_used) > self.ttl or not await self._is_alive(smtp):
                expired.append(params)

        for params in expired:
            await self.discard(params)

    async def close(self) -> None:
        """Close every pooled connection."""
        async with self.lock:
            entries = list(self.pool.values())
            self.pool.clear()
        for smtp, _ in entries:
            await self._quit(smtp)
