"""Download attachments exposed through HTTP(S) URLs."""

from __future__ import annotations

import mimetypes
from typing import Optional

import aiohttp

from ..logger import get_logger
from ..models import EmailServiceAttachment
from .base import AttachmentFetcherBase, FetchedAttachment

GENERIC_CONTENT_TYPE = "application/octet-stream"

logger = get_logger("LmsEmailService.attachments")


class URLAttachmentFetcher(AttachmentFetcherBase):
    """Fetch attachment bytes with a plain GET on ``url``.

    Non-2xx responses raise :class:`aiohttp.ClientResponseError`; the caller
    decides whether that is retryable.
    """

    def __init__(self, timeout: float = 30.0):
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch(self, att: EmailServiceAttachment) -> FetchedAttachment:
        """Download the attachment referenced by ``url``."""
        logger.debug("%s (%s)", att.filename, att.url)
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.get(att.url) as resp:
                resp.raise_for_status()
                content = await resp.read()
                content_type = resp.content_type
        return FetchedAttachment(
            filename=att.filename,
            content=content,
            content_type=self._resolve_content_type(content_type, att.filename),
        )

    @staticmethod
    def _resolve_content_type(served: Optional[str], filename: str) -> str:
        if served and served != GENERIC_CONTENT_TYPE:
            return served
        guessed, _ = mimetypes.guess_type(filename)
        return guessed or GENERIC_CONTENT_TYPE
