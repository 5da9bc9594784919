"""Attachment management for outgoing messages."""

from __future__ import annotations

import asyncio
import mimetypes
from typing import List, Optional, Sequence, Tuple

from ..models import EmailServiceAttachment
from .base import AttachmentFetcherBase, FetchedAttachment
from .url_fetcher import URLAttachmentFetcher

__all__ = [
    "AttachmentFetcherBase",
    "AttachmentManager",
    "FetchedAttachment",
    "URLAttachmentFetcher",
]


class AttachmentManager:
    """Resolve attachment references into downloaded content."""

    def __init__(self, timeout: float = 30.0, fetcher: AttachmentFetcherBase | None = None):
        """Create a manager whose downloads are bounded by ``timeout`` seconds."""
        self._timeout = timeout
        self._fetcher = fetcher or URLAttachmentFetcher(timeout=timeout)

    async def fetch(self, att: EmailServiceAttachment) -> Optional[FetchedAttachment]:
        """Fetch one attachment, or ``None`` when filename or url is missing.

        Raises:
            TimeoutError: If the download exceeds the configured timeout.
        """
        if not att.filename or not att.url:
            return None
        try:
            return await asyncio.wait_for(self._fetcher.fetch(att), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise TimeoutError(f"Attachment {att.filename} fetch timed out") from exc

    async def fetch_all(self, attachments: Sequence[EmailServiceAttachment]) -> List[FetchedAttachment]:
        """Fetch every usable attachment in order; any download error propagates."""
        fetched: List[FetchedAttachment] = []
        for att in attachments or []:
            result = await self.fetch(att)
            if result is not None:
                fetched.append(result)
        return fetched

    @staticmethod
    def guess_mime(filename: str) -> Tuple[str, str]:
        """Guess the MIME type for the given filename."""
        mt, _ = mimetypes.guess_type(filename)
        if not mt:
            return ("application", "octet-stream")
        return tuple(mt.split("/", 1))  # type: ignore[return-value]
