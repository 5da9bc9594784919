"""Base protocol for attachment fetchers."""

from __future__ import annotations

from dataclasses import dataclass

from ..models import EmailServiceAttachment


@dataclass
class FetchedAttachment:
    """Downloaded attachment ready to be embedded in a message."""

    filename: str
    content: bytes
    content_type: str


class AttachmentFetcherBase:
    """Interface implemented by concrete attachment fetchers."""

    async def fetch(self, att: EmailServiceAttachment) -> FetchedAttachment:
        """Return the payload of a reference that has both filename and url."""
        raise NotImplementedError
