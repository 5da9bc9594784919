"""HTTP client for the SIS signed-email service."""

from __future__ import annotations

from typing import Dict, Optional

import aiohttp
from pydantic import ValidationError

from .logger import get_logger
from .models import Result, SisMessage


class SigningConfigurationError(RuntimeError):
    """Raised when signed delivery is requested but no endpoint is configured."""

    def __init__(self, message: str = "Signing service URL is not configured"):
        super().__init__(message)
        self.code = "missing_signing_configuration"


class SignedEmailService:
    """Post messages to the remote signing service and report its result."""

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        token: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        logger=None,
    ):
        self.url = url
        self._token = token
        self._user = user
        self._password = password
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger or get_logger("LmsEmailService.signing")

    def _auth(self) -> tuple[Optional[Dict[str, str]], Optional[aiohttp.BasicAuth]]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}, None
        if self._user:
            return None, aiohttp.BasicAuth(self._user, self._password or "")
        return None, None

    async def post_email(self, message: SisMessage) -> Result:
        """Send ``message`` to the signing service.

        Returns a failed :class:`Result` for non-2xx answers or unreadable
        bodies. Connection errors and timeouts are raised to the caller.
        """
        if not self.url:
            raise SigningConfigurationError()
        headers, auth = self._auth()
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(
                self.url,
                json=message.to_payload(),
                headers=headers,
                auth=auth,
            ) as resp:
                if resp.status >= 400:
                    reason = f"{resp.status} {resp.reason or ''}".strip()
                    self.logger.warning("Signing service answered %s", reason)
                    return Result(success=False, message=reason)
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    self.logger.warning("Signing service returned a non-JSON body")
                    return Result(success=False, message="invalid response body")
        if not isinstance(data, dict):
            return Result(success=False, message="invalid response body")
        try:
            return Result.model_validate(data)
        except ValidationError as exc:
            self.logger.warning("Signing service returned an unexpected payload: %s", exc)
            return Result(success=False, message="invalid response body")
