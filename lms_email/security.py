"""
Bearer-token access control for the REST surface.

Tokens are OAuth2 JWTs verified locally with python-jose. Authorities are
collected from the ``scope`` / ``scp`` claims and an optional ``authorities``
list, and a route is allowed only when the required authority is present.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from .logger import get_logger

SEND_SCOPE = "lms:email:send"

bearer_scheme = HTTPBearer(auto_error=False)
logger = get_logger("LmsEmailService.security")


def extract_authorities(claims: Dict[str, Any]) -> Set[str]:
    """Collect granted authorities from JWT claims."""
    authorities: Set[str] = set()
    for claim in ("scope", "scp"):
        value = claims.get(claim)
        if isinstance(value, str):
            authorities.update(part for part in value.split() if part)
        elif isinstance(value, (list, tuple)):
            authorities.update(str(part) for part in value if part)
    extra = claims.get("authorities")
    if isinstance(extra, (list, tuple)):
        authorities.update(str(part) for part in extra if part)
    return authorities


class JwtVerifier:
    """Decode and validate bearer tokens."""

    def __init__(
        self,
        key: Optional[str],
        algorithms: Iterable[str] = ("RS256",),
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        self.key = key
        self.algorithms: List[str] = list(algorithms)
        self.audience = audience
        self.issuer = issuer

    def decode(self, token: str) -> Dict[str, Any]:
        """Return the token claims.

        Raises:
            HTTPException: 401 when the token is expired, malformed or
                signed with the wrong key.
        """
        if not self.key:
            logger.error("JWT verification key is not configured")
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
        try:
            return jwt.decode(
                token,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except ExpiredSignatureError:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token expired")
        except JWTError:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def require_authority(authority: str) -> Callable[..., Any]:
    """Build a FastAPI dependency that demands ``authority`` in the bearer token.

    The verifier is looked up on ``request.app.state.jwt_verifier`` so one
    dependency object can be shared by every app instance.
    """

    async def dependency(
        request: Request,
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    ) -> Dict[str, Any]:
        if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
            raise HTTPException(
                status.HTTP_401_UNAUTHORIZED,
                "Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        verifier: JwtVerifier = request.app.state.jwt_verifier
        claims = verifier.decode(credentials.credentials)
        if authority not in extract_authorities(claims):
            logger.warning("Rejected token for %s: missing authority %s", claims.get("sub"), authority)
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Insufficient scope")
        return claims

    return dependency


send_authority = require_authority(SEND_SCOPE)
