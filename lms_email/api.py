"""
FastAPI application factory for the LMS email service.

Two ordered route groups mirror the access rules of the service:

* ``/rest/email/**`` always requires a bearer JWT carrying the send authority.
* ``/api/email/**`` serves the OpenAPI documentation without authentication,
  and only when both the ``emailrest`` and ``swagger`` profiles are active.

``/status`` and ``/metrics`` are open operational endpoints.
"""

from typing import AsyncContextManager, Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, status
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import Response
from pydantic import BaseModel

from .config import EMAILREST_PROFILE, SWAGGER_PROFILE
from .core import EmailService, LmsEmailTooBigException, UnsignedRecipientError
from .models import EmailDetails, SendingMethod
from .security import JwtVerifier, send_authority

DOCS_PREFIX = "/api/email"


class CommandStatus(BaseModel):
    """Base schema shared by the responses produced by the service."""
    ok: bool
    error: Optional[str] = None


class BasicOkResponse(CommandStatus):
    pass


class HeaderResponse(CommandStatus):
    header: str


def create_app(
    svc: EmailService,
    verifier: JwtVerifier | None = None,
    lifespan: Callable[[FastAPI], AsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    svc:
        The :class:`lms_email.core.EmailService` that performs deliveries.
    verifier:
        JWT verifier for the protected routes; built from ``svc.config`` when
        omitted.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn.
    """
    config = svc.config
    docs_enabled = config.has_profiles(EMAILREST_PROFILE, SWAGGER_PROFILE)

    api = FastAPI(
        title="LMS Email Service",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=f"{DOCS_PREFIX}/openapi.json" if docs_enabled else None,
    )
    api.state.service = svc
    api.state.jwt_verifier = verifier or JwtVerifier(
        config.jwt_key,
        algorithms=config.jwt_algorithms,
        audience=config.jwt_audience,
        issuer=config.jwt_issuer,
    )

    rest = APIRouter(prefix="/rest/email", tags=["email"], dependencies=[Depends(send_authority)])

    @api.get("/status", response_model=BasicOkResponse, response_model_exclude_none=True)
    async def service_status():
        """Return a simple health status payload."""
        return BasicOkResponse(ok=True)

    @api.get("/metrics")
    async def metrics():
        """Expose Prometheus metrics collected by the service."""
        return Response(content=svc.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    @rest.post("/send", response_model=BasicOkResponse, response_model_exclude_none=True)
    async def send_email(
        details: EmailDetails,
        digitally_sign: bool = Query(False, alias="digitallySign"),
        unsigned_to: Optional[str] = Query(None, alias="unsignedToEmailToUseInPreProd"),
        sending_method: SendingMethod = Query(SendingMethod.PRIMARY, alias="sendingMethod"),
    ):
        """Send one email, signed when possible."""
        try:
            await svc.send_email(details, digitally_sign, unsigned_to, sending_method)
        except LmsEmailTooBigException as exc:
            raise HTTPException(413, str(exc))
        except UnsignedRecipientError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
        return BasicOkResponse(ok=True)

    @rest.get("/header", response_model=HeaderResponse, response_model_exclude_none=True)
    async def standard_header():
        """Return the subject prefix used for LMS notifications."""
        return HeaderResponse(ok=True, header=svc.get_standard_header())

    # registered last so unknown paths under the prefix still require a token
    @rest.api_route(
        "/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
    async def unknown_rest_route(path: str):
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Not Found")

    if docs_enabled:
        @api.get(f"{DOCS_PREFIX}/docs", include_in_schema=False)
        async def swagger_ui():
            return get_swagger_ui_html(openapi_url=api.openapi_url, title=f"{api.title} - Docs")

    api.include_router(rest)
    return api
