# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory and HTTP schemas for the mail relay.

The module exposes :func:`create_app`, which wraps an
:class:`~mail_relay.relay.EmailRelay` in a REST API:

- ``POST /send-email``: relay one message (``X-API-Key`` required)
- ``GET /status``: liveness probe
- ``GET /metrics``: Prometheus metrics (``X-API-Key`` required)

Every error response uses the same JSON shape as the relay itself,
``{"status": "error", "message": "..."}``.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.security import APIKeyHeader
from pydantic import BaseModel, ConfigDict, Field

from .auth import API_KEY_HEADER_NAME
from .message import EmailRequest
from .relay import EmailRelay

# OpenAPI declaration only; handlers read the raw header so an empty key stays "".
api_key_scheme = APIKeyHeader(name=API_KEY_HEADER_NAME, auto_error=False)


class SendEmailPayload(BaseModel):
    """Body accepted by ``POST /send-email``.

    ``from``, ``to`` and ``sender_name`` fall back to the configured
    defaults when omitted or empty.
    """

    model_config = ConfigDict(populate_by_name=True)
    from_: str = Field(default="", alias="from")
    to: str = ""
    sender_name: str = ""
    subject: str
    body: str

    def to_request(self) -> EmailRequest:
        return EmailRequest(
            from_address=self.from_,
            to_address=self.to,
            sender_name=self.sender_name,
            subject=self.subject,
            body=self.body,
        )


class ApiResponse(BaseModel):
    """Response body shared by success and error replies."""

    status: str
    message: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


def _format_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(item) for item in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg', 'invalid value')}")
    return "Invalid request: " + "; ".join(parts)


def create_app(
    relay: EmailRelay,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    relay:
        The :class:`EmailRelay` handling every send request. It owns the
        rate-limit table, so one relay must back the whole process.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by uvicorn.
    """
    api = FastAPI(title="Mail Relay", lifespan=lifespan)
    api.state.relay = relay

    @api.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error(422, _format_validation_error(exc))

    @api.get("/status")
    async def status():
        """Return a simple health status payload."""
        return {"status": "ok"}

    @api.post(
        "/send-email",
        response_model=ApiResponse,
        responses={401: {"model": ApiResponse}, 429: {"model": ApiResponse}, 500: {"model": ApiResponse}},
        dependencies=[Depends(api_key_scheme)],
    )
    async def send_email(
        payload: SendEmailPayload,
        request: Request,
        api_key: str | None = Header(default=None, alias=API_KEY_HEADER_NAME),
        x_forwarded_for: str | None = Header(default=None),
    ):
        """Authenticate, rate-limit and relay one email."""
        svc: EmailRelay = request.app.state.relay
        peer_host = request.client.host if request.client else None
        identity = svc.resolve_identity(x_forwarded_for, peer_host)
        result = await svc.handle(api_key, identity, payload.to_request())
        return JSONResponse(status_code=result.status_code, content=result.body())

    @api.get("/metrics", dependencies=[Depends(api_key_scheme)])
    async def metrics(
        request: Request,
        api_key: str | None = Header(default=None, alias=API_KEY_HEADER_NAME),
    ):
        """Expose Prometheus metrics collected by the relay."""
        svc: EmailRelay = request.app.state.relay
        error = svc.authenticator.validate(api_key).to_error()
        if error is not None:
            return _error(error.status_code, error.message)
        return Response(content=svc.metrics.generate_latest(), media_type="text/plain; version=0.0.4")

    return api
