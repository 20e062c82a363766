"""HTTP boundary: registration redirect and selection UI callback routes."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from .client import BackendClient
from .config import WebApiConfig
from .contracts import Mode, RolesResult, dump_authorizations
from .errors import DelegationError
from .flow import DelegationFlow

logger = logging.getLogger(__name__)


def _flow(request: Request) -> DelegationFlow:
    return request.app.state.flow


def _failure(exc: DelegationError) -> Response:
    return PlainTextResponse(
        exc.public_message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def create_app(
    config: WebApiConfig, client: Optional[BackendClient] = None
) -> FastAPI:
    """Build the FastAPI application serving the delegation routes.

    Args:
        config: Loaded configuration.
        client: Backend client to use. One is created from ``config`` when
            omitted; either way it is closed on application shutdown.
    """
    backend = client or BackendClient(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await backend.aclose()

    app = FastAPI(title="Web API delegation client", lifespan=lifespan)
    app.state.config = config
    app.state.flow = DelegationFlow(backend, config)

    cookie_name = config.session_cookie_name
    secure = config.ssl is not None or config.base_url.startswith("https://")

    @app.get("/register/{mode}/{hetu}")
    async def register(request: Request, mode: Mode, hetu: str) -> Response:
        """Register a session for the delegate ``hetu`` and redirect to selection."""
        try:
            redirection = await _flow(request).register(mode, hetu)
        except DelegationError as e:
            return _failure(e)

        response = RedirectResponse(
            redirection.location, status_code=status.HTTP_302_FOUND
        )
        response.set_cookie(
            cookie_name,
            redirection.session_id,
            path="/",
            httponly=True,
            secure=secure,
            samesite="lax",
        )
        return response

    @app.get("/callback/{mode}")
    async def callback(request: Request, mode: Mode) -> Response:
        """Return from the selection UI: exchange the code and fetch results."""
        session_id = request.cookies.get(cookie_name)
        code = request.query_params.get("code")
        if code is None:
            logger.warning(f"{mode.value} callback without code: {dict(request.query_params)!r}")
        try:
            result = await _flow(request).complete(mode, session_id, code)
        except DelegationError as e:
            response = _failure(e)
        else:
            if isinstance(result, RolesResult):
                content = result.model_dump()
            else:
                content = dump_authorizations(result)
            response = JSONResponse(content=content, status_code=status.HTTP_200_OK)
        response.delete_cookie(cookie_name, path="/", httponly=True, secure=secure, samesite="lax")
        return response

    return app
