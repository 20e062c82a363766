"""Signed HTTP calls to the Web API backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote, urlencode

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from .config import WebApiConfig
from .contracts import (
    AuthorizationResult,
    DelegationSession,
    Mode,
    Principal,
    RegisterResponse,
    RolesResult,
    SignedRequest,
    TokenResponse,
)
from .errors import (
    BackendStatusError,
    ResponseFormatError,
    TransportError,
)
from .signing import (
    CHECKSUM_HEADER,
    compute_basic_auth_header,
    compute_checksum_header,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_PRINCIPALS = TypeAdapter(List[Principal])


def build_path(*segments: str) -> str:
    """Join ``segments`` into a path, percent-encoding each one."""
    return "/" + "/".join(quote(str(s), safe="") for s in segments)


class BackendClient:
    """Issues signed requests to the backend and normalizes failures.

    Every call either returns a parsed payload or raises one of
    :class:`TransportError`, :class:`BackendStatusError` or
    :class:`ResponseFormatError`. Nothing is retried.
    """

    def __init__(
        self,
        config: WebApiConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            config: Loaded configuration.
            http_client: Externally owned client to send requests with.
            transport: Transport for the client this instance creates when
                ``http_client`` is omitted.
        """
        self._config = config
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout), transport=transport
        )

    @property
    def config(self) -> WebApiConfig:
        return self._config

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Request construction
    # ------------------------------------------------------------------
    def _diagnostic_query(self) -> str:
        return urlencode(
            {
                "requestId": self._config.request_id,
                "endUserId": self._config.end_user_id,
            }
        )

    def service_path(self, *segments: str) -> str:
        """Return a ``/service`` resource path including diagnostic tags."""
        return f"{build_path('service', *segments)}?{self._diagnostic_query()}"

    def build_request(
        self,
        method: str,
        path: str,
        authorization: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> SignedRequest:
        """Build a checksum-signed request for ``path``.

        ``path`` is signed verbatim and appended verbatim to the backend URL.
        ``authorization`` is sent as the ``Authorization`` header when given.
        """
        creds = self._config.credentials
        headers = {
            CHECKSUM_HEADER: compute_checksum_header(
                creds.client_id, creds.client_secret, path, timestamp
            )
        }
        if authorization:
            headers["Authorization"] = authorization
        return SignedRequest(
            method=method, url=self._config.web_api_url + path, headers=headers
        )

    def build_token_request(self, code: str, redirect_uri: str) -> SignedRequest:
        creds = self._config.credentials
        query = urlencode(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri,
            }
        )
        return SignedRequest(
            method="POST",
            url=f"{self._config.web_api_url}/oauth/token?{query}",
            headers={
                "Authorization": compute_basic_auth_header(
                    creds.client_id, creds.api_oauth_secret
                )
            },
        )

    # ------------------------------------------------------------------
    # Transport and parsing
    # ------------------------------------------------------------------
    async def _send(self, request: SignedRequest, label: str) -> httpx.Response:
        logger.debug(f"{request.method} {label}")
        try:
            response = await self._http.request(
                request.method,
                request.url,
                headers=request.headers,
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out calling {label}", timeout=True) from e
        except httpx.TransportError as e:
            raise TransportError(f"Failed to reach backend for {label}: {e}") from e

        if response.status_code != 200:
            raise BackendStatusError(response.status_code, response.text, label)
        return response

    @staticmethod
    def _json(response: httpx.Response, label: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ResponseFormatError(
                f"Response from {label} is not valid JSON", response.text
            ) from e

    @staticmethod
    def _validate(model: Type[ModelT], data: Any, raw: str, label: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ResponseFormatError(
                f"Unexpected response shape from {label}: {e}", raw
            ) from e

    # ------------------------------------------------------------------
    # Backend operations
    # ------------------------------------------------------------------
    async def register(self, mode: Mode, delegate_id: str) -> RegisterResponse:
        """Register a delegate session for ``delegate_id``."""
        mode = Mode(mode)
        path = self.service_path(
            mode.value, "user", "register", self._config.credentials.client_id, delegate_id
        )
        label = f"{mode.value} register"
        response = await self._send(self.build_request("GET", path), label)
        data = self._json(response, label)
        return self._validate(RegisterResponse, data, response.text, label)

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenResponse:
        """Exchange an authorization code for an access token."""
        label = "token exchange"
        response = await self._send(self.build_token_request(code, redirect_uri), label)
        data = self._json(response, label)
        return self._validate(TokenResponse, data, response.text, label)

    async def get_delegate(self, session: DelegationSession) -> List[Principal]:
        """Return the principals selected for ``session``, in backend order."""
        path = self.service_path("hpa", "api", "delegate", session.web_api_session_id)
        label = f"delegate lookup for session {session.web_api_session_id}"
        request = self.build_request("GET", path, authorization=session.bearer)
        response = await self._send(request, label)
        data = self._json(response, label)
        try:
            principals = _PRINCIPALS.validate_python(data)
        except ValidationError as e:
            raise ResponseFormatError(
                f"Unexpected response shape from {label}: {e}", response.text
            ) from e
        logger.debug(f"Delegate lookup returned {len(principals)} principal(s)")
        return principals

    async def get_authorization(
        self, session: DelegationSession, principal: Principal
    ) -> AuthorizationResult:
        """Return the delegate's authorization for ``principal``.

        The result is tagged with the ``principal`` argument itself, never
        with anything echoed back by the backend.
        """
        path = self.service_path(
            "hpa", "api", "authorization", session.web_api_session_id, principal.person_id
        )
        label = f"authorization lookup for session {session.web_api_session_id}"
        request = self.build_request("GET", path, authorization=session.bearer)
        response = await self._send(request, label)
        data = self._json(response, label)
        if not isinstance(data, dict):
            raise ResponseFormatError(
                f"Expected an object from {label}", response.text
            )
        if data.get("errorMessage"):
            raise ResponseFormatError(
                f"Backend reported an error from {label}: {data['errorMessage']}",
                response.text,
            )
        payload: Dict[str, Any] = dict(data)
        payload["principal"] = principal
        return self._validate(AuthorizationResult, payload, response.text, label)

    async def get_roles(self, session: DelegationSession) -> RolesResult:
        """Return the organization roles of the delegate."""
        path = self.service_path(
            "ypa", "api", "organizationRoles", session.web_api_session_id
        )
        label = f"roles lookup for session {session.web_api_session_id}"
        request = self.build_request("GET", path, authorization=session.bearer)
        response = await self._send(request, label)
        data = self._json(response, label)
        return self._validate(RolesResult, data, response.text, label)
