"""Delegation transaction orchestration.

A delegation spans two browser round trips and therefore two independent
transactions in this process:

1. ``register``: START -> REGISTERED -> REDIRECTED. The backend session id is
   handed back to the caller, who must carry it to the callback (cookie).
2. ``complete_hpa`` / ``complete_ypa``: resumes at REDIRECTED with the carried
   session id and the authorization code, then
   TOKEN_EXCHANGED -> DELEGATE_RESOLVED -> AUTHORIZATIONS_RESOLVED -> DONE (HPA)
   or TOKEN_EXCHANGED -> ROLES_RESOLVED -> DONE (YPA).

Nothing is kept in memory between the two halves. Any failure moves the
transaction to FAILED, logs the cause and raises :class:`DelegationError`
with a message that is safe to show to the end user.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set, Union
from urllib.parse import urlencode

from .client import BackendClient
from .config import WebApiConfig
from .contracts import (
    AuthorizationResult,
    DelegationSession,
    Mode,
    Principal,
    Redirection,
    RolesResult,
)
from .errors import (
    AggregateFailure,
    BackendStatusError,
    DelegationError,
    FlowStateError,
    ProtocolError,
    ResponseFormatError,
    WebApiError,
)

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    START = "start"
    REGISTERED = "registered"
    REDIRECTED = "redirected"
    TOKEN_EXCHANGED = "token_exchanged"
    DELEGATE_RESOLVED = "delegate_resolved"
    AUTHORIZATIONS_RESOLVED = "authorizations_resolved"
    ROLES_RESOLVED = "roles_resolved"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: Dict[FlowState, Set[FlowState]] = {
    FlowState.START: {FlowState.REGISTERED},
    FlowState.REGISTERED: {FlowState.REDIRECTED},
    FlowState.REDIRECTED: {FlowState.TOKEN_EXCHANGED},
    FlowState.TOKEN_EXCHANGED: {FlowState.DELEGATE_RESOLVED, FlowState.ROLES_RESOLVED},
    FlowState.DELEGATE_RESOLVED: {FlowState.AUTHORIZATIONS_RESOLVED},
    FlowState.AUTHORIZATIONS_RESOLVED: {FlowState.DONE},
    FlowState.ROLES_RESOLVED: {FlowState.DONE},
    FlowState.DONE: set(),
    FlowState.FAILED: set(),
}

# States only reachable in one mode.
_MODE_ONLY: Dict[FlowState, Mode] = {
    FlowState.DELEGATE_RESOLVED: Mode.HPA,
    FlowState.AUTHORIZATIONS_RESOLVED: Mode.HPA,
    FlowState.ROLES_RESOLVED: Mode.YPA,
}

_REGISTER_FAILED = {
    Mode.HPA: "Failed to register HPA session.",
    Mode.YPA: "Failed to register YPA session.",
}

_COMPLETE_FAILED = {
    Mode.HPA: "Failed to get authorization.",
    Mode.YPA: "Failed to get company roles.",
}


class FlowTransaction:
    """State of a single delegation transaction."""

    def __init__(self, mode: Mode, state: FlowState = FlowState.START) -> None:
        self.mode = Mode(mode)
        self.state = state
        self.history: List[FlowState] = [state]

    @classmethod
    def resume(cls, mode: Mode) -> "FlowTransaction":
        """Start the callback half of a delegation, after the redirect."""
        return cls(mode, FlowState.REDIRECTED)

    @property
    def finished(self) -> bool:
        return self.state in (FlowState.DONE, FlowState.FAILED)

    def advance(self, target: FlowState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise FlowStateError(
                f"Illegal transition {self.state.value} -> {target.value}"
            )
        required = _MODE_ONLY.get(target)
        if required is not None and required != self.mode:
            raise FlowStateError(
                f"State {target.value} is not reachable in {self.mode.value} mode"
            )
        self.state = target
        self.history.append(target)

    def fail(self) -> None:
        if self.state is FlowState.DONE:
            raise FlowStateError("Cannot fail a finished transaction")
        self.state = FlowState.FAILED
        self.history.append(FlowState.FAILED)


def _describe(exc: BaseException) -> str:
    if isinstance(exc, BackendStatusError):
        return f"{exc} (body: {exc.body!r})"
    if isinstance(exc, ResponseFormatError):
        return f"{exc} (raw body: {exc.raw_body!r})"
    if isinstance(exc, AggregateFailure):
        return f"{exc}; " + "; ".join(_describe(e) for e in exc.errors)
    return f"{type(exc).__name__}: {exc}"


def _coerce_mode(value: Union[Mode, str]) -> Mode:
    try:
        return Mode(value)
    except ValueError as e:
        logger.error(f"Unsupported delegation mode: {value!r}")
        raise DelegationError("Unsupported delegation mode.") from e


class DelegationFlow:
    """Runs delegation transactions against a :class:`BackendClient`."""

    def __init__(self, client: BackendClient, config: Optional[WebApiConfig] = None) -> None:
        self._client = client
        self._config = config or client.config

    @property
    def config(self) -> WebApiConfig:
        return self._config

    @contextmanager
    def _transaction(self, tx: FlowTransaction, public_message: str) -> Iterator[FlowTransaction]:
        try:
            yield tx
        except Exception as e:
            previous = tx.state
            tx.fail()
            if isinstance(e, WebApiError):
                logger.error(
                    f"{tx.mode.value} delegation failed in state {previous.value}: {_describe(e)}"
                )
            else:
                logger.exception(
                    f"{tx.mode.value} delegation failed in state {previous.value}"
                )
            raise DelegationError(public_message, mode=tx.mode.value) from e

    def selection_url(self, mode: Mode, user_id: str) -> str:
        """Return the backend's principal selection UI URL for ``user_id``."""
        query = urlencode(
            {
                "client_id": self._config.credentials.client_id,
                "response_type": "code",
                "redirect_uri": self._config.callback_uri(mode),
                "user": user_id,
            }
        )
        return f"{self._config.web_api_url}/oauth/authorize?{query}"

    async def register(self, mode: Union[Mode, str], delegate_id: str) -> Redirection:
        """Register a session for ``delegate_id`` and plan the redirect.

        Returns:
            The backend session id, to be bound to the browser by the caller,
            and the selection UI location to redirect the browser to.
        """
        tx = FlowTransaction(_coerce_mode(mode))
        with self._transaction(tx, _REGISTER_FAILED[tx.mode]):
            if not delegate_id:
                raise ProtocolError("delegate identifier is required")
            registered = await self._client.register(tx.mode, delegate_id)
            tx.advance(FlowState.REGISTERED)
            location = self.selection_url(tx.mode, registered.user_id)
            tx.advance(FlowState.REDIRECTED)
        logger.info(f"Registered {tx.mode.value} session, redirecting to selection UI")
        return Redirection(
            session_id=registered.session_id,
            user_id=registered.user_id,
            location=location,
        )

    async def _exchange_code(
        self, tx: FlowTransaction, session_id: Optional[str], code: Optional[str]
    ) -> DelegationSession:
        if not session_id:
            raise ProtocolError("callback is missing the web API session id")
        if not code:
            raise ProtocolError("callback is missing the authorization code")
        logger.info("Exchanging authorization code to access token...")
        token = await self._client.exchange_code(code, self._config.callback_uri(tx.mode))
        session = DelegationSession(
            web_api_session_id=session_id, mode=tx.mode
        ).with_token(token.access_token)
        tx.advance(FlowState.TOKEN_EXCHANGED)
        return session

    async def get_authorizations(
        self, session: DelegationSession, principals: List[Principal]
    ) -> List[AuthorizationResult]:
        """Look up authorizations for all ``principals`` concurrently.

        All lookups are allowed to settle. If any failed, no results are
        returned and :class:`AggregateFailure` is raised with the failures in
        completion order. Otherwise results follow the order of
        ``principals``.
        """
        if not principals:
            return []
        tasks = [
            asyncio.ensure_future(self._client.get_authorization(session, p))
            for p in principals
        ]
        errors: List[BaseException] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                try:
                    await next_done
                except Exception as e:
                    errors.append(e)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        if errors:
            raise AggregateFailure(errors, len(tasks)) from errors[0]
        return [task.result() for task in tasks]

    async def complete_hpa(
        self, session_id: Optional[str], code: Optional[str]
    ) -> List[AuthorizationResult]:
        """Finish an HPA delegation and return the principals' authorizations."""
        tx = FlowTransaction.resume(Mode.HPA)
        with self._transaction(tx, _COMPLETE_FAILED[Mode.HPA]):
            session = await self._exchange_code(tx, session_id, code)
            principals = await self._client.get_delegate(session)
            tx.advance(FlowState.DELEGATE_RESOLVED)
            authorizations = await self.get_authorizations(session, principals)
            tx.advance(FlowState.AUTHORIZATIONS_RESOLVED)
            tx.advance(FlowState.DONE)
        return authorizations

    async def complete_ypa(
        self, session_id: Optional[str], code: Optional[str]
    ) -> RolesResult:
        """Finish a YPA delegation and return the delegate's company roles."""
        tx = FlowTransaction.resume(Mode.YPA)
        with self._transaction(tx, _COMPLETE_FAILED[Mode.YPA]):
            session = await self._exchange_code(tx, session_id, code)
            roles = await self._client.get_roles(session)
            tx.advance(FlowState.ROLES_RESOLVED)
            tx.advance(FlowState.DONE)
        return roles

    async def complete(
        self, mode: Union[Mode, str], session_id: Optional[str], code: Optional[str]
    ) -> Union[List[AuthorizationResult], RolesResult]:
        if _coerce_mode(mode) is Mode.HPA:
            return await self.complete_hpa(session_id, code)
        return await self.complete_ypa(session_id, code)
