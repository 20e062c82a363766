"""Error taxonomy for Web API delegation calls."""

from __future__ import annotations

from typing import List, Optional


class WebApiError(Exception):
    """Base class for all errors raised by webapi_client."""


class ConfigurationError(WebApiError):
    """Credentials or settings are missing or invalid."""


class TransportError(WebApiError):
    """No response was received from the backend."""

    def __init__(self, message: str, timeout: bool = False) -> None:
        super().__init__(message)
        self.timeout = timeout


class BackendStatusError(WebApiError):
    """The backend answered with a status other than 200."""

    def __init__(self, status_code: int, body: str, url: str = "") -> None:
        super().__init__(f"Backend returned status {status_code} for {url or 'request'}")
        self.status_code = status_code
        self.body = body
        self.url = url


class ResponseFormatError(WebApiError):
    """The backend answered 200 but the payload has an unexpected shape."""

    def __init__(self, message: str, raw_body: str = "") -> None:
        super().__init__(message)
        self.raw_body = raw_body


class AggregateFailure(WebApiError):
    """One or more parallel authorization lookups failed.

    ``errors`` holds every failure in completion order; the first one is also
    chained as ``__cause__`` when raised by the flow.
    """

    def __init__(self, errors: List[BaseException], total: int) -> None:
        super().__init__(
            f"{len(errors)} of {total} authorization lookups failed: {errors[0]}"
        )
        self.errors = errors
        self.total = total

    @property
    def first(self) -> BaseException:
        return self.errors[0]


class ProtocolError(WebApiError):
    """Correlation data needed to continue a delegation is missing or invalid."""


class FlowStateError(WebApiError):
    """A delegation transaction was asked to make an illegal transition."""


class DelegationError(WebApiError):
    """Generic failure reported outward when a delegation transaction aborts.

    ``public_message`` is safe to show to the end user. The underlying cause
    is available as ``__cause__`` for operators only.
    """

    def __init__(self, public_message: str, mode: Optional[str] = None) -> None:
        super().__init__(public_message)
        self.public_message = public_message
        self.mode = mode
