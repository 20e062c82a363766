"""webapi_client: delegated authorization against the Web API backend."""

from .client import BackendClient
from .config import ClientCredentials, WebApiConfig, load_config
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
    ConfigurationError,
    DelegationError,
    ResponseFormatError,
    TransportError,
    WebApiError,
)
from .flow import DelegationFlow, FlowState
from .signing import compute_basic_auth_header, compute_checksum_header

__version__ = "0.1.0"
__all__ = [
    "AggregateFailure",
    "AuthorizationResult",
    "BackendClient",
    "BackendStatusError",
    "ClientCredentials",
    "ConfigurationError",
    "DelegationError",
    "DelegationFlow",
    "DelegationSession",
    "FlowState",
    "Mode",
    "Principal",
    "Redirection",
    "ResponseFormatError",
    "RolesResult",
    "TransportError",
    "WebApiConfig",
    "WebApiError",
    "compute_basic_auth_header",
    "compute_checksum_header",
    "load_config",
]
