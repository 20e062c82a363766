"""Data contracts exchanged with the Web API backend."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

from .errors import ProtocolError


class Mode(str, Enum):
    """Delegation modes supported by the backend."""

    HPA = "hpa"  # person acting for a person
    YPA = "ypa"  # person acting for an organization


class SignedRequest(BaseModel):
    """A single outgoing request with its authentication headers."""

    method: str
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)


class RegisterResponse(BaseModel):
    """Payload of the session registration call."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: str = Field(alias="sessionId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)


class TokenResponse(BaseModel):
    """Payload of the OAuth token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None


class Principal(BaseModel):
    """A person selected in the backend's selection UI.

    Only ``personId`` is interpreted; all other attributes are kept as-is.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    person_id: str = Field(alias="personId", min_length=1)


class AuthorizationResult(BaseModel):
    """Authorization of the delegate for one principal."""

    model_config = ConfigDict(extra="allow")

    principal: Principal


class RolesResult(RootModel[Any]):
    """Organization roles of the delegate, passed through untouched."""


class DelegationSession(BaseModel):
    """Correlation state of one delegation transaction after token exchange."""

    model_config = ConfigDict(frozen=True)

    web_api_session_id: str
    mode: Mode
    access_token: Optional[str] = None

    @field_validator("web_api_session_id")
    @classmethod
    def session_id_present(cls, v: str) -> str:
        if not v:
            raise ValueError("web_api_session_id must not be empty")
        return v

    def with_token(self, access_token: str) -> "DelegationSession":
        """Return a copy bound to ``access_token``; the session id is kept."""
        return self.model_copy(update={"access_token": access_token})

    @property
    def bearer(self) -> str:
        if not self.access_token:
            raise ProtocolError("session has no access token")
        return f"Bearer {self.access_token}"


class Redirection(BaseModel):
    """Outcome of registration: correlation id and where to send the browser."""

    session_id: str
    user_id: str
    location: str


def dump_authorizations(results: List[AuthorizationResult]) -> List[Dict[str, Any]]:
    """Serialize authorization results with the backend's field names."""
    return [r.model_dump(by_alias=True) for r in results]
