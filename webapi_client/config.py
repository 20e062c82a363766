from __future__ import annotations

import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .contracts import Mode
from .errors import ConfigurationError

# Characters left untouched by JavaScript's encodeURI.
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"

_ENV_OVERRIDES = {
    "WEBAPI_CLIENT_ID": ("credentials", "client_id"),
    "WEBAPI_CLIENT_SECRET": ("credentials", "client_secret"),
    "WEBAPI_OAUTH_SECRET": ("credentials", "api_oauth_secret"),
    "WEBAPI_URL": (None, "web_api_url"),
}


class ClientCredentials(BaseModel):
    """Client identity issued by the Web API backend."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    api_oauth_secret: str

    @field_validator("client_id", "client_secret", "api_oauth_secret")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class SSLConfig(BaseModel):
    """TLS material for serving the callback endpoints over https."""

    model_config = ConfigDict(frozen=True)

    private_key: str
    certificate: str
    pass_phrase: Optional[str] = None


class WebApiConfig(BaseModel):
    """Top-level configuration model."""

    model_config = ConfigDict(frozen=True)

    credentials: ClientCredentials
    web_api_url: str
    port: int = 8080
    client_base_url: Optional[str] = None
    ssl: Optional[SSLConfig] = None
    request_id: str = "pythonClient"
    end_user_id: str = "pythonEndUser"
    timeout: float = 10.0
    session_cookie_name: str = "webApiSessionId"

    @field_validator("web_api_url", "client_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("must start with http:// or https://")
        return v

    @field_validator("timeout")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @property
    def base_url(self) -> str:
        """Public base URL of this client, used to build callback URIs."""
        if self.client_base_url:
            return self.client_base_url
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://localhost:{self.port}"

    def callback_uri(self, mode: Mode) -> str:
        """Return the redirect URI registered for ``mode``."""
        return quote(f"{self.base_url}/callback/{Mode(mode).value}", safe=_URI_SAFE)

    def redacted(self) -> Dict[str, Any]:
        """Return the configuration as a dict with secrets masked."""
        data = self.model_dump()
        for key in ("client_secret", "api_oauth_secret"):
            data["credentials"][key] = "***"
        if data.get("ssl") and data["ssl"].get("pass_phrase"):
            data["ssl"]["pass_phrase"] = "***"
        return data


def _apply_env(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if not value:
            continue
        if section is None:
            data[key] = value
        else:
            data.setdefault(section, {})
            data[section][key] = value
    return data


def load_config(path: Optional[str] = None) -> WebApiConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to WEBAPI_CLIENT_CONFIG
            env variable or 'config.yaml' in the current directory.

    Raises:
        ConfigurationError: If credentials or the backend URL are missing or
            invalid. Raised at startup so that no request is ever attempted
            with a broken configuration.
    """

    config_path = path or os.getenv("WEBAPI_CLIENT_CONFIG", "config.yaml")
    data: Dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    elif path is not None:
        raise ConfigurationError(f"Config file not found: {config_path}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    try:
        return WebApiConfig(**_apply_env(data))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
