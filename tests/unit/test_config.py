"""Tests for configuration loading."""

import pytest

from webapi_client.config import WebApiConfig, load_config
from webapi_client.contracts import Mode
from webapi_client.errors import ConfigurationError

CONFIG_YAML = """
credentials:
  client_id: file-client
  client_secret: file-secret
  api_oauth_secret: file-oauth
web_api_url: https://webapi.example/
port: 8443
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "WEBAPI_CLIENT_CONFIG",
        "WEBAPI_CLIENT_ID",
        "WEBAPI_CLIENT_SECRET",
        "WEBAPI_OAUTH_SECRET",
        "WEBAPI_URL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(CONFIG_YAML)
    monkeypatch.setenv("WEBAPI_CLIENT_CONFIG", str(config_path))

    config = load_config()
    assert config.credentials.client_id == "file-client"
    assert config.web_api_url == "https://webapi.example"
    assert config.port == 8443
    assert config.base_url == "http://localhost:8443"


def test_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(CONFIG_YAML)
    monkeypatch.setenv("WEBAPI_CLIENT_SECRET", "env-secret")
    monkeypatch.setenv("WEBAPI_URL", "https://other.example")

    config = load_config(str(config_path))
    assert config.credentials.client_secret == "env-secret"
    assert config.credentials.client_id == "file-client"
    assert config.web_api_url == "https://other.example"


def test_missing_credentials_raise_configuration_error(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("web_api_url: https://webapi.example\n")

    with pytest.raises(ConfigurationError):
        load_config(str(config_path))


def test_blank_secret_is_rejected(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(CONFIG_YAML.replace("file-secret", "'  '"))

    with pytest.raises(ConfigurationError):
        load_config(str(config_path))


def test_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(str(tmp_path / "nope.yaml"))


def test_callback_uri_per_mode(config):
    assert config.callback_uri(Mode.HPA) == "https://client.test/callback/hpa"
    assert config.callback_uri("ypa") == "https://client.test/callback/ypa"


def test_callback_uri_is_uri_encoded(config):
    spaced = config.model_copy(update={"client_base_url": "https://client.test/my app"})
    assert spaced.callback_uri(Mode.HPA) == "https://client.test/my%20app/callback/hpa"


def test_base_url_uses_https_with_ssl():
    config = WebApiConfig(
        credentials={"client_id": "c", "client_secret": "s", "api_oauth_secret": "o"},
        web_api_url="https://webapi.example",
        port=9000,
        ssl={"private_key": "key.pem", "certificate": "cert.pem"},
    )
    assert config.base_url == "https://localhost:9000"


def test_config_is_immutable(config):
    with pytest.raises(Exception):
        config.web_api_url = "https://evil.example"


def test_redacted_masks_secrets(config):
    data = config.redacted()
    assert data["credentials"]["client_id"] == "client-1"
    assert data["credentials"]["client_secret"] == "***"
    assert data["credentials"]["api_oauth_secret"] == "***"
    assert config.credentials.client_secret == "secret-1"
