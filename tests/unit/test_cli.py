"""Tests for the command line interface."""

import json

import pytest
from typer.testing import CliRunner

from webapi_client.cli import app
from webapi_client.signing import compute_checksum_header

runner = CliRunner()

CONFIG_YAML = """
credentials:
  client_id: cli-client
  client_secret: cli-secret
  api_oauth_secret: cli-oauth
web_api_url: https://webapi.example
client_base_url: https://client.example
"""


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return str(path)


def test_config_show_masks_secrets(config_path):
    result = runner.invoke(app, ["config", "show", "--config", config_path])

    assert result.exit_code == 0
    assert "cli-secret" not in result.output
    assert "cli-oauth" not in result.output
    assert "callback hpa: https://client.example/callback/hpa" in result.output
    shown = json.loads(result.output.split("callback hpa")[0])
    assert shown["credentials"]["client_id"] == "cli-client"


def test_checksum_command(config_path):
    path = "/service/hpa/api/delegate/S1?requestId=r&endUserId=e"
    ts = "2017-03-01T12:34:56+02:00"

    result = runner.invoke(app, ["checksum", path, "--timestamp", ts, "--config", config_path])

    assert result.exit_code == 0
    assert result.output.strip() == compute_checksum_header("cli-client", "cli-secret", path, ts)


def test_invalid_config_exits_with_error(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("web_api_url: https://webapi.example\n")

    result = runner.invoke(app, ["config", "show", "--config", str(path)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
