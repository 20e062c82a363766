"""Command line interface for running the delegation client."""

from __future__ import annotations

import json
import logging
from typing import Optional

import typer

from webapi_client.config import load_config
from webapi_client.errors import ConfigurationError
from webapi_client.signing import compute_checksum_header

app = typer.Typer(help="CLI for the Web API delegation client")

config_app = typer.Typer(help="Commands for inspecting configuration")
app.add_typer(config_app, name="config")


def _load(config_path: Optional[str]):
    try:
        return load_config(config_path)
    except ConfigurationError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.callback()
def main() -> None:
    """webapi-client CLI entry point."""
    pass


@app.command("serve")
def serve(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
    host: str = typer.Option("0.0.0.0", help="Interface to bind"),
    log_level: str = typer.Option("info", help="Logging level"),
) -> None:
    """
    Serve the registration and callback routes.

    Listens on the configured port, over https when an ``ssl`` section with a
    private key and certificate is configured.

    Example:
        webapi-client serve --config config.yaml
    """
    import uvicorn

    from webapi_client.app import create_app

    config = _load(config_path)
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    ssl_options = {}
    if config.ssl:
        ssl_options = {
            "ssl_keyfile": config.ssl.private_key,
            "ssl_certfile": config.ssl.certificate,
            "ssl_keyfile_password": config.ssl.pass_phrase,
        }

    typer.echo(
        f"Browse to {config.base_url}/register/hpa/[TEST_HETU] "
        f"or {config.base_url}/register/ypa/[TEST_HETU]"
    )
    uvicorn.run(
        create_app(config),
        host=host,
        port=config.port,
        log_level=log_level.lower(),
        **ssl_options,
    )


@config_app.command("show")
def config_show(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """Print the effective configuration with secrets masked."""
    config = _load(config_path)
    typer.echo(json.dumps(config.redacted(), indent=2))
    for mode in ("hpa", "ypa"):
        typer.echo(f"callback {mode}: {config.callback_uri(mode)}")


@app.command("checksum")
def checksum(
    path: str = typer.Argument(..., help="Request path including query string"),
    timestamp: Optional[str] = typer.Option(None, help="Timestamp to sign"),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """
    Print the checksum header the client would send for ``path``.

    Useful when the backend rejects requests: compare the output against the
    backend's expectation for the same path and timestamp.

    Example:
        webapi-client checksum "/service/hpa/api/delegate/abc?requestId=x&endUserId=y"
    """
    config = _load(config_path)
    creds = config.credentials
    typer.echo(
        compute_checksum_header(creds.client_id, creds.client_secret, path, timestamp)
    )


if __name__ == "__main__":
    app()
