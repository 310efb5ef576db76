"""Command line interface for the Streamhub API."""
from __future__ import annotations

import json
from typing import Any

import httpx
import typer

from .client import create_client


DEFAULT_API_BASE = "http://localhost:8000"

app = typer.Typer(help="Interact with the Streamhub provider gateway.")


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the Streamhub API service.",
        show_default=True,
        envvar="STREAMHUB_API_BASE",
    )


def _echo_response(response: httpx.Response) -> None:
    """Print the JSON body; error envelopes go to stderr with a non-zero exit."""

    try:
        payload: Any = response.json()
    except ValueError:
        response.raise_for_status()
        typer.echo(response.text)
        return
    if response.is_error:
        if isinstance(payload, dict) and "error" in payload:
            typer.echo(f"Error ({response.status_code}): {payload['error']}", err=True)
            for suggestion in payload.get("suggestions") or []:
                typer.echo(f"  - {suggestion}", err=True)
            raise typer.Exit(code=1)
        response.raise_for_status()
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(api_base) as client:
        response = client.get("/health")
        response.raise_for_status()
        typer.echo(json.dumps(response.json(), indent=2, ensure_ascii=False))


@app.command()
def providers(api_base: str = _api_base_option()) -> None:
    """List the enabled providers from the manifest."""

    with create_client(api_base) as client:
        _echo_response(client.get("/providers"))


@app.command()
def stream(
    provider: str = typer.Argument(..., help="Provider identifier or alias."),
    link: str = typer.Argument(..., help="Content link to resolve."),
    content_type: str = typer.Option("movie", "--type", help="Content type passed to the provider."),
    refresh: bool = typer.Option(
        False,
        "--refresh/--no-refresh",
        help="Bypass the module cache before resolving.",
        show_default=True,
    ),
    api_base: str = _api_base_option(),
) -> None:
    """Resolve LINK through PROVIDER and print the stream candidates."""

    params: dict[str, object] = {"provider": provider, "link": link, "type": content_type}
    if refresh:
        params["refresh"] = "true"

    with create_client(api_base) as client:
        _echo_response(client.get("/stream", params=params))


@app.command()
def modules(
    provider: str = typer.Argument(..., help="Provider identifier or alias."),
    api_base: str = _api_base_option(),
) -> None:
    """Show which module roles a provider publishes and their sizes."""

    with create_client(api_base) as client:
        _echo_response(client.get("/test-provider", params={"provider": provider, "action": "info"}))


@app.command("clear-cache")
def clear_cache(
    provider: str = typer.Argument(..., help="Provider identifier or alias."),
    api_base: str = _api_base_option(),
) -> None:
    """Evict a provider's cached module set."""

    with create_client(api_base) as client:
        _echo_response(
            client.get("/test-provider", params={"provider": provider, "action": "clear-cache"})
        )
