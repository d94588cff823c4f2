"""Command line interface for the Episodarr stream API."""
from __future__ import annotations

import json
from typing import Optional

import httpx
import typer

from .client import create_client


DEFAULT_API_BASE = "http://127.0.0.1:8000"

app = typer.Typer(help="Resolve episode streams through a running Episodarr service.")
mapping_app = typer.Typer(help="Inspect and clear cached provider mappings.")
app.add_typer(mapping_app, name="mapping")


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the Episodarr service.",
        show_default=True,
        envvar="EPISODARR_API_BASE",
    )


def _echo_json(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def _fail_on_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        detail = response.json().get("detail", response.text)
    except ValueError:
        detail = response.text
    typer.echo(f"Error {response.status_code}: {detail}", err=True)
    raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Address to bind; defaults to EPISODARR_PROXY_HOST."),
    port: Optional[int] = typer.Option(None, help="Port to bind; 0 picks a free one."),
) -> None:
    """Run the stream API and proxy in the foreground."""

    from ..stream_api.__main__ import serve as run_server
    from ..stream_api.settings import StreamSettings

    overrides: dict[str, object] = {}
    if host is not None:
        overrides["proxy_host"] = host
    if port is not None:
        overrides["proxy_port"] = port
    settings = StreamSettings(**overrides)

    run_server(settings, on_ready=_announce_server)


def _announce_server(base_url: str) -> None:
    # the server binds a free port by default, so client commands need the real address
    typer.echo(f"Episodarr listening on {base_url}")
    if base_url != DEFAULT_API_BASE:
        typer.echo(f"Point client commands at it with: export EPISODARR_API_BASE={base_url}")


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(api_base) as client:
        response = client.get("/health")
        response.raise_for_status()
        _echo_json(response.json())


@app.command()
def sources(
    catalogue_id: int = typer.Argument(..., help="Catalogue (AniList) id of the title."),
    title: str = typer.Option(..., help="Primary catalogue title."),
    alt_title: Optional[str] = typer.Option(None, help="Alternate (usually English) title."),
    episode: int = typer.Option(..., min=0, help="Episode number to resolve."),
    dub: bool = typer.Option(False, "--dub/--sub", help="Prefer the dubbed release.", show_default=True),
    api_base: str = _api_base_option(),
) -> None:
    """Resolve playable sources for one episode."""

    payload: dict[str, object] = {
        "catalogue_id": catalogue_id,
        "title": title,
        "episode": episode,
        "audio_type": "dub" if dub else "sub",
    }
    if alt_title is not None:
        payload["alt_title"] = alt_title

    with create_client(api_base) as client:
        response = client.post("/sources", json=payload)
        _fail_on_error(response)
        _echo_json(response.json())


@mapping_app.command("show")
def show_mapping(
    catalogue_id: int = typer.Argument(..., help="Catalogue id to look up."),
    api_base: str = _api_base_option(),
) -> None:
    """Display the cached provider slug for a catalogue id."""

    with create_client(api_base) as client:
        response = client.get(f"/mappings/{catalogue_id}")
        _fail_on_error(response)
        _echo_json(response.json())


@mapping_app.command("clear")
def clear_mapping(
    catalogue_id: int = typer.Argument(..., help="Catalogue id whose mapping should be forgotten."),
    api_base: str = _api_base_option(),
) -> None:
    """Forget the cached slug so the next request matches the title again."""

    with create_client(api_base) as client:
        response = client.delete(f"/mappings/{catalogue_id}")
        _fail_on_error(response)
    typer.echo(f"Cleared mapping for {catalogue_id}.")
