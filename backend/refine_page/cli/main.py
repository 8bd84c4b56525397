"""CLI entrypoint for refine-page."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="rfp", help="refine-page command-line interface")

DEFAULT_HOST = "http://127.0.0.1:5180"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("RFP_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=120, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def capture(
    url: str = typer.Argument(..., help="Page to capture"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Tag to attach (repeatable)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Capture a page through the backend's headless browser."""
    payload = {"type": "CAPTURE_PAGE", "url": url, "tags": tag or []}
    resp = _request("POST", "/capture", host=host, json=payload)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command("list")
def list_snapshots(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List stored snapshots, newest first."""
    resp = _request("GET", "/snapshots", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def show(
    snapshot_id: str = typer.Argument(..., help="Snapshot identifier"),
    annotations: bool = typer.Option(False, "--annotations", help="Print W3C annotations instead of the record"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show one snapshot."""
    path = f"/snapshots/{snapshot_id}/annotations" if annotations else f"/snapshots/{snapshot_id}"
    resp = _request("GET", path, host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def delete(
    snapshot_id: str = typer.Argument(..., help="Snapshot identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete a snapshot."""
    resp = _request("DELETE", f"/snapshots/{snapshot_id}", host=host)
    typer.echo(json.dumps(resp.json()))


@app.command()
def export(
    output: Path = typer.Argument(..., help="Target file (.zip for a bundle, otherwise JSON)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Export every snapshot."""
    output = output.expanduser()
    if output.suffix.lower() == ".zip":
        resp = _request("GET", "/export.zip", host=host)
        output.write_bytes(resp.content)
    else:
        resp = _request("GET", "/export", host=host)
        output.write_text(json.dumps(resp.json(), indent=2), encoding="utf-8")
    typer.echo(json.dumps({"status": "ok", "path": str(output)}))


@app.command("import")
def import_snapshots(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export or ZIP bundle"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Import snapshots; ids already stored are skipped."""
    source = source.expanduser()
    if source.suffix.lower() == ".zip":
        resp = _request(
            "POST",
            "/import.zip",
            host=host,
            data=source.read_bytes(),
            headers={"Content-Type": "application/zip"},
        )
    else:
        resp = _request("POST", "/import", host=host, json=json.loads(source.read_text(encoding="utf-8")))
    typer.echo(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    app()
