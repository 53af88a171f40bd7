"""CLI entrypoint for kb-assist."""

from __future__ import annotations

import json
import os
from typing import Optional

import requests
import typer

app = typer.Typer(name="kba", help="kb-assist command-line interface")
documents_app = typer.Typer(name="documents", help="Inspect and remove stored documents")
app.add_typer(documents_app, name="documents")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip("/")
    env_host = os.environ.get("KBA_HOST")
    if env_host:
        return env_host.rstrip("/")
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=120, **kwargs)
    except requests.RequestException as exc:
        typer.echo(f"Could not reach {base}: {exc}", err=True)
        raise typer.Exit(code=1)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def ingest(
    url: str = typer.Argument(..., help="Page to add to the knowledge base"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Fetch one page and store it."""
    resp = _request("POST", "/ingest", host=host, json={"url": url})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def ask(
    message: str = typer.Argument(..., help="Question for the assistant"),
    sources: bool = typer.Option(False, "--sources", help="Print the documents the answer drew on"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask a question against the knowledge base."""
    resp = _request("POST", "/chat", host=host, json={"message": message})
    payload = resp.json()
    typer.echo(payload["response"])
    if sources and payload.get("sources"):
        typer.echo("\nSources:")
        for index, source in enumerate(payload["sources"], start=1):
            label = source.get("title") or source.get("source_url") or source["document_id"]
            typer.echo(f"  [Document {index}] {label} ({source['similarity'] * 100:.1f}%)")


@documents_app.command("list")
def list_documents(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List stored documents, newest first."""
    resp = _request("GET", "/documents", host=host)
    rows = [
        {
            "id": doc["id"],
            "source_url": doc["metadata"].get("source_url"),
            "created_at": doc["created_at"],
            "chars": len(doc["content"]),
        }
        for doc in resp.json()
    ]
    typer.echo(json.dumps(rows, indent=2))


@documents_app.command("delete")
def delete_document(
    document_id: str = typer.Argument(..., help="Document identifier"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Delete a document; deleting an unknown id is a no-op."""
    resp = _request("DELETE", f"/documents/{document_id}", host=host)
    typer.echo(json.dumps(resp.json()))


@app.command()
def serve(
    bind: str = typer.Option("127.0.0.1", "--bind", help="Interface for the web server"),
    port: int = typer.Option(8000, "--port", help="Port for the web server"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("kb_assist.app:app", host=bind, port=port)


if __name__ == "__main__":
    app()
