# src/rubrica/cli.py

import asyncio
from datetime import timedelta
from pathlib import Path

import typer

from rubrica.ai.base import PydanticAIBackend
from rubrica.auth import create_access_token
from rubrica.errors import RubricaError
from rubrica.io.extraction import TextExtractor, truncate_text
from rubrica.logging import configure_logging
from rubrica.ratelimit import RateLimiter
from rubrica.settings import get_settings
from rubrica.store.database import Database
from rubrica.store.repository import ServiceRepository

app = typer.Typer(help="Rubrica: rubric extraction and AI-assisted grading service.")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)."),
) -> None:
    """
    Run the HTTP API under uvicorn.
    """
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "rubrica.server:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("init-db")
def init_db(
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override RUBRICA_DATABASE_URL."
    ),
) -> None:
    """
    Create all tables (no-op for tables that already exist).
    """
    url = database_url or get_settings().database_url
    db = Database(url)
    try:
        db.create_all()
    finally:
        db.dispose()
    typer.echo(f"Initialized schema at {url}")


@app.command("sweep-rate-limits")
def sweep_rate_limits(
    retention_minutes: int | None = typer.Option(
        None, "--retention-minutes", min=1, help="Keep windows newer than this (default from settings)."
    ),
) -> None:
    """
    Delete rate-limit counters older than the retention window.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    minutes = retention_minutes or settings.rate_limit_retention_minutes
    db = Database(settings.database_url)
    try:
        removed = RateLimiter(ServiceRepository(db)).sweep(timedelta(minutes=minutes))
    except RubricaError as ex:
        typer.echo(f"Sweep failed: {ex}", err=True)
        raise typer.Exit(code=1)
    finally:
        db.dispose()
    typer.echo(f"Removed {removed} rate-limit windows older than {minutes} minutes")


@app.command("extract-text")
def extract_text(
    path: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        help="Document to extract (.txt, .md, .docx, .pdf).",
    ),
    max_chars: int | None = typer.Option(
        None, "--max-chars", min=1, help="Truncate the output to this many characters."
    ),
) -> None:
    """
    Print the text the pipelines would see for a local document.
    """
    extractor = TextExtractor(PydanticAIBackend())
    try:
        text = asyncio.run(extractor.extract(path.name, path.read_bytes()))
    except RubricaError as ex:
        typer.echo(f"Extraction failed: {ex}", err=True)
        raise typer.Exit(code=1)
    if max_chars:
        text = truncate_text(text, max_chars)
    typer.echo(text)


@app.command("issue-token")
def issue_token(
    user_id: str = typer.Argument(..., help="Subject (owner id) for the token."),
) -> None:
    """
    Print a bearer token for local testing, signed with RUBRICA_JWT_SECRET.
    """
    settings = get_settings()
    if not settings.jwt_secret:
        typer.echo("RUBRICA_JWT_SECRET is not set", err=True)
        raise typer.Exit(code=2)
    typer.echo(create_access_token(settings.jwt_secret, user_id, algorithm=settings.jwt_algorithm))
