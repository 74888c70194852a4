"""Tests for rubrica.cli module."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from rubrica.auth import JWTTokenResolver
from rubrica.cli import app
from rubrica.ratelimit import window_key
from rubrica.store.database import Database
from rubrica.store.repository import ServiceRepository

runner = CliRunner()


@pytest.fixture
def cli_settings(settings):
    with patch("rubrica.cli.get_settings", return_value=settings), patch(
        "rubrica.cli.configure_logging"
    ):
        yield settings


class TestInitDb:
    def test_creates_schema(self, tmp_path) -> None:
        url = f"sqlite:///{tmp_path / 'fresh.db'}"

        result = runner.invoke(app, ["init-db", "--database-url", url])

        assert result.exit_code == 0
        assert "Initialized schema" in result.output
        db = Database(url)
        try:
            assert ServiceRepository(db).increment_rate_limit("u", "e", "w") == 1
        finally:
            db.dispose()


class TestSweepRateLimits:
    def test_removes_old_windows(self, cli_settings, db, service) -> None:
        now = datetime.now(timezone.utc)
        service.increment_rate_limit("u", "process-rubric", window_key(now - timedelta(hours=3)))
        service.increment_rate_limit("u", "process-rubric", window_key(now))

        result = runner.invoke(app, ["sweep-rate-limits", "--retention-minutes", "60"])

        assert result.exit_code == 0
        assert "Removed 1 rate-limit windows" in result.output


class TestExtractText:
    def test_plain_text(self, tmp_path) -> None:
        doc = tmp_path / "notes.md"
        doc.write_text("  # Heading\n\nBody text.  \n")

        result = runner.invoke(app, ["extract-text", str(doc)])

        assert result.exit_code == 0
        assert result.output.strip() == "# Heading\n\nBody text."

    def test_truncation(self, tmp_path) -> None:
        doc = tmp_path / "long.txt"
        doc.write_text("abc" * 1000)

        result = runner.invoke(app, ["extract-text", str(doc), "--max-chars", "200"])

        assert result.exit_code == 0
        assert "middle section truncated" in result.output
        assert len(result.output.rstrip("\n")) == 200

    def test_unsupported_type(self, tmp_path) -> None:
        doc = tmp_path / "image.png"
        doc.write_bytes(b"\x89PNG")

        result = runner.invoke(app, ["extract-text", str(doc)])

        assert result.exit_code == 1
        assert "Extraction failed" in result.output

    def test_missing_file(self, tmp_path) -> None:
        result = runner.invoke(app, ["extract-text", str(tmp_path / "nope.txt")])
        assert result.exit_code != 0


class TestIssueToken:
    def test_issues_resolvable_token(self, cli_settings) -> None:
        result = runner.invoke(app, ["issue-token", "user-9"])

        assert result.exit_code == 0
        token = result.output.strip()
        assert JWTTokenResolver(cli_settings.jwt_secret).resolve(token) == "user-9"

    def test_requires_secret(self, settings) -> None:
        no_secret = settings.model_copy(update={"jwt_secret": None})
        with patch("rubrica.cli.get_settings", return_value=no_secret):
            result = runner.invoke(app, ["issue-token", "user-9"])

        assert result.exit_code == 2


class TestServe:
    def test_runs_uvicorn_factory(self, cli_settings) -> None:
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(app, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        args, kwargs = mock_run.call_args
        assert args == ("rubrica.server:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9000
