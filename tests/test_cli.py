"""Tests for the CLI interface."""

import json
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from leafnote.cli import app
from leafnote.config import reset_config
from leafnote.db.store import SESSION_KEY, get_store, reset_store
from leafnote.sync.supabase import SupabaseError


@pytest.fixture(autouse=True)
def setup_test_db(tmp_path, monkeypatch):
    """Point the CLI at a fresh database with no remote services."""
    reset_store()
    reset_config()
    monkeypatch.setenv("LEAFNOTE_DB_PATH", str(tmp_path / "leafnote.db"))
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "SUPABASE_SERVICE_ROLE_KEY", "RESEND_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    yield

    reset_store()
    reset_config()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def supabase(monkeypatch):
    """Stand-in Supabase client wired into the CLI."""
    client = MagicMock()
    client.access_token = None
    monkeypatch.setattr("leafnote.cli.get_supabase_client", lambda: client)
    return client


def _lists():
    return get_store().load_lists()


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Track the books" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestAddCommands:
    """Tests for add-read and add-to-read."""

    def test_add_read(self, runner: CliRunner):
        """Test adding a finished book."""
        result = runner.invoke(app, ["add-read", "Dune", "--rating", "5", "--offline"])

        assert result.exit_code == 0
        assert "Added to read: Dune" in result.stdout
        lists = _lists()
        assert lists.read_books[0].title == "Dune"
        assert lists.read_books[0].rating == 5
        assert lists.read_books[0].short_description

    def test_add_read_with_author(self, runner: CliRunner):
        """Test the author option."""
        result = runner.invoke(app, ["add-read", "Emma", "-r", "4", "-a", "Jane Austen", "--offline"])

        assert result.exit_code == 0
        assert _lists().read_books[0].author == "Jane Austen"

    def test_add_read_bad_rating(self, runner: CliRunner):
        """Test ratings outside 1-5 are rejected."""
        result = runner.invoke(app, ["add-read", "Dune", "--rating", "6", "--offline"])

        assert result.exit_code != 0
        assert _lists().read_books == []

    def test_add_read_blank_title(self, runner: CliRunner):
        """Test a blank title is rejected."""
        result = runner.invoke(app, ["add-read", "  ", "--rating", "3", "--offline"])

        assert result.exit_code == 1
        assert "Title is required" in result.stdout

    def test_add_to_read(self, runner: CliRunner):
        """Test adding to the to-read list."""
        result = runner.invoke(app, ["add-to-read", "Middlemarch", "--offline"])

        assert result.exit_code == 0
        assert "Added to to-read: Middlemarch" in result.stdout
        assert _lists().to_read_books[0].title == "Middlemarch"


class TestListCommand:
    """Tests for the list command."""

    def test_empty(self, runner: CliRunner):
        """Test the empty state."""
        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "No books yet" in result.stdout

    def test_both_lists(self, runner: CliRunner):
        """Test both tables are shown."""
        runner.invoke(app, ["add-read", "Dune", "-r", "5", "--offline"])
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "Dune" in result.stdout
        assert "Emma" in result.stdout

    def test_status_filter(self, runner: CliRunner):
        """Test --status shows one list only."""
        runner.invoke(app, ["add-read", "Dune", "-r", "5", "--offline"])
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])

        result = runner.invoke(app, ["list", "--status", "to_read"])

        assert result.exit_code == 0
        assert "Emma" in result.stdout
        assert "Dune" not in result.stdout


class TestMoveAndRemove:
    """Tests for finish, requeue and remove."""

    def test_finish(self, runner: CliRunner):
        """Test finishing a queued book by id prefix."""
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])
        prefix = _lists().to_read_books[0].id[:8]

        result = runner.invoke(app, ["finish", prefix, "--rating", "4"])

        assert result.exit_code == 0
        lists = _lists()
        assert lists.to_read_books == []
        assert lists.read_books[0].title == "Emma"

    def test_requeue(self, runner: CliRunner):
        """Test moving a read book back."""
        runner.invoke(app, ["add-read", "Dune", "-r", "5", "--offline"])
        prefix = _lists().read_books[0].id[:8]

        result = runner.invoke(app, ["requeue", prefix])

        assert result.exit_code == 0
        assert _lists().to_read_books[0].title == "Dune"

    def test_finish_wrong_list(self, runner: CliRunner):
        """Test finishing a book that is already read."""
        runner.invoke(app, ["add-read", "Dune", "-r", "5", "--offline"])
        prefix = _lists().read_books[0].id[:8]

        result = runner.invoke(app, ["finish", prefix, "--rating", "4"])

        assert result.exit_code == 1
        assert "not on your to-read list" in result.stdout

    def test_remove_with_confirmation(self, runner: CliRunner):
        """Test remove asks first."""
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])
        prefix = _lists().to_read_books[0].id[:8]

        result = runner.invoke(app, ["remove", prefix], input="y\n")

        assert result.exit_code == 0
        assert "Removed: Emma" in result.stdout
        assert _lists().is_empty

    def test_remove_cancelled(self, runner: CliRunner):
        """Test declining keeps the book."""
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])
        prefix = _lists().to_read_books[0].id[:8]

        result = runner.invoke(app, ["remove", prefix], input="n\n")

        assert result.exit_code == 0
        assert len(_lists().to_read_books) == 1

    def test_unknown_id(self, runner: CliRunner):
        """Test an unknown id."""
        result = runner.invoke(app, ["remove", "zzzz", "--yes"])
        assert result.exit_code == 1
        assert "No book with id" in result.stdout


class TestRecommendCommand:
    """Tests for recommend."""

    def test_offline(self, runner: CliRunner):
        """Test local suggestions from the to-read list."""
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])

        result = runner.invoke(app, ["recommend", "--offline"])

        assert result.exit_code == 0
        assert "Recommendations" in result.stdout
        assert "Emma" in result.stdout

    def test_empty_lists(self, runner: CliRunner):
        """Test the fallback suggestion for a new user."""
        result = runner.invoke(app, ["recommend", "--offline", "--max", "1"])

        assert result.exit_code == 0
        assert "Recommendations" in result.stdout


class TestImportExport:
    """Tests for export and import."""

    def test_export_json(self, runner: CliRunner, tmp_path):
        """Test JSON export to a chosen path."""
        runner.invoke(app, ["add-read", "Dune", "-r", "5", "--offline"])
        output = tmp_path / "out.json"

        result = runner.invoke(app, ["export", "--output", str(output)])

        assert result.exit_code == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["readBooks"][0]["title"] == "Dune"

    def test_export_csv(self, runner: CliRunner, tmp_path):
        """Test CSV export."""
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])
        output = tmp_path / "out.csv"

        result = runner.invoke(app, ["export", "--format", "csv", "-o", str(output)])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8").startswith("status,id,title,rating,date\n")

    def test_export_bad_format(self, runner: CliRunner):
        """Test an unknown format."""
        result = runner.invoke(app, ["export", "--format", "xml"])
        assert result.exit_code == 1
        assert "Invalid format" in result.stdout

    def test_import_round_trip(self, runner: CliRunner, tmp_path):
        """Test importing an export replaces the lists."""
        runner.invoke(app, ["add-read", "Dune", "-r", "5", "--offline"])
        output = tmp_path / "backup.csv"
        runner.invoke(app, ["export", "-f", "csv", "-o", str(output)])
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])

        result = runner.invoke(app, ["import", str(output), "--yes"])

        assert result.exit_code == 0
        assert "Read: 1, To read: 0" in result.stdout
        lists = _lists()
        assert [b.title for b in lists.read_books] == ["Dune"]
        assert lists.to_read_books == []

    def test_import_invalid(self, runner: CliRunner, tmp_path):
        """Test a bad file leaves the lists alone."""
        runner.invoke(app, ["add-to-read", "Emma", "--offline"])
        bad = tmp_path / "bad.json"
        bad.write_text('{"books": []}', encoding="utf-8")

        result = runner.invoke(app, ["import", str(bad), "--yes"])

        assert result.exit_code == 1
        assert "Invalid file format" in result.stdout
        assert len(_lists().to_read_books) == 1


class TestAccountCommands:
    """Tests for commands that need Supabase."""

    def test_whoami_anonymous(self, runner: CliRunner):
        """Test whoami without a session."""
        result = runner.invoke(app, ["auth", "whoami"])
        assert result.exit_code == 0
        assert "Not signed in" in result.stdout

    def test_login_without_config(self, runner: CliRunner):
        """Test auth commands explain missing configuration."""
        result = runner.invoke(app, ["auth", "login", "reader@example.com"])
        assert result.exit_code == 1
        assert "Supabase not configured" in result.stdout

    def test_sync_without_config(self, runner: CliRunner):
        """Test sync without configuration."""
        result = runner.invoke(app, ["sync"])
        assert result.exit_code == 1

    def test_report_without_config(self, runner: CliRunner):
        """Test the report needs the service-role key."""
        result = runner.invoke(app, ["report", "--no-send"])
        assert result.exit_code == 1
        assert "SERVICE_ROLE_KEY" in result.stdout

    def test_verify_without_config(self, runner: CliRunner):
        """Test verify explains missing configuration."""
        result = runner.invoke(app, ["auth", "verify", "reader@example.com", "--code", "123456"])
        assert result.exit_code == 1
        assert "Supabase not configured" in result.stdout

    def test_verify_bad_code(self, runner: CliRunner, supabase):
        """Test an expired code is reported and nobody is signed in."""
        supabase.request.side_effect = SupabaseError("Token has expired or is invalid", 403, "otp_expired")

        result = runner.invoke(app, ["auth", "verify", "reader@example.com", "--code", "000000"])

        assert result.exit_code == 1
        assert "invalid or has expired" in result.stdout
        assert get_store().get_json(SESSION_KEY) is None


class TestAppOpenEvent:
    """Tests for the event recorded when a command starts."""

    def test_app_open_tracked(self, runner: CliRunner, supabase):
        """Test every run records an app_open event."""
        result = runner.invoke(app, ["auth", "whoami"])

        assert result.exit_code == 0
        table, row = supabase.insert.call_args[0]
        assert table == "leafnote_events"
        assert row["event_name"] == "app_open"
        assert row["anon_id"] == get_store().get_or_create_anon_id()
