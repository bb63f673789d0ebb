"""Tests for the CLI module."""

import pytest
from click.testing import CliRunner
from conftest import FakeMailStore, make_mailbox

import gmail_sender_sweep.cli as cli_module
from gmail_sender_sweep.cli import _parse_selection, cli


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a throwaway workbook and action log."""
    import gmail_sender_sweep.constants as constants

    monkeypatch.setattr(constants, "WORKBOOK_PATH", tmp_path / "workbook.db")
    monkeypatch.setattr(constants, "ACTION_LOG_PATH", tmp_path / "actions.json")
    return tmp_path


@pytest.fixture
def fake_mail(cli_env, monkeypatch):
    mail = FakeMailStore(make_mailbox())
    monkeypatch.setattr(cli_module, "get_mail_store", lambda unit="threads": mail)
    return mail


def test_cli_help():
    """CLI --help should work and show commands."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ["scan", "resume", "status", "senders", "variations", "clean", "keepers", "export", "auth", "reset"]:
        assert command in result.output


def test_cli_version():
    """CLI --version should show version."""
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_scan_no_credentials(cli_env, monkeypatch):
    """Scan without credentials should show clear error."""
    import gmail_sender_sweep.auth as auth_module

    monkeypatch.setattr(auth_module, "CREDENTIALS_PATH", cli_env / "nonexistent.json")
    monkeypatch.setattr(auth_module, "TOKEN_PATH", cli_env / "token.json")
    monkeypatch.setattr(auth_module, "CONFIG_DIR", cli_env)

    runner = CliRunner()
    result = runner.invoke(cli, ["scan"])
    assert result.exit_code != 0
    assert "Credentials file not found" in result.output


def test_status_empty(cli_env):
    """Status before any scan should not crash."""
    runner = CliRunner()
    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "No scan has been run yet" in result.output


@pytest.mark.parametrize("args", [["senders"], ["clean"], ["export", "-o", "out.csv"], ["variations", "--rebuild"]])
def test_commands_need_directory(cli_env, args):
    runner = CliRunner()
    result = runner.invoke(cli, args)
    assert result.exit_code != 0
    assert "No sender directory found" in result.output


def test_scan_resume_and_list(fake_mail):
    """A budgeted scan pauses, resume finishes it and the senders are listed."""
    runner = CliRunner()

    result = runner.invoke(cli, ["scan", "--page-size", "8", "--max-units", "20"])
    assert result.exit_code == 0, result.output
    assert "MAX_REACHED" in result.output

    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "INCOMPLETE" in result.output

    result = runner.invoke(cli, ["resume"])
    assert result.exit_code == 0, result.output
    assert "SUCCESS" in result.output

    result = runner.invoke(cli, ["senders"])
    assert result.exit_code == 0
    assert "alice@example.com" in result.output
    assert "me@example.com" not in result.output

    result = runner.invoke(cli, ["variations"])
    assert result.exit_code == 0
    assert "alice@example.com" in result.output


def test_scan_while_running(fake_mail, cli_env):
    from gmail_sender_sweep.checkpoint import CheckpointManager
    from gmail_sender_sweep.workbook import Workbook

    with Workbook(cli_env / "workbook.db") as wb:
        CheckpointManager(wb).acquire_lock()

    runner = CliRunner()
    result = runner.invoke(cli, ["scan"])
    assert result.exit_code != 0
    assert "already running" in result.output

    result = runner.invoke(cli, ["reset", "--lock", "--yes"])
    assert result.exit_code == 0
    result = runner.invoke(cli, ["scan"])
    assert result.exit_code == 0, result.output


def test_clean_dry_run(fake_mail):
    runner = CliRunner()
    runner.invoke(cli, ["scan"])

    result = runner.invoke(cli, ["clean", "-e", "bob@example.com"])
    assert result.exit_code == 0
    assert "DRY RUN" in result.output
    assert fake_mail.trashed == []


def test_clean_picker(fake_mail):
    """The picker numbers senders most recent first."""
    runner = CliRunner()
    runner.invoke(cli, ["scan"])

    result = runner.invoke(cli, ["clean"], input="2\n")
    assert result.exit_code == 0
    assert "carol@example.org (5 items)" in result.output
    assert "DRY RUN" in result.output


def test_clean_execute(fake_mail, cli_env):
    runner = CliRunner()
    runner.invoke(cli, ["scan"])

    result = runner.invoke(cli, ["clean", "--execute", "-e", "bob@example.com"], input="TRASH\n")
    assert result.exit_code == 0, result.output
    assert len(fake_mail.trashed) == 5
    assert (cli_env / "actions.json").exists()

    result = runner.invoke(cli, ["senders"])
    assert "bob@example.com" not in result.output


def test_clean_wrong_confirmation(fake_mail):
    runner = CliRunner()
    runner.invoke(cli, ["scan"])

    result = runner.invoke(
        cli, ["clean", "--execute", "--action", "delete", "-e", "bob@example.com"], input="trash\n"
    )
    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert fake_mail.deleted == []


def test_keepers(cli_env):
    runner = CliRunner()
    result = runner.invoke(cli, ["keepers", "add", "Keep@Example.com"])
    assert result.exit_code == 0
    assert "keep@example.com" in result.output

    result = runner.invoke(cli, ["keepers", "list"])
    assert "keep@example.com" in result.output

    result = runner.invoke(cli, ["keepers", "remove", "keep@example.com"])
    assert result.exit_code == 0
    result = runner.invoke(cli, ["keepers", "remove", "keep@example.com"])
    assert result.exit_code != 0


def test_export(fake_mail, cli_env):
    runner = CliRunner()
    runner.invoke(cli, ["scan"])
    output = cli_env / "senders.json"

    result = runner.invoke(cli, ["export", "--format", "json", "-o", str(output)])
    assert result.exit_code == 0
    assert output.exists()


def test_reset(fake_mail):
    runner = CliRunner()
    runner.invoke(cli, ["scan"])

    result = runner.invoke(cli, ["reset", "--yes"])
    assert result.exit_code == 0

    result = runner.invoke(cli, ["status"])
    assert "No scan has been run yet" in result.output


def test_parse_selection():
    assert _parse_selection("1,3,5-7", 10) == [0, 2, 4, 5, 6]
    assert _parse_selection("2, 2, 12", 10) == [1]
    assert _parse_selection("x", 10) is None


@pytest.mark.parametrize("command", ["scan", "resume"])
def test_time_budget_above_ceiling_rejected(cli_env, command):
    runner = CliRunner()
    result = runner.invoke(cli, [command, "--time-budget", "3600"])
    assert result.exit_code == 2
    assert "execution ceiling" in result.output


def test_refused_scan_keeps_stored_unit(fake_mail, cli_env):
    """A scan refused by the lock must not change the running scan's unit."""
    from gmail_sender_sweep.checkpoint import CheckpointManager
    from gmail_sender_sweep.workbook import Workbook

    runner = CliRunner()
    runner.invoke(cli, ["scan", "--max-units", "10"])
    with Workbook(cli_env / "workbook.db") as wb:
        CheckpointManager(wb).acquire_lock()

    result = runner.invoke(cli, ["scan", "--unit", "messages"])
    assert result.exit_code != 0
    assert "already running" in result.output

    with Workbook(cli_env / "workbook.db") as wb:
        assert CheckpointManager(wb).get_value("unit") == "threads"


def test_resume_page_size(fake_mail):
    runner = CliRunner()
    runner.invoke(cli, ["scan", "--page-size", "8", "--max-units", "20"])
    fake_mail.list_calls.clear()

    result = runner.invoke(cli, ["resume", "--page-size", "4"])
    assert result.exit_code == 0, result.output
    assert {size for _, _, size in fake_mail.list_calls} == {4}
