"""Tests for CLI argument handling and actions in main.py."""
from pathlib import Path
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from netguard.main import main
from netguard.queue_constants import STORAGE_KEY
from netguard.queue_state import Priority, QueuedRequest
from netguard.queue_store import JsonFileStore


def _seed(path: Path) -> None:
    requests = [
        QueuedRequest(id="req_a", url="/a", method="POST", enqueued_at=1_700_000_000.0, priority=Priority.HIGH),
        QueuedRequest(id="req_b", url="/b", method="PUT", enqueued_at=1_700_000_060.0),
    ]
    JsonFileStore(path).set(STORAGE_KEY, [r.to_dict() for r in requests])


class TestCLIArguments:
    """Tests for command-line argument validation."""

    def test_no_action_specified_exits_with_code_2(self, tmp_path):
        """Test that a missing action flag gives a usage error."""
        runner = CliRunner()
        result = runner.invoke(main, ["--store", str(tmp_path / "q.json")])
        assert result.exit_code == 2
        assert "must be specified" in result.output

    def test_two_actions_specified_exits_with_code_2(self, tmp_path):
        """Test that --status with --clear gives a usage error."""
        runner = CliRunner()
        result = runner.invoke(main, ["--status", "--clear", "--store", str(tmp_path / "q.json")])
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    def test_missing_store_exits_with_code_2(self):
        """Test that missing --store gives a usage error."""
        runner = CliRunner()
        result = runner.invoke(main, ["--status"])
        assert result.exit_code == 2
        assert "store" in result.output.lower()

    def test_help_exits_with_code_0(self):
        """Test that --help exits cleanly with code 0."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "replay" in result.output.lower()
        assert "probe" in result.output.lower()

    def test_probe_without_base_url_exits_with_code_2(self, tmp_path):
        """Test that --probe with a relative health URL needs --base-url."""
        runner = CliRunner()
        result = runner.invoke(main, ["--probe", "--store", str(tmp_path / "q.json")])
        assert result.exit_code == 2
        assert "--base-url is required" in result.output

    def test_replay_without_base_url_exits_with_code_2(self, tmp_path):
        """Test that --replay with a relative health URL needs --base-url."""
        runner = CliRunner()
        result = runner.invoke(main, ["--replay", "--store", str(tmp_path / "q.json")])
        assert result.exit_code == 2
        assert "--base-url is required" in result.output


class TestCLIActions:
    """Tests for the queue actions."""

    def test_status_on_empty_store(self, tmp_path):
        """Test that --status on a missing file reports an empty queue."""
        runner = CliRunner()
        result = runner.invoke(main, ["--status", "--store", str(tmp_path / "q.json")])
        assert result.exit_code == 0
        assert "Queued requests: 0" in result.output
        assert "Oldest" not in result.output

    def test_status_counts_by_priority(self, tmp_path):
        """Test that --status lists totals per priority and the oldest entry."""
        path = tmp_path / "q.json"
        _seed(path)
        runner = CliRunner()
        result = runner.invoke(main, ["--status", "--store", str(path)])
        assert result.exit_code == 0
        assert "Queued requests: 2" in result.output
        assert "high: 1" in result.output
        assert "medium: 1" in result.output
        assert "low: 0" in result.output
        assert "Oldest:" in result.output

    def test_clear_empties_store(self, tmp_path):
        """Test that --clear drops every request from the file."""
        path = tmp_path / "q.json"
        _seed(path)
        runner = CliRunner()
        result = runner.invoke(main, ["--clear", "--store", str(path)])
        assert result.exit_code == 0
        assert "Cleared 2 queued request(s)" in result.output
        assert JsonFileStore(path).get(STORAGE_KEY) == []

    def test_probe_unreachable_exits_with_code_1(self, tmp_path):
        """Test that a failed liveness probe exits with code 1."""
        runner = CliRunner()
        with patch("netguard.status_probe.make_probe", return_value=AsyncMock(return_value=False)):
            result = runner.invoke(
                main, ["--probe", "--base-url", "https://api.example.com", "--store", str(tmp_path / "q.json")]
            )
        assert result.exit_code == 1
        assert "unreachable" in result.output

    def test_probe_reachable(self, tmp_path):
        """Test that a healthy endpoint is reported reachable."""
        runner = CliRunner()
        with patch("netguard.status_probe.make_probe", return_value=AsyncMock(return_value=True)):
            result = runner.invoke(
                main, ["--probe", "--health-url", "https://api.example.com/health", "--store", str(tmp_path / "q.json")]
            )
        assert result.exit_code == 0
        assert "https://api.example.com/health is reachable" in result.output

    def test_replay_sends_queued_requests(self, tmp_path):
        """Test that --replay sends every request in priority order."""
        path = tmp_path / "q.json"
        _seed(path)
        sender = AsyncMock(return_value=None)
        runner = CliRunner()
        with (
            patch("netguard.status_probe.make_probe", return_value=AsyncMock(return_value=True)),
            patch("netguard.queue_sender.HttpxSender", return_value=sender),
        ):
            result = runner.invoke(main, ["--replay", "--base-url", "https://api.example.com", "--store", str(path)])
        assert result.exit_code == 0
        assert [c.args[0].id for c in sender.await_args_list] == ["req_a", "req_b"]
        assert "Queued requests: 0" in result.output
        assert JsonFileStore(path).get(STORAGE_KEY) == []

    def test_replay_skipped_when_unreachable(self, tmp_path):
        """Test that --replay leaves the queue alone if the server is down."""
        path = tmp_path / "q.json"
        _seed(path)
        sender = AsyncMock(return_value=None)
        runner = CliRunner()
        with (
            patch("netguard.status_probe.make_probe", return_value=AsyncMock(return_value=False)),
            patch("netguard.queue_sender.HttpxSender", return_value=sender),
        ):
            result = runner.invoke(main, ["--replay", "--base-url", "https://api.example.com", "--store", str(path)])
        assert result.exit_code == 1
        sender.assert_not_awaited()
        assert len(JsonFileStore(path).get(STORAGE_KEY)) == 2
