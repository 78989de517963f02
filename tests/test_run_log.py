"""
Tests for the append-only run log.
"""

from pathlib import Path

import pytest

from provisioner.core.persistence.run_log import (
    RunLogEntry,
    RunLogWriter,
    StepOutcome,
    resolve_run_log_path,
)


class TestRunLogWriter:
    def test_write_and_read(self, tmp_path: Path):
        writer = RunLogWriter(tmp_path / "logs" / "runs.ndjson")
        entry = RunLogEntry(
            operation_id="run-1",
            selectors=["shell"],
            plan=["zsh", "starship"],
            status="partial",
            counts={"applied": 1, "failed": 1},
            outcomes=[
                StepOutcome(step="zsh", status="applied"),
                StepOutcome(step="starship", status="failed", error="disk full"),
            ],
        )
        assert writer.write(entry)
        entries = writer.read_all()
        assert len(entries) == 1
        assert entries[0].outcomes[1].error == "disk full"

    def test_append_only(self, tmp_path: Path):
        writer = RunLogWriter(tmp_path / "runs.ndjson")
        for i in range(5):
            writer.write(RunLogEntry(operation_id=f"run-{i}"))
        assert len(writer.path.read_text().splitlines()) == 5
        assert [e.operation_id for e in writer.read_recent(2)] == ["run-3", "run-4"]
        assert writer.read_recent(0) == []

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "runs.ndjson"
        writer = RunLogWriter(path)
        writer.write(RunLogEntry(operation_id="good"))
        with path.open("a") as f:
            f.write("{not json\n\n")
        writer.write(RunLogEntry(operation_id="also-good"))
        assert [e.operation_id for e in writer.read_all()] == ["good", "also-good"]

    def test_missing_file(self, tmp_path: Path):
        assert RunLogWriter(tmp_path / "none.ndjson").read_all() == []

    def test_unwritable_location(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        writer = RunLogWriter(blocker / "runs.ndjson")
        assert writer.write(RunLogEntry(operation_id="x")) is False


class TestResolvePath:
    def test_env_wins(self, tmp_path: Path):
        # isolated_env points PROVISION_RUN_LOG into tmp_path
        assert resolve_run_log_path("~/elsewhere.ndjson") == tmp_path / "state" / "runs.ndjson"

    def test_configured_then_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("PROVISION_RUN_LOG")
        monkeypatch.setenv("HOME", str(tmp_path))
        assert resolve_run_log_path("~/runs.ndjson") == tmp_path / "runs.ndjson"
        assert resolve_run_log_path() == tmp_path / ".local" / "state" / "provisioner" / "runs.ndjson"
