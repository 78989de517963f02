"""
Tests for CLI commands — run, list, status, versions, catalog, log, backup.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from provisioner.main import cli


def _make_catalog(tmp_path: Path) -> Path:
    """A catalog whose steps only touch marker files under tmp_path."""
    m = tmp_path / "machine"
    content = textwrap.dedent(f"""\
        settings:
          continue_on_failure: true
        steps:
          - name: base-dir
            groups: [base]
            detect:
              - path: {m}/base
            apply:
              - shell: mkdir -p {m}/base
            undo_hint: rm -rf {m}/base
          - name: tool
            description: A tool that lives in base
            groups: [devtools]
            depends_on: [base-dir]
            detect:
              - path: {m}/base/tool
            apply:
              - shell: touch {m}/base/tool
            version: echo tool 1.2.3
            undo_hint: rm {m}/base/tool
          - name: broken
            groups: [devtools]
            detect:
              - path: {m}/never
            apply:
              - shell: echo "disk full" >&2; exit 1
            undo_hint: nothing to undo
          - name: after-broken
            depends_on: [broken]
            detect:
              - path: {m}/after
            apply:
              - shell: touch {m}/after
            undo_hint: rm {m}/after
    """)
    path = tmp_path / "provision.yml"
    path.write_text(content)
    return path


def _invoke(catalog: Path, *args: str, **kwargs):
    return CliRunner().invoke(cli, ["--catalog", str(catalog), *args], **kwargs)


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Workstation provisioner" in result.output
        for command in ("run", "list", "status", "versions", "catalog", "log", "backup", "restore"):
            assert command in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_catalog(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["list"])
        assert result.exit_code == 2
        assert "No provision.yml found" in result.output

    def test_catalog_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROVISION_CATALOG", str(_make_catalog(tmp_path)))
        result = CliRunner().invoke(cli, ["list"])
        assert result.exit_code == 0
        assert "base-dir" in result.output


class TestRunCommand:
    def test_applies_with_dependencies(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        result = _invoke(catalog, "run", "--select", "tool")
        assert result.exit_code == 0, result.output
        assert (tmp_path / "machine" / "base" / "tool").exists()
        assert "✓ base-dir" in result.output
        assert "applied" in result.output

    def test_second_run_is_idempotent(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        _invoke(catalog, "run", "-s", "tool")
        result = _invoke(catalog, "run", "-s", "tool")
        assert result.exit_code == 0
        assert "✓ tool — already_satisfied" in result.output
        assert "already_satisfied=2" in result.output
        assert "applied=0" in result.output

    def test_failure_exits_1(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        result = _invoke(catalog, "run", "-s", "devtools")
        assert result.exit_code == 1
        assert "disk full" in result.output
        assert "undo: nothing to undo" in result.output
        # independent steps still ran
        assert (tmp_path / "machine" / "base" / "tool").exists()

    def test_dependents_of_failure_skipped(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        result = _invoke(catalog, "run", "-s", "after-broken")
        assert result.exit_code == 1
        assert "dependency failed: broken" in result.output
        assert not (tmp_path / "machine" / "after").exists()

    def test_dry_run_changes_nothing(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        result = _invoke(catalog, "run", "--all", "--dry-run")
        assert result.exit_code == 0
        assert "dry-run: would apply" in result.output
        assert not (tmp_path / "machine").exists()

    def test_no_selection(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "run")
        assert result.exit_code == 2
        assert "No steps selected" in result.output

    def test_all_and_select_conflict(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "run", "--all", "-s", "tool")
        assert result.exit_code == 2

    def test_unknown_step(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "run", "-s", "nope")
        assert result.exit_code == 2
        assert "Unknown step or group 'nope'" in result.output

    def test_cycle_applies_nothing(self, tmp_path: Path):
        marker = tmp_path / "touched"
        catalog = tmp_path / "cycle.yml"
        catalog.write_text(textwrap.dedent(f"""\
            steps:
              - name: a
                depends_on: [b]
                detect: [{{path: {marker}}}]
                apply: [{{shell: touch {marker}}}]
              - name: b
                depends_on: [a]
                detect: [{{path: {marker}}}]
                apply: [{{shell: touch {marker}}}]
        """))
        result = _invoke(catalog, "run", "--all")
        assert result.exit_code == 2
        assert "cycle" in result.output
        assert not marker.exists()

    def test_json_output(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "run", "-s", "tool", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["plan"]["steps"] == ["base-dir", "tool"]
        assert data["plan"]["closure"] == ["base-dir"]
        assert data["report"]["status"] == "ok"
        assert [r["status"] for r in data["report"]["results"]] == ["applied", "applied"]

    def test_json_plan_error(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "run", "-s", "nope", "--json")
        assert result.exit_code == 2
        data = json.loads(result.output)
        assert data == {"error": "Unknown step or group 'nope'", "exit_code": 2}

    def test_report_file(self, tmp_path: Path):
        report = tmp_path / "out" / "report.json"
        result = _invoke(
            _make_catalog(tmp_path), "run", "-s", "base-dir",
            "--report", str(report), "--format", "json",
        )
        assert result.exit_code == 0
        assert json.loads(report.read_text())["counts"]["applied"] == 1

    def test_run_is_logged(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        _invoke(catalog, "run", "-s", "base-dir")
        result = _invoke(catalog, "log", "--json")
        assert result.exit_code == 0
        entries = json.loads(result.output)
        assert len(entries) == 1
        assert entries[0]["plan"] == ["base-dir"]
        assert entries[0]["status"] == "ok"


class TestListCommand:
    def test_names_one_per_line(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "list")
        assert result.exit_code == 0
        assert result.output.splitlines() == ["base-dir", "tool", "broken", "after-broken"]

    def test_group_filter(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "list", "--group", "devtools")
        assert result.output.splitlines() == ["tool", "broken"]

    def test_unknown_group(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "list", "-g", "games")
        assert result.exit_code == 2

    def test_long(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "list", "--long")
        assert "A tool that lives in base" in result.output
        assert "depends on: base-dir" in result.output

    def test_json(self, tmp_path: Path):
        data = json.loads(_invoke(_make_catalog(tmp_path), "list", "--json").output)
        assert data["groups"]["devtools"] == ["tool", "broken"]


class TestStatusCommand:
    def test_never_applies(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "status")
        assert result.exit_code == 1
        assert "0 satisfied, 4 unsatisfied, 0 unknown" in result.output
        assert not (tmp_path / "machine").exists()

    def test_all_satisfied(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        _invoke(catalog, "run", "-s", "tool")
        result = _invoke(catalog, "status", "-s", "tool", "-s", "base")
        assert result.exit_code == 0
        assert "✓" in result.output

    def test_json(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "status", "-s", "base", "--json")
        data = json.loads(result.output)
        assert data["steps"][0] == {
            "name": "base-dir",
            "state": "unsatisfied",
            "description": "",
            "groups": ["base"],
        }
        assert data["exit_code"] == 1

    def test_report_file(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        text_report = tmp_path / "status.txt"
        json_report = tmp_path / "status.json"
        _invoke(catalog, "status", "--report", str(text_report))
        _invoke(catalog, "status", "--report", str(json_report), "--format", "json")
        assert "after-broken  unsatisfied" in text_report.read_text()
        assert json.loads(json_report.read_text())["counts"]["unsatisfied"] == 4


class TestVersionsCommand:
    def test_versions(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "versions")
        assert result.exit_code == 0
        assert "tool: tool 1.2.3" in result.output
        assert "base-dir" not in result.output

    def test_json(self, tmp_path: Path):
        data = json.loads(_invoke(_make_catalog(tmp_path), "versions", "--json").output)
        assert data == {"versions": {"tool": "tool 1.2.3"}}


class TestCatalogCheck:
    def test_valid(self, tmp_path: Path):
        result = _invoke(_make_catalog(tmp_path), "catalog", "check")
        assert result.exit_code == 0
        assert "Catalog is valid" in result.output
        assert "Steps:  4" in result.output

    def test_example_catalog_is_valid(self):
        example = Path(__file__).resolve().parents[1] / "provision.example.yml"
        result = _invoke(example, "catalog", "check", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["errors"] == []
        assert "Step 'apt-upgrade' re-applies on every run (force_apply)" in data["warnings"]

    def test_unknown_dependency(self, tmp_path: Path):
        catalog = tmp_path / "bad.yml"
        catalog.write_text(textwrap.dedent(f"""\
            steps:
              - name: a
                depends_on: [ghost]
                detect: [{{path: {tmp_path}}}]
                apply: [{{shell: "true"}}]
        """))
        result = _invoke(catalog, "catalog", "check", "--json")
        assert result.exit_code == 2
        data = json.loads(result.output)
        assert data["valid"] is False
        assert "unknown step 'ghost'" in data["errors"][0]
        assert "Step 'a' has no undo_hint" in data["warnings"]

    def test_reports_adapter_availability(self, tmp_path: Path):
        data = json.loads(_invoke(_make_catalog(tmp_path), "catalog", "check", "--json").output)
        assert set(data["adapters"]) == {"shell", "filesystem", "packages"}
        assert data["adapters"]["filesystem"] is True
        assert data["adapters"]["shell"] is True

    def test_warns_about_missing_package_managers(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        from provisioner.adapters.packages import manager

        monkeypatch.setattr(manager.shutil, "which", lambda name: None)
        catalog = tmp_path / "pkgs.yml"
        catalog.write_text(textwrap.dedent(f"""\
            steps:
              - name: tools
                detect: [{{path: {tmp_path}/x}}]
                apply:
                  - packages: {{manager: apt, names: [git]}}
                undo_hint: sudo apt-get remove git
        """))
        result = _invoke(catalog, "catalog", "check", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["adapters"]["packages"] is False
        assert "Adapter 'packages' is not available on this machine (used by: tools)" in data["warnings"]


class TestLogCommand:
    def test_empty(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["log"])
        assert result.exit_code == 0
        assert "No runs logged" in result.output

    def test_shows_failures(self, tmp_path: Path):
        catalog = _make_catalog(tmp_path)
        _invoke(catalog, "run", "-s", "broken")
        result = _invoke(catalog, "log", "-n", "1")
        assert "failed" in result.output
        assert "✗ broken" in result.output


class TestBackupCommands:
    PASS = "correct horse"

    def _ssh_dir(self, tmp_path: Path) -> Path:
        ssh = tmp_path / "src" / ".ssh"
        ssh.mkdir(parents=True)
        (ssh / "id_ed25519").write_text("PRIVATE\n")
        (ssh / "id_ed25519.pub").write_text("ssh-ed25519 AAAA\n")
        return ssh

    def test_backup_to_file_and_restore(self, tmp_path: Path):
        runner = CliRunner()
        out = tmp_path / "backup.b64"
        result = runner.invoke(
            cli,
            ["backup", "ssh", "--ssh-dir", str(self._ssh_dir(tmp_path)), "--output", str(out)],
            env={"PROVISION_BACKUP_PASSPHRASE": self.PASS},
        )
        assert result.exit_code == 0, result.output
        assert out.stat().st_mode & 0o777 == 0o600

        home = tmp_path / "home"
        home.mkdir()
        result = runner.invoke(
            cli,
            ["restore", "ssh", "--file", str(out), "--home", str(home), "--json"],
            input=f"{self.PASS}\n",
        )
        assert result.exit_code == 0, result.output
        assert (home / ".ssh" / "id_ed25519").read_text() == "PRIVATE\n"

    def test_restore_wrong_passphrase(self, tmp_path: Path):
        runner = CliRunner()
        out = tmp_path / "backup.b64"
        runner.invoke(
            cli,
            ["backup", "ssh", "--ssh-dir", str(self._ssh_dir(tmp_path)), "-o", str(out)],
            env={"PROVISION_BACKUP_PASSPHRASE": self.PASS},
        )
        result = runner.invoke(
            cli,
            ["restore", "ssh", "-f", str(out), "--home", str(tmp_path / "home")],
            env={"PROVISION_BACKUP_PASSPHRASE": "not the one"},
        )
        assert result.exit_code == 1
        assert "wrong passphrase" in result.output

    def test_restore_needs_one_source(self, tmp_path: Path):
        result = CliRunner().invoke(
            cli, ["restore", "ssh"], env={"PROVISION_BACKUP_PASSPHRASE": self.PASS},
        )
        assert result.exit_code == 2

    def test_backup_missing_dir(self, tmp_path: Path):
        result = CliRunner().invoke(
            cli,
            ["backup", "ssh", "--ssh-dir", str(tmp_path / "none"), "-o", str(tmp_path / "x")],
            env={"PROVISION_BACKUP_PASSPHRASE": self.PASS},
        )
        assert result.exit_code == 1
        assert "does not exist" in result.output
