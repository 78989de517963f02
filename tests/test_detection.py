"""
Tests for detection probes and version lookup.
"""

import subprocess
from pathlib import Path

import pytest

from provisioner.core.engine.executor import Engine
from provisioner.core.engine.registry import StepRegistry
from provisioner.core.models.catalog import ProbeSpec
from provisioner.core.models.step import DetectState, Step
from provisioner.core.services import detection
from provisioner.core.services.detection import (
    command_exists,
    describe_probe,
    evaluate_probe,
    evaluate_probes,
    is_installed,
)
from provisioner.core.services.versions import get_version


class TestProbes:
    def test_command(self):
        assert evaluate_probe(ProbeSpec(command="sh"))
        assert not evaluate_probe(ProbeSpec(command="definitely-not-a-real-binary-xyz"))

    def test_command_absolute_path(self, tmp_path: Path):
        script = tmp_path / "tool"
        script.write_text("#!/bin/sh\n")
        assert not command_exists(str(script))
        script.chmod(0o755)
        assert command_exists(str(script))

    def test_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert not evaluate_probe(ProbeSpec(path="~/.cargo"))
        (tmp_path / ".cargo").mkdir()
        assert evaluate_probe(ProbeSpec(path="~/.cargo"))

    def test_file_contains(self, tmp_path: Path):
        rc = tmp_path / ".zshrc"
        probe = ProbeSpec(file_contains={"path": str(rc), "text": "starship init"})
        assert not evaluate_probe(probe)
        rc.write_text('eval "$(starship init zsh)"\n')
        assert evaluate_probe(probe)

    def test_shell(self):
        assert evaluate_probe(ProbeSpec(shell="test 1 -eq 1"))
        assert not evaluate_probe(ProbeSpec(shell="test 1 -eq 2"))

    def test_shell_timeout_is_an_error(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(detection, "PROBE_TIMEOUT", 1)
        with pytest.raises(RuntimeError, match="timed out"):
            evaluate_probe(ProbeSpec(shell="sleep 5"))

    def test_package_probe_uses_checker(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(detection, "is_installed", lambda name, manager: (name, manager) == ("git", "apt"))
        assert evaluate_probe(ProbeSpec(package={"manager": "apt", "name": "git"}))
        assert not evaluate_probe(ProbeSpec(package={"manager": "apt", "name": "zsh"}))

    def test_all_must_hold(self, tmp_path: Path):
        probes = [ProbeSpec(command="sh"), ProbeSpec(path=str(tmp_path / "missing"))]
        assert not evaluate_probes(probes)
        assert evaluate_probes(probes[:1])

    def test_empty_is_vacuously_true(self):
        assert evaluate_probes([])

    def test_describe(self):
        assert describe_probe(ProbeSpec(command="git")) == "command git"
        assert describe_probe(ProbeSpec(package={"manager": "brew", "name": "eza"})) == "package brew:eza"


class TestIsInstalled:
    def test_apt_status(self, monkeypatch: pytest.MonkeyPatch):
        def fake_run(cmd, **kw):
            return subprocess.CompletedProcess(cmd, 0, stdout="install ok installed", stderr="")

        monkeypatch.setattr(detection.subprocess, "run", fake_run)
        assert is_installed("git", "apt")

    def test_cargo_list(self, monkeypatch: pytest.MonkeyPatch):
        def fake_run(cmd, **kw):
            return subprocess.CompletedProcess(cmd, 0, stdout="eza v0.18.0:\n    eza\n", stderr="")

        monkeypatch.setattr(detection.subprocess, "run", fake_run)
        assert is_installed("eza", "cargo")
        assert not is_installed("dust", "cargo")

    def test_missing_checker(self, monkeypatch: pytest.MonkeyPatch):
        def fake_run(cmd, **kw):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(detection.subprocess, "run", fake_run)
        with pytest.raises(RuntimeError, match="checker for dnf not found"):
            is_installed("git", "dnf")

    def test_checker_timeout(self, monkeypatch: pytest.MonkeyPatch):
        def fake_run(cmd, **kw):
            raise subprocess.TimeoutExpired(cmd, kw["timeout"])

        monkeypatch.setattr(detection.subprocess, "run", fake_run)
        with pytest.raises(RuntimeError, match="Timeout checking package eza with brew"):
            is_installed("eza", "brew")

    def test_unusable_checker_makes_step_unknown(self, monkeypatch: pytest.MonkeyPatch):
        def fake_run(cmd, **kw):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(detection.subprocess, "run", fake_run)
        probes = [ProbeSpec(package={"manager": "flatpak", "name": "org.gimp.GIMP"})]
        step = Step(name="gimp", detect=lambda: evaluate_probes(probes, "gimp"), apply=lambda: None)
        assert Engine(StepRegistry([step])).detect(step) == DetectState.UNKNOWN


class TestVersions:
    def test_first_line(self):
        assert get_version("printf 'tool 1.2.3\\nmore\\n'") == "tool 1.2.3"

    def test_stderr_output(self):
        assert get_version("echo 'v9.0' >&2") == "v9.0"

    def test_failure(self):
        assert get_version("exit 1") is None
        assert get_version("") is None

