"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from provisioner.core.engine.registry import StepRegistry
from provisioner.core.models.step import DetectState, Step


class FakeStep:
    """Test double for a step: counts detect/apply calls.

    ``satisfied`` is the simulated machine state. A successful apply
    flips it to True unless ``confirms`` is False (an apply that
    silently does nothing).
    """

    def __init__(
        self,
        name: str,
        deps: tuple[str, ...] = (),
        groups: tuple[str, ...] = (),
        *,
        satisfied: bool = False,
        apply_error: Exception | None = None,
        detect_error: Exception | None = None,
        confirms: bool = True,
        apply_returns: object = None,
        force_apply: bool = False,
        undo_hint: str = "",
        on_apply=None,
    ):
        self.name = name
        self.deps = tuple(deps)
        self.groups = tuple(groups)
        self.satisfied = satisfied
        self.apply_error = apply_error
        self.detect_error = detect_error
        self.confirms = confirms
        self.apply_returns = apply_returns
        self.force_apply = force_apply
        self.undo_hint = undo_hint
        self.on_apply = on_apply
        self.detect_calls = 0
        self.apply_calls = 0

    def detect(self) -> DetectState:
        self.detect_calls += 1
        if self.detect_error is not None:
            raise self.detect_error
        return DetectState.SATISFIED if self.satisfied else DetectState.UNSATISFIED

    def apply(self):
        self.apply_calls += 1
        if self.on_apply is not None:
            self.on_apply(self)
        if self.apply_error is not None:
            raise self.apply_error
        if self.confirms:
            self.satisfied = True
        return self.apply_returns

    def step(self) -> Step:
        return Step(
            name=self.name,
            detect=self.detect,
            apply=self.apply,
            dependencies=self.deps,
            groups=self.groups,
            force_apply=self.force_apply,
            undo_hint=self.undo_hint,
        )


@pytest.fixture
def make_registry():
    """Build a StepRegistry from FakeSteps, in the given order."""

    def _make(*fakes: FakeStep) -> StepRegistry:
        return StepRegistry(f.step() for f in fakes)

    return _make


@pytest.fixture
def fake():
    """The FakeStep class, for tests that build their own steps."""
    return FakeStep


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests away from the real run log and catalog discovery."""
    monkeypatch.setenv("PROVISION_RUN_LOG", str(tmp_path / "state" / "runs.ndjson"))
    monkeypatch.delenv("PROVISION_CATALOG", raising=False)
    monkeypatch.delenv("PROVISION_LOG_LEVEL", raising=False)
    monkeypatch.delenv("PROVISION_LOG_FILE", raising=False)
    monkeypatch.delenv("PROVISION_BACKUP_PASSPHRASE", raising=False)


@pytest.fixture
def write_catalog(tmp_path: Path):
    """Write a provision.yml into tmp_path and return its path."""

    def _write(content: str, name: str = "provision.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content), encoding="utf-8")
        return path

    return _write
