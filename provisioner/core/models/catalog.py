"""
Catalog models — the declarative step definitions in provision.yml.

The catalog is data: which tools exist, how to tell whether each one
is already in place, and which operations establish it. The step
builder turns these definitions into executable ``Step`` objects.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator

PACKAGE_MANAGERS = ("apt", "dnf", "brew", "cargo", "npm", "flatpak", "snap")
PROBE_KINDS = ("command", "path", "file_contains", "shell", "package")
ACTION_KINDS = ("shell", "packages", "ensure_line", "symlink", "mkdir", "write")


def _exactly_one(model: BaseModel, kinds: tuple[str, ...], label: str) -> str:
    present = [k for k in kinds if getattr(model, k) is not None]
    if len(present) != 1:
        raise ValueError(
            f"{label} must set exactly one of {', '.join(kinds)} (got {present or 'none'})"
        )
    return present[0]


# ── Detect probes ───────────────────────────────────────────────────


class FileContains(BaseModel):
    path: str
    text: str


class PackageRef(BaseModel):
    manager: str
    name: str

    @model_validator(mode="after")
    def _known_manager(self) -> PackageRef:
        if self.manager not in PACKAGE_MANAGERS:
            raise ValueError(f"Unknown package manager '{self.manager}'")
        return self


class ProbeSpec(BaseModel):
    """One detection check. All of a step's probes must hold."""

    command: str | None = None        # executable on PATH
    path: str | None = None           # file or directory exists
    file_contains: FileContains | None = None
    shell: str | None = None          # exits 0
    package: PackageRef | None = None

    @model_validator(mode="after")
    def _one_kind(self) -> ProbeSpec:
        _exactly_one(self, PROBE_KINDS, "A detect probe")
        return self

    @property
    def kind(self) -> str:
        return next(k for k in PROBE_KINDS if getattr(self, k) is not None)


# ── Apply operations ────────────────────────────────────────────────


class PackagesSpec(BaseModel):
    manager: str
    names: list[str] = Field(min_length=1)

    @model_validator(mode="after")
    def _known_manager(self) -> PackagesSpec:
        if self.manager not in PACKAGE_MANAGERS:
            raise ValueError(f"Unknown package manager '{self.manager}'")
        return self


class EnsureLineSpec(BaseModel):
    line: str
    path: str | None = None           # defaults to settings.shell_profile
    marker: str | None = None         # substring that proves the line is present


class SymlinkSpec(BaseModel):
    source: str
    target: str


class MkdirSpec(BaseModel):
    path: str


class WriteSpec(BaseModel):
    path: str
    content: str


class ActionSpec(BaseModel):
    """One apply operation, executed in declaration order."""

    shell: str | None = None
    packages: PackagesSpec | None = None
    ensure_line: EnsureLineSpec | None = None
    symlink: SymlinkSpec | None = None
    mkdir: MkdirSpec | None = None
    write: WriteSpec | None = None
    timeout: int | None = None        # seconds, shell/packages only
    sudo: bool = False                # shell only
    cwd: str | None = None            # shell only
    env: dict[str, str] | None = None  # shell only, $VARS expanded

    @model_validator(mode="before")
    @classmethod
    def _shorthand(cls, data: Any) -> Any:
        # "mkdir: ~/.local/bin" is accepted as shorthand for {path: ...}
        if isinstance(data, dict) and isinstance(data.get("mkdir"), str):
            data = {**data, "mkdir": {"path": data["mkdir"]}}
        return data

    @model_validator(mode="after")
    def _one_kind(self) -> ActionSpec:
        _exactly_one(self, ACTION_KINDS, "An apply action")
        if self.shell is None and (self.sudo or self.cwd is not None or self.env is not None):
            raise ValueError("sudo, cwd and env apply to shell actions only")
        return self

    @property
    def kind(self) -> str:
        return next(k for k in ACTION_KINDS if getattr(self, k) is not None)


# ── Steps and catalog ───────────────────────────────────────────────


class StepDefinition(BaseModel):
    """A step as declared in provision.yml."""

    name: str = Field(min_length=1)
    description: str = ""
    groups: list[str] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    detect: list[ProbeSpec] = Field(default_factory=list)
    apply: list[ActionSpec] = Field(default_factory=list)
    undo_hint: str = ""
    version: str = ""                 # command printing the installed version
    force_apply: bool = False

    @model_validator(mode="after")
    def _check(self) -> StepDefinition:
        if not self.apply:
            raise ValueError(f"Step '{self.name}' declares no apply actions")
        if not self.detect and not self.force_apply:
            raise ValueError(
                f"Step '{self.name}' has no detect probes; "
                "declare at least one or set force_apply: true"
            )
        return self


class CatalogSettings(BaseModel):
    shell_profile: str = "~/.zshrc"
    run_log: str | None = None
    continue_on_failure: bool = True
    command_timeout: int = 900


class Catalog(BaseModel):
    """Root of provision.yml."""

    settings: CatalogSettings = Field(default_factory=CatalogSettings)
    steps: list[StepDefinition] = Field(default_factory=list)

    def get_step(self, name: str) -> StepDefinition | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    @property
    def group_names(self) -> list[str]:
        seen: list[str] = []
        for step in self.steps:
            for group in step.groups:
                if group not in seen:
                    seen.append(group)
        return seen
