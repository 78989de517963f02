"""
State reporter — aggregate RunResults into a run summary.

A failed run is data, not a reporting error: nothing here raises
because a step failed. The only failure mode is the I/O of writing a
rendered report somewhere.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from provisioner.core.models.result import RunResult, StepStatus

logger = logging.getLogger(__name__)

FORMATS = ("text", "json")


@dataclass
class RunSummary:
    """Counts per status plus the ordered results of one run."""

    operation_id: str = ""
    results: list[RunResult] = field(default_factory=list)
    dry_run: bool = False
    cancelled: bool = False

    @property
    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in StepStatus}
        for r in self.results:
            counts[r.status.value] += 1
        return counts

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def exit_code(self) -> int:
        """0 when every step ended satisfied or applied, else 1.

        Dry-run skips are previews, not outcomes, and do not count. A
        cancelled run is never a success, dry-run or not.
        """
        if self.failed or self.cancelled:
            return 1
        if self.skipped and not self.dry_run:
            return 1
        return 0

    @property
    def status(self) -> str:
        if self.failed == 0 and self.exit_code == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def get(self, name: str) -> RunResult | None:
        for r in self.results:
            if r.step_name == name:
                return r
        return None

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "exit_code": self.exit_code,
            "total": self.total,
            "counts": self.counts,
            "results": [r.model_dump(mode="json") for r in self.results],
        }


def summarize(
    results: list[RunResult],
    *,
    operation_id: str = "",
    dry_run: bool = False,
    cancelled: bool = False,
) -> RunSummary:
    return RunSummary(
        operation_id=operation_id,
        results=list(results),
        dry_run=dry_run,
        cancelled=cancelled,
    )


def _format_elapsed(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s"


def _render_text(summary: RunSummary) -> str:
    width = max((len(r.step_name) for r in summary.results), default=4)
    lines: list[str] = []
    for r in summary.results:
        detail = r.error if r.failed else r.note
        line = f"{r.step_name:<{width}}  {r.status.value:<17}  {_format_elapsed(r.duration_ms):>7}"
        if detail:
            line += f"  {detail}"
        lines.append(line.rstrip())

    counts = summary.counts
    totals = ", ".join(f"{k}={v}" for k, v in counts.items())
    prefix = "[dry-run] " if summary.dry_run else ""
    suffix = " (cancelled)" if summary.cancelled else ""
    lines.append(f"{prefix}{summary.total} step(s): {totals}{suffix}")
    return "\n".join(lines) + "\n"


def render(summary: RunSummary, fmt: str = "text") -> str:
    """Render a summary as plain text or JSON."""
    if fmt == "text":
        return _render_text(summary)
    if fmt == "json":
        return json.dumps(summary.to_dict(), indent=2) + "\n"
    raise ValueError(f"Unknown report format '{fmt}'. Valid: {', '.join(FORMATS)}")


def write_report(summary: RunSummary, fmt: str, path: Path) -> Path:
    """Write the rendered summary to ``path``. OSError propagates."""
    content = render(summary, fmt)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.debug("Report written to %s", path)
    return path
