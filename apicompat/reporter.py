"""Run report: unsuppressed diagnostics, audit trail and pass/fail verdict."""

import io
import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from .classifier import ValidationMode
from .diagnostics import Diagnostic, Severity
from .suppression import SuppressedDiagnostic, Suppression

EXIT_OK = 0
EXIT_ERROR = 1      # fatal: extraction, fetch or usage error
EXIT_BREAKING = 12  # unsuppressed error-severity diagnostics remain


@dataclass
class Report:
    """Outcome of one compatibility run."""
    baseline: str
    candidate: str
    mode: ValidationMode = ValidationMode.FULL
    diagnostics: List[Diagnostic] = field(default_factory=list)
    suppressed: List[SuppressedDiagnostic] = field(default_factory=list)
    stale: List[Suppression] = field(default_factory=list)
    # counts by category of changes compatible on both axes
    compatible_changes: Dict[str, int] = field(default_factory=dict)
    # source-breaking changes binary mode does not report
    source_only_changes: Dict[str, int] = field(default_factory=dict)
    skipped: bool = False  # check disabled, nothing was compared

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    @property
    def passed(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        return EXIT_OK if self.passed else EXIT_BREAKING

    def format_summary(self) -> str:
        if self.skipped:
            return "⏭️  SKIPPED (compatibility check disabled)"
        verdict = "✅ PASS" if self.passed else "❌ FAIL"
        parts = [verdict, f"{len(self.errors)} error(s)", f"{len(self.warnings)} warning(s)"]
        if self.suppressed:
            parts.append(f"{len(self.suppressed)} suppressed")
        if self.stale:
            parts.append(f"{len(self.stale)} stale suppression(s)")
        return " | ".join(parts)

    def format_text(self) -> str:
        lines = [
            f"Comparing {self.baseline} → {self.candidate} (mode: {self.mode.value})",
            f"Status: {self.format_summary()}",
        ]
        for diag in self.diagnostics:
            lines.append(f"  {diag.format()}")
        for stale in self.stale:
            lines.append(
                f"  warning: stale suppression {stale.diagnostic_id} for '{stale.target}' "
                f"matches no current breaking change"
            )
        if self.suppressed:
            lines.append("\nSuppressed:")
            for entry in self.suppressed:
                note = f" ({entry.suppression.justification})" if entry.suppression.justification else ""
                lines.append(f"  ~ {entry.diagnostic.id} {entry.diagnostic.target}{note}")
        if self.compatible_changes:
            counts = ", ".join(f"{k}: {v}" for k, v in sorted(self.compatible_changes.items()))
            lines.append(f"\nCompatible changes: {counts}")
        if self.source_only_changes:
            counts = ", ".join(f"{k}: {v}" for k, v in sorted(self.source_only_changes.items()))
            lines.append(f"Source-breaking changes not checked in binary mode: {counts}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Export as JSON-serializable dict"""
        return {
            "comparison": f"{self.baseline} → {self.candidate}",
            "skipped": self.skipped,
            "mode": self.mode.value,
            "passed": self.passed,
            "exit_code": self.exit_code,
            "summary": {
                "errors": len(self.errors),
                "warnings": len(self.warnings),
                "suppressed": len(self.suppressed),
                "stale_suppressions": len(self.stale),
                "by_id": dict(sorted(Counter(d.id for d in self.diagnostics).items())),
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "suppressed": [s.to_dict() for s in self.suppressed],
            "stale_suppressions": [s.to_dict() for s in self.stale],
            "compatible_changes": dict(sorted(self.compatible_changes.items())),
            "source_only_changes": dict(sorted(self.source_only_changes.items())),
        }

    def to_markdown(self) -> str:
        """Render a stable Markdown compatibility report."""
        out = io.StringIO()

        def w(s: str = "") -> None:
            out.write(s + "\n")

        w("# API Compatibility Report")
        w()
        w(f"**Baseline:** `{self.baseline}`  ")
        w(f"**Candidate:** `{self.candidate}`  ")
        w(f"**Mode:** {self.mode.value}  ")
        w(f"**Errors:** {len(self.errors)} &nbsp;|&nbsp; "
          f"**Warnings:** {len(self.warnings)} &nbsp;|&nbsp; "
          f"**Suppressed:** {len(self.suppressed)} &nbsp;|&nbsp; "
          f"**Stale suppressions:** {len(self.stale)}")
        w()
        if self.skipped:
            w("> ⏭️ Compatibility check disabled.")
            return out.getvalue()
        if self.passed:
            w("> ✅ **No unsuppressed breaking changes.**")
        else:
            w(f"> ❌ **{len(self.errors)} breaking change(s) must be fixed or suppressed.**")
        w()

        if self.diagnostics:
            w("## Diagnostics")
            w()
            w("| Severity | Id | Target | Message |")
            w("|----------|----|--------|---------|")
            for d in self.diagnostics:
                w(f"| {d.severity.value} | `{d.id}` | `{d.target}` | {d.message} |")
            w()

        if self.stale:
            w("## Stale suppressions")
            w()
            for s in self.stale:
                w(f"- `{s.diagnostic_id}` `{s.target}`")
            w()

        if self.suppressed:
            w("## Suppressed")
            w()
            w("| Id | Target | Justification |")
            w("|----|--------|---------------|")
            for entry in self.suppressed:
                w(f"| `{entry.diagnostic.id}` | `{entry.diagnostic.target}` | "
                  f"{entry.suppression.justification or '-'} |")
            w()

        if self.compatible_changes:
            w("## Compatible changes")
            w()
            for name, count in sorted(self.compatible_changes.items()):
                w(f"- {name}: {count}")
            w()

        if self.source_only_changes:
            w("## Source-breaking changes not checked (binary mode)")
            w()
            for name, count in sorted(self.source_only_changes.items()):
                w(f"- {name}: {count}")
            w()
        return out.getvalue()

    def render(self, fmt: str = "text") -> str:
        if fmt == "json":
            return json.dumps(self.to_dict(), indent=2)
        if fmt == "markdown":
            return self.to_markdown()
        return self.format_text()
