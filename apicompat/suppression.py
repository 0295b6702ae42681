"""Suppressions: auditable acknowledgements of intentional breaking changes.

A suppression file lives next to the source tree::

    {
      "suppressions": [
        {"diagnostic_id": "APICOMPAT0001",
         "target": "mylib.client.Client.connect(str, int)",
         "justification": "Replaced by connect(str, timedelta) in 2.0"}
      ]
    }
"""

import json
import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .diagnostics import Diagnostic
from .errors import StaleSuppressionWarning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Suppression:
    diagnostic_id: str
    target: str
    justification: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        return (self.diagnostic_id, self.target)

    def to_dict(self) -> dict:
        return {
            "diagnostic_id": self.diagnostic_id,
            "target": self.target,
            "justification": self.justification,
        }


@dataclass(frozen=True)
class SuppressedDiagnostic:
    """Audit record pairing a dropped diagnostic with the suppression that dropped it."""
    diagnostic: Diagnostic
    suppression: Suppression

    def to_dict(self) -> dict:
        data = self.diagnostic.to_dict()
        data["justification"] = self.suppression.justification
        return data


@dataclass
class SuppressionResult:
    reportable: List[Diagnostic] = field(default_factory=list)
    suppressed: List[SuppressedDiagnostic] = field(default_factory=list)
    stale: List[Suppression] = field(default_factory=list)


def load_suppressions(path: Optional[Path]) -> List[Suppression]:
    """Load suppressions from a JSON file.

    A missing file means no suppressions.

    Raises:
        ValueError: If the file exists but is malformed
    """
    if path is None or not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in suppression file {path}: {e}") from e

    entries = data.get("suppressions") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ValueError(f"Suppression file {path} must contain a 'suppressions' array")

    suppressions = []
    seen = set()
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("diagnostic_id") or not entry.get("target"):
            raise ValueError(
                f"Suppression #{i} in {path} needs non-empty 'diagnostic_id' and 'target'"
            )
        suppression = Suppression(
            diagnostic_id=str(entry["diagnostic_id"]),
            target=str(entry["target"]),
            justification=str(entry.get("justification", "")),
        )
        if suppression.key in seen:
            logger.warning("duplicate suppression %s for %s in %s",
                           suppression.diagnostic_id, suppression.target, path)
            continue
        seen.add(suppression.key)
        suppressions.append(suppression)
    return suppressions


def save_suppressions(path: Path, suppressions: Iterable[Suppression]) -> None:
    """Write suppressions sorted by (target, diagnostic id) so diffs stay reviewable."""
    ordered = sorted(suppressions, key=lambda s: (s.target, s.diagnostic_id))
    payload = {"suppressions": [s.to_dict() for s in ordered]}
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def apply_suppressions(diagnostics: Iterable[Diagnostic],
                       suppressions: Iterable[Suppression]) -> SuppressionResult:
    """Split diagnostics into reportable and suppressed; collect stale suppressions.

    Each suppression matches exactly one (diagnostic id, target) occurrence.
    Stale suppressions also emit a StaleSuppressionWarning.
    """
    by_key: Dict[Tuple[str, str], Suppression] = {s.key: s for s in suppressions}
    used = set()
    result = SuppressionResult()
    for diag in diagnostics:
        suppression = by_key.get(diag.key)
        if suppression is None:
            result.reportable.append(diag)
        else:
            used.add(diag.key)
            result.suppressed.append(SuppressedDiagnostic(diag, suppression))
            logger.info("suppressed %s for %s", diag.id, diag.target)

    for key, suppression in by_key.items():
        if key not in used:
            result.stale.append(suppression)
            warnings.warn(
                f"Stale suppression {suppression.diagnostic_id} for '{suppression.target}' "
                f"matches no current breaking change",
                StaleSuppressionWarning,
                stacklevel=2,
            )
    return result


def generate_suppressions(diagnostics: Iterable[Diagnostic],
                          existing: Iterable[Suppression] = ()) -> List[Suppression]:
    """Accept every current breaking change as a suppression.

    Justifications of existing matching entries are kept; entries that no
    longer match anything are dropped.
    """
    previous = {s.key: s for s in existing}
    generated = {}
    for diag in diagnostics:
        if diag.key in generated:
            continue
        generated[diag.key] = previous.get(diag.key) or Suppression(diag.id, diag.target)
    return list(generated.values())
