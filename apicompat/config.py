"""Per-run validation configuration.

A ValidationConfig is an immutable value handed to each run, so several
runs (e.g. one per target) can share a process without shared state.
"""

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .classifier import ValidationMode
from .diagnostics import DEFAULT_PREFIX, Severity


@dataclass(frozen=True)
class ValidationConfig:
    """Options recognised by a compatibility run.

    Attributes
    ----------
    enabled : bool
        Master switch; a disabled run extracts nothing and passes.
    compare_previous : bool
        Opt-in comparison against the previously published version (needs
        network or package-cache access).
    suppression_file : Path | None
        JSON file of acknowledged breaking changes.
    generate_suppressions : bool
        Baseline-acceptance mode: rewrite the suppression file so that every
        current breaking change is suppressed.
    mode : ValidationMode
        ``binary`` reports binary breaks only; ``full`` adds source breaks.
    severity_overrides : dict[str, Severity]
        Per diagnostic id severity (error, warning or none).
    diagnostic_prefix : str
        Text prepended to the stable diagnostic number.
    downgrade_unstable : bool
        Report breaks on preview/experimental members as warnings.
    fetch_attempts : int
        Bounded attempts for transient fetch failures.
    fetch_backoff : float
        Initial backoff in seconds between fetch attempts.
    """

    enabled: bool = True
    compare_previous: bool = False
    suppression_file: Optional[Path] = None
    generate_suppressions: bool = False
    mode: ValidationMode = ValidationMode.FULL
    severity_overrides: Dict[str, Severity] = field(default_factory=dict)
    diagnostic_prefix: str = DEFAULT_PREFIX
    downgrade_unstable: bool = True
    fetch_attempts: int = 3
    fetch_backoff: float = 0.5

    def __post_init__(self) -> None:
        """Coerce loose values and validate."""
        if self.suppression_file is not None and not isinstance(self.suppression_file, Path):
            object.__setattr__(self, "suppression_file", Path(self.suppression_file))
        if not isinstance(self.mode, ValidationMode):
            object.__setattr__(self, "mode", ValidationMode(self.mode))
        overrides = {str(k): v if isinstance(v, Severity) else Severity(v)
                     for k, v in self.severity_overrides.items()}
        object.__setattr__(self, "severity_overrides", overrides)

        if not self.diagnostic_prefix or not self.diagnostic_prefix.strip():
            raise ValueError("diagnostic_prefix must not be empty")
        if self.fetch_attempts < 1:
            raise ValueError(f"fetch_attempts must be >= 1, got {self.fetch_attempts}")
        if self.fetch_backoff < 0:
            raise ValueError(f"fetch_backoff must be >= 0, got {self.fetch_backoff}")
        if self.generate_suppressions and self.suppression_file is None:
            raise ValueError("generate_suppressions requires suppression_file")

    def with_options(self, **changes: Any) -> "ValidationConfig":
        """Return a copy with some options replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "compare_previous": self.compare_previous,
            "suppression_file": str(self.suppression_file) if self.suppression_file else None,
            "generate_suppressions": self.generate_suppressions,
            "mode": self.mode.value,
            "severity_overrides": {k: v.value for k, v in sorted(self.severity_overrides.items())},
            "diagnostic_prefix": self.diagnostic_prefix,
            "downgrade_unstable": self.downgrade_unstable,
            "fetch_attempts": self.fetch_attempts,
            "fetch_backoff": self.fetch_backoff,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationConfig":
        """Build a config from a dict, rejecting unknown keys."""
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        return cls(**data)

    @classmethod
    def from_json(cls, config_file: Path) -> "ValidationConfig":
        """Load configuration from a JSON file.

        Relative suppression paths resolve against the config file's directory.
        """
        with open(config_file, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in config file {config_file}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_file} must contain a JSON object")
        suppression_file = data.get("suppression_file")
        if suppression_file and not Path(suppression_file).is_absolute():
            data["suppression_file"] = Path(config_file).parent / suppression_file
        return cls.from_dict(data)
