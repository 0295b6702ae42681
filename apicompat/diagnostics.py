"""Diagnostics for breaking API changes.

Every breaking change category has a stable numeric identifier. The textual
prefix is configuration, so identifiers can live in their own namespace or
share one with another tool's diagnostics.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from .classifier import ChangeCategory, Classification, ValidationMode
from .differ import Difference

DEFAULT_PREFIX = "APICOMPAT"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NONE = "none"  # disabled


# Stable numbers; never renumber, only append
DIAGNOSTIC_NUMBERS: Dict[ChangeCategory, int] = {
    ChangeCategory.MEMBER_REMOVED: 1,
    ChangeCategory.OPTIONAL_PARAMETER_ADDED: 2,
    ChangeCategory.CONSTANT_VALUE_CHANGED: 3,
    ChangeCategory.ACCESSIBILITY_NARROWED: 4,
    ChangeCategory.RETURN_TYPE_CHANGED: 5,
    ChangeCategory.KIND_CHANGED: 6,
    ChangeCategory.STATIC_CHANGED: 7,
    ChangeCategory.RESTRICTION_ADDED: 8,
    ChangeCategory.PARAMETER_RENAMED: 9,
    ChangeCategory.PARAMETER_DEFAULT_REMOVED: 10,
    ChangeCategory.AMBIGUOUS_OVERLOAD_ADDED: 11,
}

_BREAKING = " This is a breaking change."

MESSAGES: Dict[ChangeCategory, str] = {
    ChangeCategory.MEMBER_REMOVED: (
        "The {kind} '{signature}' exists in the previous version ({old}) "
        "but no longer exists in the current version ({new})."
    ),
    ChangeCategory.OPTIONAL_PARAMETER_ADDED: (
        "The {kind} '{signature}' in the previous version ({old}) became "
        "'{new_signature}' in the current version ({new}); callers built against "
        "the old parameter list can no longer bind to it."
    ),
    ChangeCategory.CONSTANT_VALUE_CHANGED: (
        "The value of '{signature}' is {old_value} in the previous version ({old}) "
        "but {new_value} in the current version ({new})."
    ),
    ChangeCategory.ACCESSIBILITY_NARROWED: (
        "The {kind} '{signature}' is {old_access} in the previous version ({old}) "
        "but {new_access} in the current version ({new})."
    ),
    ChangeCategory.RETURN_TYPE_CHANGED: (
        "The {kind} '{signature}' has type '{old_type}' in the previous version ({old}) "
        "but '{new_type}' in the current version ({new})."
    ),
    ChangeCategory.KIND_CHANGED: (
        "'{signature}' is a {old_kind} in the previous version ({old}) "
        "but a {new_kind} in the current version ({new})."
    ),
    ChangeCategory.STATIC_CHANGED: (
        "The {kind} '{signature}' is {old_binding} in the previous version ({old}) "
        "but {new_binding} in the current version ({new})."
    ),
    ChangeCategory.RESTRICTION_ADDED: (
        "The {kind} '{signature}' became {added_modifiers} in the current version ({new}) "
        "but was not in the previous version ({old})."
    ),
    ChangeCategory.PARAMETER_RENAMED: (
        "Parameters of the {kind} '{signature}' are ({old_names}) in the previous version "
        "({old}) but ({new_names}) in the current version ({new})."
    ),
    ChangeCategory.PARAMETER_DEFAULT_REMOVED: (
        "A parameter of the {kind} '{signature}' has a default value in the previous "
        "version ({old}) but is required in the current version ({new})."
    ),
    ChangeCategory.AMBIGUOUS_OVERLOAD_ADDED: (
        "The {kind} '{signature}' added in the current version ({new}) makes calls to "
        "an overload that exists in the previous version ({old}) ambiguous."
    ),
}


def diagnostic_id(category: ChangeCategory, prefix: str = DEFAULT_PREFIX) -> str:
    """Return the stable identifier of a breaking category, e.g. ``APICOMPAT0001``."""
    return f"{prefix}{DIAGNOSTIC_NUMBERS[category]:04d}"


def known_ids(prefix: str = DEFAULT_PREFIX) -> List[str]:
    return [diagnostic_id(c, prefix) for c in DIAGNOSTIC_NUMBERS]


@dataclass(frozen=True)
class Diagnostic:
    """A breaking change rendered for humans, keyed by (id, target)."""
    id: str
    category: ChangeCategory
    severity: Severity
    target: str
    message: str
    difference: Difference
    classification: Classification

    @property
    def key(self) -> Tuple[str, str]:
        return (self.id, self.target)

    def format(self) -> str:
        return f"{self.severity.value}: {self.id}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "severity": self.severity.value,
            "target": self.target,
            "message": self.message,
            "classification": self.classification.to_dict(),
        }


# Name used by the error taxonomy: breaking changes surface as diagnostics
BreakingChangeDiagnostic = Diagnostic


def _message_fields(diff: Difference, old_version: str, new_version: str) -> dict:
    member = diff.member
    old, new = diff.baseline, diff.candidate
    fields = {
        "kind": member.kind.value,
        "signature": member.signature,
        "old": old_version,
        "new": new_version,
        "new_signature": new.signature if new else "",
    }
    if old is not None and new is not None:
        fields.update(
            old_value=old.value, new_value=new.value,
            old_access=old.accessibility.value, new_access=new.accessibility.value,
            old_type=old.return_type or "None", new_type=new.return_type or "None",
            old_kind=old.kind.value, new_kind=new.kind.value,
            old_binding="static" if "static" in old.modifiers else "an instance member",
            new_binding="static" if "static" in new.modifiers else "an instance member",
            added_modifiers=" and ".join(sorted(new.modifiers - old.modifiers)) or "restricted",
            old_names=", ".join(p.name for p in old.parameters),
            new_names=", ".join(p.name for p in new.parameters),
        )
    return fields


def render_message(category: ChangeCategory, diff: Difference, old_version: str, new_version: str) -> str:
    fields = _message_fields(diff, old_version, new_version)
    try:
        text = MESSAGES[category].format(**fields)
    except KeyError:
        # template needs both members but the difference carries one
        text = f"The {fields['kind']} '{fields['signature']}' changed incompatibly between {old_version} and {new_version}."
    return text + _BREAKING


def resolve_severity(diag_id: str, diff: Difference, overrides: Dict[str, Severity],
                     downgrade_unstable: bool = True) -> Severity:
    """Per-id override wins; otherwise unstable members warn and everything else errors."""
    if diag_id in overrides:
        return overrides[diag_id]
    if downgrade_unstable and not diff.member.stable:
        return Severity.WARNING
    return Severity.ERROR


def build_diagnostics(
    classified: Iterable[Tuple[Difference, Classification]],
    old_version: str,
    new_version: str,
    mode: ValidationMode = ValidationMode.FULL,
    prefix: str = DEFAULT_PREFIX,
    overrides: Optional[Dict[str, Severity]] = None,
    downgrade_unstable: bool = True,
) -> List[Diagnostic]:
    """Turn reportable classified differences into diagnostics.

    Disabled diagnostics (severity NONE) are kept so suppressions that
    target them stay live; the report drops them.
    """
    overrides = overrides or {}
    diagnostics = []
    for diff, classification in classified:
        if not classification.is_reportable(mode):
            continue
        # breaking categories precede compatible ones, so the primary one has an id
        category = classification.category
        diag_id = diagnostic_id(category, prefix)
        diagnostics.append(Diagnostic(
            id=diag_id,
            category=category,
            severity=resolve_severity(diag_id, diff, overrides, downgrade_unstable),
            target=diff.target,
            message=render_message(category, diff, old_version, new_version),
            difference=diff,
            classification=classification,
        ))
    return diagnostics
