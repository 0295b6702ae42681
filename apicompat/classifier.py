"""Compatibility classification of surface differences.

Each difference is labelled along two independent axes:

* binary: can callers compiled against the baseline still load and run
  against the candidate;
* source: does source written against the baseline still compile.

The rule table below is the single source of truth; ``classify`` only
decides which categories apply to a difference.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .differ import ChangeKind, Difference
from .surface import Member, MemberKind, Surface


class Compatibility(Enum):
    COMPATIBLE = "compatible"
    BREAKING = "breaking"


class ValidationMode(Enum):
    """Which axes a run reports on."""
    BINARY = "binary"  # cross-target consistency: binary axis only
    FULL = "full"      # version-to-version: binary and source axes


class ChangeCategory(Enum):
    MEMBER_REMOVED = "member-removed"
    MEMBER_ADDED = "member-added"
    OVERLOAD_ADDED = "overload-added"
    AMBIGUOUS_OVERLOAD_ADDED = "ambiguous-overload-added"
    OPTIONAL_PARAMETER_ADDED = "optional-parameter-added"
    CONSTANT_VALUE_CHANGED = "constant-value-changed"
    ACCESSIBILITY_WIDENED = "accessibility-widened"
    ACCESSIBILITY_NARROWED = "accessibility-narrowed"
    RETURN_TYPE_CHANGED = "return-type-changed"
    KIND_CHANGED = "kind-changed"
    STATIC_CHANGED = "static-changed"
    RESTRICTION_ADDED = "restriction-added"
    RESTRICTION_REMOVED = "restriction-removed"
    PARAMETER_RENAMED = "parameter-renamed"
    PARAMETER_DEFAULT_REMOVED = "parameter-default-removed"
    PARAMETER_DEFAULT_ADDED = "parameter-default-added"
    STABILITY_CHANGED = "stability-changed"


_C = Compatibility.COMPATIBLE
_B = Compatibility.BREAKING

# (binary, source)
RULES: Dict[ChangeCategory, Tuple[Compatibility, Compatibility]] = {
    ChangeCategory.MEMBER_REMOVED: (_B, _B),
    ChangeCategory.MEMBER_ADDED: (_C, _C),
    ChangeCategory.OVERLOAD_ADDED: (_C, _C),
    ChangeCategory.AMBIGUOUS_OVERLOAD_ADDED: (_C, _B),
    ChangeCategory.OPTIONAL_PARAMETER_ADDED: (_B, _C),
    ChangeCategory.CONSTANT_VALUE_CHANGED: (_B, _C),
    ChangeCategory.ACCESSIBILITY_WIDENED: (_C, _C),
    ChangeCategory.ACCESSIBILITY_NARROWED: (_B, _B),
    ChangeCategory.RETURN_TYPE_CHANGED: (_B, _B),
    ChangeCategory.KIND_CHANGED: (_B, _B),
    ChangeCategory.STATIC_CHANGED: (_B, _B),
    ChangeCategory.RESTRICTION_ADDED: (_B, _B),
    ChangeCategory.RESTRICTION_REMOVED: (_C, _C),
    ChangeCategory.PARAMETER_RENAMED: (_C, _B),
    ChangeCategory.PARAMETER_DEFAULT_REMOVED: (_C, _B),
    ChangeCategory.PARAMETER_DEFAULT_ADDED: (_C, _C),
    ChangeCategory.STABILITY_CHANGED: (_C, _C),
}

# Most severe first; picks the primary category of a multi-aspect change
PRECEDENCE: List[ChangeCategory] = [
    ChangeCategory.MEMBER_REMOVED,
    ChangeCategory.KIND_CHANGED,
    ChangeCategory.ACCESSIBILITY_NARROWED,
    ChangeCategory.RETURN_TYPE_CHANGED,
    ChangeCategory.STATIC_CHANGED,
    ChangeCategory.RESTRICTION_ADDED,
    ChangeCategory.OPTIONAL_PARAMETER_ADDED,
    ChangeCategory.CONSTANT_VALUE_CHANGED,
    ChangeCategory.PARAMETER_RENAMED,
    ChangeCategory.PARAMETER_DEFAULT_REMOVED,
    ChangeCategory.AMBIGUOUS_OVERLOAD_ADDED,
    ChangeCategory.ACCESSIBILITY_WIDENED,
    ChangeCategory.RESTRICTION_REMOVED,
    ChangeCategory.PARAMETER_DEFAULT_ADDED,
    ChangeCategory.STABILITY_CHANGED,
    ChangeCategory.OVERLOAD_ADDED,
    ChangeCategory.MEMBER_ADDED,
]

_RESTRICTIONS = frozenset({"abstract", "final"})


@dataclass(frozen=True)
class Classification:
    category: ChangeCategory
    binary: Compatibility
    source: Compatibility
    aspects: Tuple[ChangeCategory, ...] = ()

    @property
    def binary_breaking(self) -> bool:
        return self.binary is Compatibility.BREAKING

    @property
    def source_breaking(self) -> bool:
        return self.source is Compatibility.BREAKING

    @property
    def is_breaking(self) -> bool:
        return self.binary_breaking or self.source_breaking

    def is_reportable(self, mode: ValidationMode) -> bool:
        """Binary breaks are always reported; source-only breaks only in FULL mode."""
        if self.binary_breaking:
            return True
        return mode is ValidationMode.FULL and self.source_breaking

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "binary": self.binary.value,
            "source": self.source.value,
            "aspects": [a.value for a in self.aspects],
        }


def rule(category: ChangeCategory) -> Tuple[Compatibility, Compatibility]:
    """Look up the (binary, source) outcome of a change category."""
    return RULES[category]


def combine(aspects: List[ChangeCategory]) -> Classification:
    """Fold several aspects into one classification (breaking on an axis wins)."""
    ordered = tuple(sorted(set(aspects), key=PRECEDENCE.index))
    binary = _B if any(RULES[a][0] is _B for a in ordered) else _C
    source = _B if any(RULES[a][1] is _B for a in ordered) else _C
    return Classification(category=ordered[0], binary=binary, source=source, aspects=ordered)


def shape_aspects(old: Member, new: Member) -> List[ChangeCategory]:
    """List the change categories between two members paired by the differ."""
    aspects = []
    if old.kind is not new.kind:
        aspects.append(ChangeCategory.KIND_CHANGED)
    if old.accessibility is not new.accessibility:
        aspects.append(ChangeCategory.ACCESSIBILITY_WIDENED
                       if new.accessibility.rank > old.accessibility.rank
                       else ChangeCategory.ACCESSIBILITY_NARROWED)
    if old.return_type != new.return_type:
        aspects.append(ChangeCategory.RETURN_TYPE_CHANGED)
    if old.value != new.value:
        aspects.append(ChangeCategory.CONSTANT_VALUE_CHANGED)
    if ("static" in old.modifiers) != ("static" in new.modifiers):
        aspects.append(ChangeCategory.STATIC_CHANGED)
    if (new.modifiers - old.modifiers) & _RESTRICTIONS:
        aspects.append(ChangeCategory.RESTRICTION_ADDED)
    if (old.modifiers - new.modifiers) & _RESTRICTIONS:
        aspects.append(ChangeCategory.RESTRICTION_REMOVED)
    if old.stable != new.stable:
        aspects.append(ChangeCategory.STABILITY_CHANGED)

    if len(new.parameters) > len(old.parameters):
        aspects.append(ChangeCategory.OPTIONAL_PARAMETER_ADDED)
    for before, after in zip(old.parameters, new.parameters):
        if before.name != after.name:
            aspects.append(ChangeCategory.PARAMETER_RENAMED)
        if before.has_default and not after.has_default:
            aspects.append(ChangeCategory.PARAMETER_DEFAULT_REMOVED)
        elif after.has_default and not before.has_default:
            aspects.append(ChangeCategory.PARAMETER_DEFAULT_ADDED)
    return aspects


def _added_category(member: Member, baseline: Optional[Surface],
                    candidate: Optional[Surface]) -> ChangeCategory:
    if candidate is None:
        return ChangeCategory.MEMBER_ADDED
    siblings = [
        m for m in candidate.overload_set(member.overload_key)
        if m.signature != member.signature
        and (baseline is None or m.signature in baseline)
    ]
    if not siblings:
        return ChangeCategory.MEMBER_ADDED
    if member.kind is MemberKind.METHOD and any(
        m.required_parameter_types == member.required_parameter_types for m in siblings
    ):
        return ChangeCategory.AMBIGUOUS_OVERLOAD_ADDED
    return ChangeCategory.OVERLOAD_ADDED


def classify(difference: Difference, baseline: Optional[Surface] = None,
             candidate: Optional[Surface] = None) -> Classification:
    """Classify one difference. Never raises for a well-formed Difference.

    Args:
        difference: Output of the differ
        baseline: Baseline surface, used to limit overload ambiguity to pre-existing members
        candidate: Candidate surface, used to detect overload ambiguity for added members
    """
    if difference.kind is ChangeKind.REMOVED:
        return combine([ChangeCategory.MEMBER_REMOVED])
    if difference.kind is ChangeKind.ADDED:
        return combine([_added_category(difference.candidate, baseline, candidate)])
    aspects = shape_aspects(difference.baseline, difference.candidate)
    if not aspects:
        # unrecognised shape changes are treated as signature breaks
        aspects = [ChangeCategory.RETURN_TYPE_CHANGED]
    return combine(aspects)
