"""Structural diff of two API surfaces.

Members are paired by signature. Within an overload set, a removed member
and an added member whose parameter list extends it with optional trailing
parameters are treated as one evolving member rather than an unrelated
removal and addition.
"""

import dataclasses
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .surface import Member, Surface

logger = logging.getLogger(__name__)

# Overload sets with more removed members than this are paired greedily
MAX_EXACT_PAIRING = 8


class ChangeKind(Enum):
    REMOVED = "removed"
    ADDED = "added"
    SIGNATURE_CHANGED = "signature-changed"
    ACCESSIBILITY_CHANGED = "accessibility-changed"


@dataclass(frozen=True)
class Difference:
    """A baseline member, its candidate counterpart (either may be absent) and the change kind."""
    kind: ChangeKind
    baseline: Optional[Member] = None
    candidate: Optional[Member] = None

    def __post_init__(self):
        if self.baseline is None and self.candidate is None:
            raise ValueError("Difference requires at least one member")
        if self.kind is ChangeKind.REMOVED and (self.baseline is None or self.candidate is not None):
            raise ValueError("Removed difference requires only a baseline member")
        if self.kind is ChangeKind.ADDED and (self.candidate is None or self.baseline is not None):
            raise ValueError("Added difference requires only a candidate member")
        if self.kind in (ChangeKind.SIGNATURE_CHANGED, ChangeKind.ACCESSIBILITY_CHANGED) and (
            self.baseline is None or self.candidate is None
        ):
            raise ValueError(f"{self.kind.value} difference requires both members")

    @property
    def member(self) -> Member:
        """The member the difference is reported against (baseline when present)."""
        return self.baseline if self.baseline is not None else self.candidate

    @property
    def target(self) -> str:
        return self.member.signature

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "target": self.target,
            "baseline": self.baseline.to_dict() if self.baseline else None,
            "candidate": self.candidate.to_dict() if self.candidate else None,
        }


def edit_distance(a: Sequence[str], b: Sequence[str]) -> int:
    """Levenshtein distance between two token sequences."""
    prev = list(range(len(b) + 1))
    for i, x in enumerate(a, 1):
        cur = [i]
        for j, y in enumerate(b, 1):
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (x != y)))
        prev = cur
    return prev[-1]


def extends_with_optional(baseline: Member, candidate: Member) -> bool:
    """True if candidate keeps baseline's parameter types and only appends defaulted parameters."""
    old = baseline.parameter_types
    new = candidate.parameter_types
    if len(new) <= len(old) or new[:len(old)] != old:
        return False
    return all(p.has_default for p in candidate.parameters[len(old):])


def pairing_cost(baseline: Member, candidate: Member) -> int:
    cost = edit_distance(baseline.parameter_types, candidate.parameter_types)
    if baseline.return_type != candidate.return_type:
        cost += 1
    return cost


def accessibility_only(baseline: Member, candidate: Member) -> bool:
    return dataclasses.replace(baseline, accessibility=candidate.accessibility) == candidate


def pair_overload_set(removed: List[Member], added: List[Member]) -> List[Tuple[Member, Member]]:
    """Pair removed and added members of one overload set.

    Picks the admissible pairing with the most pairs and, among those, the
    lowest total edit distance. Inputs must be in signature order so ties
    resolve deterministically.
    """
    options = [
        [(j, pairing_cost(r, a)) for j, a in enumerate(added) if extends_with_optional(r, a)]
        for r in removed
    ]
    if not any(options):
        return []

    if len(removed) > MAX_EXACT_PAIRING:
        logger.debug("overload set of %d members paired greedily", len(removed))
        edges = sorted((cost, i, j) for i, opts in enumerate(options) for j, cost in opts)
        used_r, used_a, pairs = set(), set(), []
        for _cost, i, j in edges:
            if i not in used_r and j not in used_a:
                used_r.add(i)
                used_a.add(j)
                pairs.append((i, j))
        return [(removed[i], added[j]) for i, j in sorted(pairs)]

    best_pairs: List[Tuple[int, int]] = []
    best_cost = 0

    def search(i: int, used: set, pairs: List[Tuple[int, int]], cost: int) -> None:
        nonlocal best_pairs, best_cost
        if i == len(removed):
            if len(pairs) > len(best_pairs) or (len(pairs) == len(best_pairs) and cost < best_cost):
                best_pairs, best_cost = list(pairs), cost
            return
        for j, c in options[i]:
            if j in used:
                continue
            used.add(j)
            pairs.append((i, j))
            search(i + 1, used, pairs, cost + c)
            pairs.pop()
            used.discard(j)
        search(i + 1, used, pairs, cost)

    search(0, set(), [], 0)
    return [(removed[i], added[j]) for i, j in best_pairs]


def diff_surfaces(baseline: Surface, candidate: Surface) -> List[Difference]:
    """Compute the symmetric set of differences between two surfaces.

    Returns:
        Differences sorted by (target signature, change kind)
    """
    diffs: List[Difference] = []
    removed: Dict[tuple, List[Member]] = defaultdict(list)
    added: Dict[tuple, List[Member]] = defaultdict(list)

    for old in baseline:
        new = candidate.get(old.signature)
        if new is None:
            removed[old.overload_key].append(old)
        elif new != old:
            kind = (ChangeKind.ACCESSIBILITY_CHANGED if accessibility_only(old, new)
                    else ChangeKind.SIGNATURE_CHANGED)
            diffs.append(Difference(kind, old, new))

    for new in candidate:
        if new.signature not in baseline:
            added[new.overload_key].append(new)

    for key, old_members in removed.items():
        new_members = added.get(key, [])
        paired = pair_overload_set(old_members, new_members)
        for old, new in paired:
            diffs.append(Difference(ChangeKind.SIGNATURE_CHANGED, old, new))
        paired_old = {old.signature for old, _ in paired}
        paired_new = {new.signature for _, new in paired}
        diffs.extend(Difference(ChangeKind.REMOVED, baseline=m)
                     for m in old_members if m.signature not in paired_old)
        added[key] = [m for m in new_members if m.signature not in paired_new]

    for new_members in added.values():
        diffs.extend(Difference(ChangeKind.ADDED, candidate=m) for m in new_members)

    diffs.sort(key=lambda d: (d.target, d.kind.value))
    logger.debug("diff %s -> %s: %d differences", baseline.identity, candidate.identity, len(diffs))
    return diffs
