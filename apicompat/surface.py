"""Normalized model of a library's public API surface.

A Surface is a named, versioned snapshot of every publicly observable
member of a library. Surfaces are produced by the extractor, compared by the
differ and can be persisted as JSON snapshots.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

SNAPSHOT_FORMAT = "apicompat-surface"
SNAPSHOT_FORMAT_VERSION = 1


class MemberKind(Enum):
    """Kind of exported element."""
    TYPE = "type"
    METHOD = "method"
    PROPERTY = "property"
    FIELD = "field"
    EVENT = "event"


class Accessibility(Enum):
    """Visibility of a member, ordered from narrowest to widest."""
    PROTECTED = "protected"  # visible to derived types only
    PUBLIC = "public"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]


_ACCESS_RANK = {Accessibility.PROTECTED: 1, Accessibility.PUBLIC: 2}

MODIFIERS = ("static", "abstract", "final")


@dataclass(frozen=True)
class Parameter:
    """One formal parameter of a callable member."""
    name: str
    type: str = "Any"
    has_default: bool = False

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type, "has_default": self.has_default}

    @classmethod
    def from_dict(cls, data: dict) -> "Parameter":
        return cls(
            name=data["name"],
            type=data.get("type") or "Any",
            has_default=bool(data.get("has_default", False)),
        )


@dataclass(frozen=True)
class Member:
    """One exported type or callable element.

    Identity is the fully qualified ``signature``: the qualified name, plus
    the parameter type list for methods. Parameter names, defaults, return
    type, accessibility, modifiers and constant values are *shape*: they may
    differ between two members that share a signature.
    """
    name: str
    kind: MemberKind
    declaring_type: str = ""
    parameters: Tuple[Parameter, ...] = ()
    return_type: Optional[str] = None
    accessibility: Accessibility = Accessibility.PUBLIC
    value: Optional[str] = None
    modifiers: frozenset = field(default_factory=frozenset)
    stable: bool = True

    def __post_init__(self):
        # Normalize containers so equality and hashing are order-independent
        object.__setattr__(self, "parameters", tuple(self.parameters))
        object.__setattr__(self, "modifiers", frozenset(self.modifiers))
        unknown = self.modifiers - set(MODIFIERS)
        if unknown:
            raise ValueError(f"Unknown modifiers for {self.name}: {sorted(unknown)}")

    @property
    def qualified_name(self) -> str:
        if self.declaring_type:
            return f"{self.declaring_type}.{self.name}"
        return self.name

    @property
    def signature(self) -> str:
        if self.kind is MemberKind.METHOD:
            types = ", ".join(p.type for p in self.parameters)
            return f"{self.qualified_name}({types})"
        return self.qualified_name

    @property
    def overload_key(self) -> Tuple[MemberKind, str]:
        return (self.kind, self.qualified_name)

    @property
    def parameter_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.parameters)

    @property
    def required_parameter_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.parameters if not p.has_default)

    @property
    def is_constant(self) -> bool:
        return self.kind is MemberKind.FIELD and self.value is not None

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "kind": self.kind.value,
            "declaring_type": self.declaring_type,
            "accessibility": self.accessibility.value,
            "stable": self.stable,
        }
        if self.parameters or self.kind is MemberKind.METHOD:
            data["parameters"] = [p.to_dict() for p in self.parameters]
        if self.return_type is not None:
            data["return_type"] = self.return_type
        if self.value is not None:
            data["value"] = self.value
        if self.modifiers:
            data["modifiers"] = sorted(self.modifiers)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        return cls(
            name=data["name"],
            kind=MemberKind(data["kind"]),
            declaring_type=data.get("declaring_type", ""),
            parameters=tuple(Parameter.from_dict(p) for p in data.get("parameters", [])),
            return_type=data.get("return_type"),
            accessibility=Accessibility(data.get("accessibility", "public")),
            value=data.get("value"),
            modifiers=frozenset(data.get("modifiers", [])),
            stable=bool(data.get("stable", True)),
        )


class Surface:
    """Named, versioned snapshot of a library's public interface.

    Members are unique by signature and always iterate in signature order.
    """

    def __init__(self, name: str, version: str, members: Iterable[Member] = ()):
        self.name = name
        self.version = version
        by_signature: Dict[str, Member] = {}
        for member in members:
            sig = member.signature
            if sig in by_signature:
                raise ValueError(f"Duplicate member signature in surface {name}: {sig}")
            by_signature[sig] = member
        self._members = {sig: by_signature[sig] for sig in sorted(by_signature)}

    @property
    def members(self) -> List[Member]:
        return list(self._members.values())

    @property
    def identity(self) -> str:
        return f"{self.name} {self.version}"

    def get(self, signature: str) -> Optional[Member]:
        return self._members.get(signature)

    def __contains__(self, signature: str) -> bool:
        return signature in self._members

    def __iter__(self):
        return iter(self._members.values())

    def __len__(self) -> int:
        return len(self._members)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Surface):
            return NotImplemented
        return (self.name, self.version, self.members) == (other.name, other.version, other.members)

    def __repr__(self) -> str:
        return f"Surface(name={self.name!r}, version={self.version!r}, members={len(self)})"

    def overload_set(self, key: Tuple[MemberKind, str]) -> List[Member]:
        """Return all members sharing a kind and qualified name."""
        return [m for m in self._members.values() if m.overload_key == key]

    def to_dict(self) -> dict:
        return {
            "format": SNAPSHOT_FORMAT,
            "format_version": SNAPSHOT_FORMAT_VERSION,
            "name": self.name,
            "version": self.version,
            "members": [m.to_dict() for m in self._members.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Surface":
        """Build a Surface from a snapshot dict.

        Raises:
            ValueError: If the dict is not a surface snapshot or is malformed
        """
        if data.get("format") != SNAPSHOT_FORMAT:
            raise ValueError(f"Not an API surface snapshot (format={data.get('format')!r})")
        if data.get("format_version") != SNAPSHOT_FORMAT_VERSION:
            raise ValueError(f"Unsupported snapshot format_version: {data.get('format_version')!r}")
        try:
            members = [Member.from_dict(m) for m in data.get("members", [])]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed member entry: {e}") from e
        return cls(name=str(data.get("name", "")), version=str(data.get("version", "")), members=members)

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
