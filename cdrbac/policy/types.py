"""
Policy types: rules, group bindings and the compiled policy.
All of them are immutable once built by the compiler.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional, Tuple, Any


class Effect(Enum):
    """Rule effect (allow/deny)."""
    ALLOW = "allow"
    DENY = "deny"

    @classmethod
    def parse(cls, value: str) -> 'Effect':
        """Parse an effect case-insensitively. Raises ValueError."""
        return cls(value.strip().lower())


# Constants for convenience
Allow = Effect.ALLOW
Deny = Effect.DENY


@dataclass(frozen=True)
class Rule:
    """
    A single ``p`` line: effect granted to a role for an action on resources.
    """
    role: str
    resource_type: str
    action: str
    resource_pattern: str
    effect: Effect
    line_number: int = field(default=0, compare=False)

    @property
    def key(self) -> Tuple[str, str, str, str]:
        """Match criteria without the effect."""
        return (self.role, self.resource_type, self.action, self.resource_pattern)

    def to_line(self) -> str:
        return (f"p, {self.role}, {self.resource_type}, {self.action}, "
                f"{self.resource_pattern}, {self.effect.value}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'role': self.role,
            'resource_type': self.resource_type,
            'action': self.action,
            'resource_pattern': self.resource_pattern,
            'effect': self.effect.value,
            'line_number': self.line_number
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Rule':
        """Create from dictionary representation."""
        return cls(
            role=data['role'],
            resource_type=data['resource_type'],
            action=data['action'],
            resource_pattern=data['resource_pattern'],
            effect=Effect(data['effect']),
            line_number=data.get('line_number', 0)
        )

    def __str__(self) -> str:
        return self.to_line()


@dataclass(frozen=True)
class GroupBinding:
    """A single ``g`` line: a subject (user, group or role) holds a role."""
    subject: str
    role: str
    line_number: int = field(default=0, compare=False)

    def to_line(self) -> str:
        return f"g, {self.subject}, {self.role}"


@dataclass(frozen=True)
class CompiledPolicy:
    """
    Ordered rules plus the resolved subject -> roles mapping.

    Rule order is the evaluation order. Roles in ``bindings`` are already
    expanded through role inheritance.
    """
    rules: Tuple[Rule, ...] = ()
    bindings: Mapping[str, FrozenSet[str]] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )
    warnings: Tuple[str, ...] = ()
    digest: str = ""
    default_role: Optional[str] = None

    def roles_for(self, subject: str) -> FrozenSet[str]:
        """Roles bound to a single subject id or group name."""
        return self.bindings.get(subject, frozenset())

    @property
    def roles(self) -> FrozenSet[str]:
        """Every role referenced by a rule."""
        return frozenset(rule.role for rule in self.rules)

    def __len__(self) -> int:
        return len(self.rules)


EMPTY_POLICY = CompiledPolicy()
