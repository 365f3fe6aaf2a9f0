"""
Authorization types: subjects and decisions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from ..policy.types import Effect, Rule


# Decision reasons
REASON_MATCHED = "matched rule"
REASON_NO_ROLE = "no role assigned"
REASON_IMPLICIT_DENY = "implicit deny"
REASON_AUDIT_UNAVAILABLE = "audit unavailable"


@dataclass(frozen=True)
class Subject:
    """
    Pre-resolved identity: a user id plus its group memberships.
    """
    id: str
    groups: Tuple[str, ...] = ()

    @classmethod
    def of(cls, subject: Union[str, 'Subject']) -> 'Subject':
        """Accept either a Subject or a bare user id."""
        if isinstance(subject, Subject):
            return subject
        return cls(id=subject)


@dataclass(frozen=True)
class Decision:
    """
    Authorization decision, with the rule that produced it if any.
    """
    subject: str
    action: str
    resource_type: str
    resource_id: str
    outcome: Effect
    reason: str
    matched_rule: Optional[Rule] = None
    generation: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def allowed(self) -> bool:
        return self.outcome is Effect.ALLOW

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'subject': self.subject,
            'action': self.action,
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'outcome': self.outcome.value,
            'reason': self.reason,
            'matched_rule': self.matched_rule.to_dict() if self.matched_rule else None,
            'generation': self.generation,
            'timestamp': self.timestamp.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Decision':
        """Create from dictionary representation."""
        rule = data.get('matched_rule')
        return cls(
            subject=data['subject'],
            action=data['action'],
            resource_type=data['resource_type'],
            resource_id=data['resource_id'],
            outcome=Effect(data['outcome']),
            reason=data['reason'],
            matched_rule=Rule.from_dict(rule) if rule else None,
            generation=data.get('generation', 0),
            timestamp=datetime.fromisoformat(data['timestamp'])
        )
