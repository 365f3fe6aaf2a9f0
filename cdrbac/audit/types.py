"""
Audit record and query filter types.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..authz.types import Decision
from ..policy.types import Effect
from ..util.time_range import TimeRange


@dataclass(frozen=True)
class AuditRecord:
    """A recorded decision with its sequence number and correlation metadata."""
    sequence: int
    decision: Decision
    timestamp: datetime
    request_id: Optional[str] = None
    source_ip: Optional[str] = None

    @property
    def subject(self) -> str:
        return self.decision.subject

    @property
    def outcome(self) -> Effect:
        return self.decision.outcome

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'sequence': self.sequence,
            'timestamp': self.timestamp.isoformat(),
            'request_id': self.request_id,
            'source_ip': self.source_ip,
            'decision': self.decision.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditRecord':
        """Create from dictionary representation."""
        return cls(
            sequence=data['sequence'],
            decision=Decision.from_dict(data['decision']),
            timestamp=datetime.fromisoformat(data['timestamp']),
            request_id=data.get('request_id'),
            source_ip=data.get('source_ip')
        )


@dataclass(frozen=True)
class AuditFilter:
    """Criteria for audit queries. Unset fields match everything."""
    subject: Optional[str] = None
    time_range: Optional[TimeRange] = None
    outcome: Optional[Effect] = None
    action: Optional[str] = None
    resource_type: Optional[str] = None

    def matches(self, record: AuditRecord) -> bool:
        decision = record.decision

        if self.subject is not None and decision.subject != self.subject:
            return False

        if self.outcome is not None and decision.outcome is not self.outcome:
            return False

        if self.action is not None and decision.action != self.action:
            return False

        if self.resource_type is not None and decision.resource_type != self.resource_type:
            return False

        if self.time_range is not None and not self.time_range.contains(record.timestamp):
            return False

        return True
