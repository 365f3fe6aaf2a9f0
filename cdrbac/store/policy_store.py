"""
Generation-versioned store for the active compiled policy.

Readers call ``current()`` once and evaluate against the returned snapshot;
``swap()`` publishes a new snapshot object, so a reader never sees rules from
two generations.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List
import logging
import threading

from ..policy.types import CompiledPolicy, EMPTY_POLICY


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicySnapshot:
    """A compiled policy bound to its generation number."""
    generation: int
    policy: CompiledPolicy
    activated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (without the rules)."""
        return {
            'generation': self.generation,
            'digest': self.policy.digest,
            'rules': len(self.policy.rules),
            'activated_at': self.activated_at.isoformat()
        }


class PolicyStore:
    """
    Holds the active PolicySnapshot.

    Generation 0 is an empty policy that denies everything. ``swap`` is the
    only writer and is serialized with a lock; ``current`` is a plain
    attribute read.
    """

    def __init__(self, history_size: int = 16):
        self._lock = threading.Lock()
        self._snapshot = PolicySnapshot(generation=0, policy=EMPTY_POLICY)
        self._history: Deque[PolicySnapshot] = deque([self._snapshot], maxlen=history_size)

    def current(self) -> PolicySnapshot:
        """Return the active snapshot."""
        return self._snapshot

    @property
    def generation(self) -> int:
        return self._snapshot.generation

    @property
    def policy(self) -> CompiledPolicy:
        return self._snapshot.policy

    def swap(self, policy: CompiledPolicy) -> PolicySnapshot:
        """Atomically activate ``policy`` as the next generation."""
        with self._lock:
            snapshot = PolicySnapshot(
                generation=self._snapshot.generation + 1,
                policy=policy,
            )
            self._snapshot = snapshot
            self._history.append(snapshot)

        logger.info(
            f"Activated policy generation {snapshot.generation} "
            f"({len(policy.rules)} rules, digest {policy.digest[:12]})"
        )
        return snapshot

    def history(self) -> List[Dict[str, Any]]:
        """Recently activated generations, oldest first."""
        with self._lock:
            return [snapshot.to_dict() for snapshot in self._history]
