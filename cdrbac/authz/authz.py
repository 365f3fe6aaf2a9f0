"""
Core authorization engine.
Evaluates requests against the active policy snapshot and audits every decision.
"""

from datetime import datetime
from typing import FrozenSet, Optional, Union, TYPE_CHECKING
import logging
import time

from ..policy.glob import match_resource
from ..policy.types import CompiledPolicy, Effect
from ..store.policy_store import PolicySnapshot, PolicyStore
from ..types.errors import AuditStorageError
from .types import (
    Decision, Subject,
    REASON_MATCHED, REASON_NO_ROLE, REASON_IMPLICIT_DENY, REASON_AUDIT_UNAVAILABLE,
)

if TYPE_CHECKING:
    from ..audit.correlator import AuditCorrelator
    from ..metrics.collector import MetricsCollector


logger = logging.getLogger(__name__)


def resolve_roles(policy: CompiledPolicy, subject: Subject) -> FrozenSet[str]:
    """Roles held by the subject directly, through its groups, and by default."""
    roles = set(policy.roles_for(subject.id))
    for group in subject.groups:
        roles |= policy.roles_for(group)
    if policy.default_role:
        roles.add(policy.default_role)
    return frozenset(roles)


def decide(
    snapshot: PolicySnapshot,
    subject: Union[str, Subject],
    action: str,
    resource_type: str,
    resource_id: str,
) -> Decision:
    """
    Evaluate a request against one snapshot, without auditing.

    Rules are tried in compiled order and the first match wins. Requests
    matching no rule are denied.
    """
    subject = Subject.of(subject)
    policy = snapshot.policy
    roles = resolve_roles(policy, subject)

    def make(outcome: Effect, reason: str, rule=None) -> Decision:
        return Decision(
            subject=subject.id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            outcome=outcome,
            reason=reason,
            matched_rule=rule,
            generation=snapshot.generation,
            timestamp=datetime.now(),
        )

    if not roles:
        return make(Effect.DENY, REASON_NO_ROLE)

    for rule in policy.rules:
        if (rule.role in roles
                and rule.resource_type == resource_type
                and rule.action == action
                and match_resource(rule.resource_pattern, resource_id)):
            return make(rule.effect, REASON_MATCHED, rule)

    return make(Effect.DENY, REASON_IMPLICIT_DENY)


class Authorizer:
    """
    Authorizes requests against the Policy Store and records every decision.

    A decision is returned only after its audit record is stored. When the
    audit sink fails the request is denied instead.
    """

    def __init__(
        self,
        store: PolicyStore,
        correlator: 'AuditCorrelator',
        metrics: Optional['MetricsCollector'] = None,
    ):
        self.store = store
        self.correlator = correlator
        self.metrics = metrics

    async def evaluate(
        self,
        subject: Union[str, Subject],
        action: str,
        resource_type: str,
        resource_id: str,
        request_id: Optional[str] = None,
        source_ip: Optional[str] = None,
    ) -> Decision:
        """
        Determine if a subject can perform an action on a resource.

        Args:
            subject: user id, or Subject carrying group memberships
            action: requested action, e.g. "sync"
            resource_type: e.g. "applications"
            resource_id: e.g. "myapp/prod"
            request_id: correlation id copied into the audit record
            source_ip: client address copied into the audit record

        Returns:
            Decision: allow/deny with the matched rule, if any
        """
        started = time.perf_counter()
        snapshot = self.store.current()
        decision = decide(snapshot, subject, action, resource_type, resource_id)

        try:
            await self.correlator.record(decision, request_id=request_id, source_ip=source_ip)
        except AuditStorageError as e:
            logger.error(
                f"Audit write failed, denying {decision.subject} {action} "
                f"{resource_type}/{resource_id}: {e}"
            )
            if self.metrics:
                self.metrics.record_audit_failure()
            decision = Decision(
                subject=decision.subject,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                outcome=Effect.DENY,
                reason=REASON_AUDIT_UNAVAILABLE,
                generation=snapshot.generation,
                timestamp=decision.timestamp,
            )

        logger.debug(
            f"{decision.subject} {action} {resource_type}/{resource_id}: "
            f"{decision.outcome.value} ({decision.reason}, generation {decision.generation})"
        )

        if self.metrics:
            self.metrics.record_decision(
                decision.outcome.value, resource_type, time.perf_counter() - started
            )

        return decision

    async def is_allowed(
        self,
        subject: Union[str, Subject],
        action: str,
        resource_type: str,
        resource_id: str,
    ) -> bool:
        """Convenience wrapper returning only the outcome."""
        decision = await self.evaluate(subject, action, resource_type, resource_id)
        return decision.allowed
