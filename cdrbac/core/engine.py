"""
RbacEngine wires the compiler, policy store, authorizer and audit correlator together.
"""

from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional, Union
import logging

from .config import Config
from ..audit.correlator import AuditCorrelator
from ..audit.sink import AuditSink, create_audit_sink
from ..audit.types import AuditFilter, AuditRecord
from ..authz.authz import Authorizer
from ..authz.types import Decision, Subject
from ..metrics.collector import MetricConfig, MetricsCollector
from ..policy.compiler import PolicyCompiler
from ..policy.loader import read_policy_file
from ..store.policy_store import PolicySnapshot, PolicyStore
from ..types.errors import ConfigurationError
from ..util.time_range import TimeRange


class RbacEngine:
    """
    Policy evaluation and audit correlation for a GitOps CD controller.
    Use RbacEngine.new() to construct an instance.
    """

    def __init__(
        self,
        config: Config,
        sink: Optional[AuditSink] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: engine configuration
            sink: audit sink (defaults to the backend named in config)
            metrics: metrics collector (defaults to a private registry)
        """
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.compiler = PolicyCompiler(
            strict_unbound_roles=config.strict_unbound_roles,
            default_role=config.default_role,
            include_builtin_policy=config.include_builtin_policy,
        )
        self.store = PolicyStore(history_size=config.policy_history_size)
        self.sink = sink or create_audit_sink(
            config.audit_backend,
            capacity=config.audit_capacity,
            file_path=config.audit_file_path,
        )
        self.correlator = AuditCorrelator(self.sink)
        self.metrics = metrics or MetricsCollector(MetricConfig(enabled=config.metrics_enabled))
        self.authorizer = Authorizer(self.store, self.correlator, self.metrics)

    @classmethod
    def new(
        cls,
        config: Optional[Config] = None,
        sink: Optional[AuditSink] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> "RbacEngine":
        """
        Create a validated engine.

        Raises:
            ConfigurationError: If configuration is invalid

        Example:
            engine = RbacEngine.new(Config(default_role="role:readonly"))
            engine.load_policy(["p, role:readonly, applications, get, */*, allow"])
        """
        config = config or Config()
        config.validate()
        return cls(config, sink, metrics)

    def load_policy(self, policy: Union[str, Iterable[str]]) -> PolicySnapshot:
        """
        Compile and activate a policy.

        The previous generation stays active if compilation fails.

        Raises:
            PolicySyntaxError, PolicyConflictError
        """
        if isinstance(policy, str):
            compiled = self.compiler.compile_text(policy)
        else:
            compiled = self.compiler.compile(policy)

        snapshot = self.store.swap(compiled)
        self.metrics.set_policy_generation(snapshot.generation)
        return snapshot

    async def load_policy_file(self, path: Optional[Union[str, Path]] = None) -> PolicySnapshot:
        """Read, compile and activate a policy file (``config.policy_file`` by default)."""
        path = path or self.config.policy_file
        if not path:
            raise ConfigurationError("No policy file configured", config_key="policy_file")

        text = await read_policy_file(path)
        snapshot = self.load_policy(text)
        self.logger.info(f"Policy file {path} active as generation {snapshot.generation}")
        return snapshot

    @property
    def generation(self) -> int:
        return self.store.generation

    async def authorize(
        self,
        subject: Union[str, Subject],
        action: str,
        resource_type: str,
        resource_id: str,
        request_id: Optional[str] = None,
        source_ip: Optional[str] = None,
    ) -> Decision:
        """Authorize a request and audit the decision."""
        return await self.authorizer.evaluate(
            subject, action, resource_type, resource_id,
            request_id=request_id, source_ip=source_ip,
        )

    def query(self, audit_filter: Optional[AuditFilter] = None) -> AsyncIterator[AuditRecord]:
        """Lazily iterate audit records matching the filter."""
        return self.correlator.query(audit_filter)

    def count_denials(self, subject: str, time_range: Optional[TimeRange] = None) -> int:
        return self.correlator.count_denials(subject, time_range)

    def list_actions_by_subject(self, subject: str) -> List[AuditRecord]:
        return self.correlator.list_actions_by_subject(subject)

    async def close(self) -> None:
        """Close the audit sink"""
        await self.correlator.close()
