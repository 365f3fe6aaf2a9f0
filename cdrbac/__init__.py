"""
cdrbac Python Package

RBAC policy evaluation and audit correlation for GitOps continuous delivery.
"""

__version__ = "0.1.0"

from .core.engine import RbacEngine
from .core.config import Config
from .policy.types import Effect, Rule, GroupBinding, CompiledPolicy
from .policy.compiler import PolicyCompiler
from .store.policy_store import PolicyStore, PolicySnapshot
from .authz.authz import Authorizer
from .authz.types import Decision, Subject
from .audit.correlator import AuditCorrelator
from .audit.types import AuditRecord, AuditFilter
from .types.errors import (
    RbacError,
    PolicySyntaxError,
    PolicyConflictError,
    AuditStorageError,
    ConfigurationError,
)

__all__ = [
    "RbacEngine",
    "Config",
    "Effect",
    "Rule",
    "GroupBinding",
    "CompiledPolicy",
    "PolicyCompiler",
    "PolicyStore",
    "PolicySnapshot",
    "Authorizer",
    "Decision",
    "Subject",
    "AuditCorrelator",
    "AuditRecord",
    "AuditFilter",
    "RbacError",
    "PolicySyntaxError",
    "PolicyConflictError",
    "AuditStorageError",
    "ConfigurationError",
]
