"""
Configuration module for cdrbac.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from ..types.errors import ConfigurationError
from ..util.config import get_config_value, get_bool_config, get_int_config


AUDIT_BACKENDS = ("memory", "file")


@dataclass
class Config:
    """Configuration for the RBAC engine"""
    policy_file: Optional[str] = None
    default_role: Optional[str] = None
    include_builtin_policy: bool = False
    strict_unbound_roles: bool = False
    audit_backend: str = "memory"
    audit_file_path: str = "audit.jsonl"
    audit_capacity: Optional[int] = None
    policy_history_size: int = 16
    metrics_enabled: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from CDRBAC_* environment variables"""
        capacity = get_int_config("audit_capacity", 0)
        return cls(
            policy_file=get_config_value("policy_file"),
            default_role=get_config_value("default_role") or None,
            include_builtin_policy=get_bool_config("include_builtin_policy", False),
            strict_unbound_roles=get_bool_config("strict_unbound_roles", False),
            audit_backend=get_config_value("audit_backend", "memory"),
            audit_file_path=get_config_value("audit_file_path", "audit.jsonl"),
            audit_capacity=capacity if capacity > 0 else None,
            policy_history_size=get_int_config("policy_history_size", 16),
            metrics_enabled=get_bool_config("metrics_enabled", True),
            log_level=get_config_value("log_level", "INFO"),
        )

    def validate(self) -> bool:
        """Validate the configuration"""
        if self.audit_backend not in AUDIT_BACKENDS:
            raise ConfigurationError(
                f"audit_backend must be one of {AUDIT_BACKENDS}",
                config_key="audit_backend",
                config_value=self.audit_backend,
            )
        if self.audit_backend == "file" and not self.audit_file_path:
            raise ConfigurationError(
                "audit_file_path is required for the file audit backend",
                config_key="audit_file_path",
            )
        if self.audit_capacity is not None and self.audit_capacity <= 0:
            raise ConfigurationError(
                "audit_capacity must be positive",
                config_key="audit_capacity",
                config_value=self.audit_capacity,
            )
        if self.policy_history_size <= 0:
            raise ConfigurationError(
                "policy_history_size must be positive",
                config_key="policy_history_size",
                config_value=self.policy_history_size,
            )
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(
                "log_level is not a known logging level",
                config_key="log_level",
                config_value=self.log_level,
            )
        return True
