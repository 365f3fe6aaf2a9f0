"""
Shared error types for cdrbac.
"""

from .errors import (
    ErrorCode,
    RbacError,
    PolicySyntaxError,
    PolicyConflictError,
    AuditStorageError,
    ConfigurationError,
    INTERNAL_ERROR,
    POLICY_SYNTAX,
    POLICY_CONFLICT,
    AUDIT_STORAGE,
    CONFIGURATION_ERROR,
)

__all__ = [
    'ErrorCode',
    'RbacError',
    'PolicySyntaxError',
    'PolicyConflictError',
    'AuditStorageError',
    'ConfigurationError',
    'INTERNAL_ERROR',
    'POLICY_SYNTAX',
    'POLICY_CONFLICT',
    'AUDIT_STORAGE',
    'CONFIGURATION_ERROR',
]
