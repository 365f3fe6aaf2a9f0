"""
Package authz evaluates authorization requests against the active policy.
"""

from .types import (
    Subject,
    Decision,
    REASON_MATCHED,
    REASON_NO_ROLE,
    REASON_IMPLICIT_DENY,
    REASON_AUDIT_UNAVAILABLE,
)

from .authz import (
    Authorizer,
    decide,
    resolve_roles,
)

__all__ = [
    # Types
    'Subject',
    'Decision',
    'REASON_MATCHED',
    'REASON_NO_ROLE',
    'REASON_IMPLICIT_DENY',
    'REASON_AUDIT_UNAVAILABLE',

    # Core authorization
    'Authorizer',
    'decide',
    'resolve_roles',
]
