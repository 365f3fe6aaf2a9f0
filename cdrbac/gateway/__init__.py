"""
aiohttp gateway integration: request authorization, audit export and metrics.
"""

from .middleware import (
    RequestTarget,
    METHOD_ACTIONS,
    DECISION_KEY,
    client_ip,
    subject_from_headers,
    default_request_resolver,
    create_authz_middleware,
    create_audit_export_handler,
    add_audit_routes,
    create_metrics_handler,
    add_metrics_route,
)

__all__ = [
    'RequestTarget',
    'METHOD_ACTIONS',
    'DECISION_KEY',
    'client_ip',
    'subject_from_headers',
    'default_request_resolver',
    'create_authz_middleware',
    'create_audit_export_handler',
    'add_audit_routes',
    'create_metrics_handler',
    'add_metrics_route',
]
