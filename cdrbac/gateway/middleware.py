"""
aiohttp integration: request authorization middleware, audit export and metrics.

The gateway in front of the service authenticates users and forwards the
resolved identity in the ``X-Subject`` and ``X-Groups`` headers.
"""

from dataclasses import dataclass
from typing import Callable, Optional
import json
import logging

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST

from ..audit.correlator import AuditCorrelator
from ..audit.types import AuditFilter
from ..authz.authz import Authorizer
from ..authz.types import Subject
from ..metrics.collector import MetricsCollector
from ..policy.types import Effect


logger = logging.getLogger(__name__)

SUBJECT_HEADER = "X-Subject"
GROUPS_HEADER = "X-Groups"
REQUEST_ID_HEADER = "X-Request-ID"
DECISION_KEY = "rbac_decision"

METHOD_ACTIONS = {
    "GET": "get",
    "HEAD": "get",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


@dataclass(frozen=True)
class RequestTarget:
    """What an HTTP request asks to do, and on whose behalf."""
    subject: Optional[Subject]
    action: str
    resource_type: str
    resource_id: str


def client_ip(request: web.Request) -> Optional[str]:
    """Extract the client address, honouring proxy headers."""
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip

    return request.remote


def subject_from_headers(request: web.Request) -> Optional[Subject]:
    """Build a Subject from the gateway identity headers."""
    subject_id = request.headers.get(SUBJECT_HEADER, "").strip()
    if not subject_id:
        return None

    groups = tuple(
        group.strip()
        for group in request.headers.get(GROUPS_HEADER, "").split(",")
        if group.strip()
    )
    return Subject(id=subject_id, groups=groups)


def default_request_resolver(request: web.Request) -> Optional[RequestTarget]:
    """
    Map a request to a RequestTarget using its route variables.

    Routes declare ``{resource_type}`` and ``{resource_id}`` and optionally
    ``{action}``; without an action variable the HTTP method decides. Requests
    on routes without a resource type are not authorized.
    """
    match_info = request.match_info
    resource_type = match_info.get("resource_type")
    if not resource_type:
        return None

    action = match_info.get("action") or METHOD_ACTIONS.get(request.method, request.method.lower())

    return RequestTarget(
        subject=subject_from_headers(request),
        action=action,
        resource_type=resource_type,
        resource_id=match_info.get("resource_id", ""),
    )


def create_authz_middleware(
    authorizer: Authorizer,
    resolver: Optional[Callable[[web.Request], Optional[RequestTarget]]] = None,
) -> Callable:
    """
    Create aiohttp middleware that authorizes every resolved request.

    Denied requests get a 403 JSON body with the decision reason; requests
    without an identity get a 401. The decision is stored on the request
    under ``rbac_decision`` for handlers.
    """
    resolver = resolver or default_request_resolver

    @web.middleware
    async def authz_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        target = resolver(request)
        if target is None:
            return await handler(request)

        if target.subject is None:
            raise web.HTTPUnauthorized(text="Missing subject identity")

        decision = await authorizer.evaluate(
            target.subject,
            target.action,
            target.resource_type,
            target.resource_id,
            request_id=request.headers.get(REQUEST_ID_HEADER),
            source_ip=client_ip(request),
        )
        request[DECISION_KEY] = decision

        if not decision.allowed:
            logger.info(
                f"Denied {target.subject.id} {target.action} "
                f"{target.resource_type}/{target.resource_id}: {decision.reason}"
            )
            return web.json_response(
                {
                    'error': 'permission denied',
                    'reason': decision.reason,
                    'action': target.action,
                    'resource_type': target.resource_type,
                    'resource_id': target.resource_id,
                },
                status=403,
            )

        return await handler(request)

    return authz_middleware


def create_audit_export_handler(correlator: AuditCorrelator) -> Callable:
    """
    Create a GET handler streaming audit records as JSON lines.

    Query parameters: ``subject``, ``outcome`` (allow|deny), ``since``
    (return records with a greater sequence number).
    """

    async def audit_export(request: web.Request) -> web.StreamResponse:
        params = request.query

        try:
            since = int(params.get("since", "0"))
            outcome = Effect.parse(params["outcome"]) if "outcome" in params else None
        except ValueError as e:
            raise web.HTTPBadRequest(text=f"Invalid query parameter: {e}")

        audit_filter = AuditFilter(subject=params.get("subject") or None, outcome=outcome)

        response = web.StreamResponse(headers={
            'Content-Type': 'application/x-ndjson',
            'X-Audit-Last-Sequence': str(correlator.last_sequence),
        })
        await response.prepare(request)

        async for record in correlator.query(audit_filter):
            if record.sequence <= since:
                continue
            line = json.dumps(record.to_dict(), sort_keys=True) + "\n"
            await response.write(line.encode("utf-8"))

        await response.write_eof()
        return response

    return audit_export


def add_audit_routes(app: web.Application, correlator: AuditCorrelator,
                     path: str = "/audit") -> None:
    """Register the audit export endpoint on ``app``."""
    app.router.add_get(path, create_audit_export_handler(correlator))


def create_metrics_handler(metrics: MetricsCollector) -> Callable:
    """Create a GET handler serving the collector in the Prometheus text format."""

    async def metrics_handler(request: web.Request) -> web.Response:
        return web.Response(
            body=metrics.export(),
            headers={
                'Content-Type': CONTENT_TYPE_LATEST,
                'Cache-Control': 'no-cache',
            },
        )

    return metrics_handler


def add_metrics_route(app: web.Application, metrics: MetricsCollector,
                      path: str = "/metrics") -> None:
    """Register the Prometheus scrape endpoint on ``app``."""
    app.router.add_get(path, create_metrics_handler(metrics))
