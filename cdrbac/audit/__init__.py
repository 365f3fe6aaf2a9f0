"""
Audit module initialization
"""

from .types import AuditRecord, AuditFilter
from .sink import AuditSink, MemoryAuditSink, FileAuditSink, create_audit_sink
from .correlator import AuditCorrelator

__all__ = [
    "AuditRecord",
    "AuditFilter",
    "AuditSink",
    "MemoryAuditSink",
    "FileAuditSink",
    "create_audit_sink",
    "AuditCorrelator",
]
