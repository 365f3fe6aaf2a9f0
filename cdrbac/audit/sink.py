"""
Audit sinks: where audit records are durably written before a decision is returned.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union
import json
import logging

import aiofiles

from ..types.errors import AuditStorageError
from .types import AuditRecord


logger = logging.getLogger(__name__)


class AuditSink(ABC):
    """Abstract base class for audit sinks"""

    @abstractmethod
    async def write(self, record: AuditRecord) -> None:
        """
        Persist one record.

        Raises:
            AuditStorageError: if the record could not be stored
        """
        pass

    async def close(self) -> None:
        """Close the sink and release resources"""
        pass


class MemoryAuditSink(AuditSink):
    """
    In-memory sink for development and testing.

    Append-only: once ``capacity`` records are stored every further write
    fails instead of evicting old records.
    """

    def __init__(self, capacity: Optional[int] = None):
        self.capacity = capacity
        self.records: List[AuditRecord] = []

    async def write(self, record: AuditRecord) -> None:
        if self.capacity is not None and len(self.records) >= self.capacity:
            raise AuditStorageError(
                f"Audit storage exhausted ({self.capacity} records)",
                subject=record.decision.subject,
                action=record.decision.action,
                details={'capacity': self.capacity}
            )
        self.records.append(record)


class FileAuditSink(AuditSink):
    """Appends records to a file as JSON lines."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    async def write(self, record: AuditRecord) -> None:
        line = json.dumps(record.to_dict(), sort_keys=True) + "\n"

        try:
            async with aiofiles.open(self.file_path, 'a', encoding='utf-8') as f:
                await f.write(line)
                await f.flush()
        except OSError as e:
            raise AuditStorageError(
                f"Failed to write audit record {record.sequence}: {e}",
                subject=record.decision.subject,
                action=record.decision.action,
                details={'file_path': str(self.file_path)},
                cause=e
            )

    async def read_all(self) -> List[AuditRecord]:
        """Read back every record in the file, in write order."""
        records = []

        try:
            async with aiofiles.open(self.file_path, 'r', encoding='utf-8') as f:
                line_number = 0
                async for line in f:
                    line_number += 1
                    if not line.strip():
                        continue
                    try:
                        records.append(AuditRecord.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, ValueError) as e:
                        raise AuditStorageError(
                            f"Corrupt audit record on line {line_number}: {e}",
                            details={'file_path': str(self.file_path), 'line_number': line_number},
                            cause=e
                        )
        except FileNotFoundError:
            return []
        except OSError as e:
            raise AuditStorageError(f"Failed to read audit file: {e}", cause=e)

        return records


def create_audit_sink(sink_type: str = "memory", **kwargs) -> AuditSink:
    """
    Factory function to create audit sinks

    Args:
        sink_type: Type of sink ("memory" or "file")
        **kwargs: capacity for memory sinks, file_path for file sinks

    Returns:
        AuditSink instance
    """
    if sink_type == "memory":
        return MemoryAuditSink(kwargs.get("capacity"))
    elif sink_type == "file":
        return FileAuditSink(kwargs.get("file_path", "audit.jsonl"))
    else:
        raise ValueError(f"Unknown audit sink type: {sink_type}")
