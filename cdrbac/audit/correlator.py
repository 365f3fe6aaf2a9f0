"""
Audit correlator: the append-only log of authorization decisions.

Records are written to the sink first and only then published to the
in-memory log, so every record in the log is durable. Queries read a prefix of
the log fixed at query start and never take the writer lock.
"""

from bisect import bisect_left, bisect_right
from collections import defaultdict
from datetime import datetime
from typing import AsyncIterator, Dict, Iterable, Iterator, List, Optional
import asyncio
import logging

from ..authz.types import Decision
from ..policy.types import Effect
from ..types.errors import AuditStorageError
from ..util.time_range import TimeRange
from .sink import AuditSink, MemoryAuditSink
from .types import AuditFilter, AuditRecord


logger = logging.getLogger(__name__)


class AuditCorrelator:
    """
    Owns the audit log and its indices (by subject, by outcome, by time).

    Sequence numbers start at 1 and have no gaps: a failed sink write does
    not consume one.
    """

    def __init__(self, sink: Optional[AuditSink] = None, query_batch_size: int = 256):
        self.sink = sink or MemoryAuditSink()
        self.query_batch_size = query_batch_size
        self._lock = asyncio.Lock()
        self._records: List[AuditRecord] = []
        self._timestamps: List[datetime] = []
        self._by_subject: Dict[str, List[int]] = defaultdict(list)
        self._by_outcome: Dict[Effect, List[int]] = defaultdict(list)

    def __len__(self) -> int:
        return len(self._records)

    @property
    def last_sequence(self) -> int:
        """Sequence number of the newest record, 0 if none."""
        return len(self._records)

    async def record(
        self,
        decision: Decision,
        request_id: Optional[str] = None,
        source_ip: Optional[str] = None,
    ) -> AuditRecord:
        """
        Append a decision to the audit log.

        Raises:
            AuditStorageError: if the sink rejects the record
        """
        async with self._lock:
            index = len(self._records)
            timestamp = datetime.now()
            if self._timestamps and timestamp < self._timestamps[-1]:
                # Keep timestamps non-decreasing so time queries can bisect
                timestamp = self._timestamps[-1]

            record = AuditRecord(
                sequence=index + 1,
                decision=decision,
                timestamp=timestamp,
                request_id=request_id,
                source_ip=source_ip,
            )

            try:
                await self.sink.write(record)
            except AuditStorageError:
                raise
            except Exception as e:
                raise AuditStorageError(
                    f"Audit sink failed: {e}",
                    subject=decision.subject,
                    action=decision.action,
                    cause=e
                )

            self._timestamps.append(timestamp)
            self._by_subject[decision.subject].append(index)
            self._by_outcome[decision.outcome].append(index)
            # Publishing the record makes it visible to new queries
            self._records.append(record)

        logger.debug(
            f"Audit #{record.sequence}: {decision.subject} {decision.action} "
            f"{decision.resource_type}/{decision.resource_id} -> {decision.outcome.value}"
        )
        return record

    def _candidates(self, audit_filter: Optional[AuditFilter], limit: int) -> Iterable[int]:
        """Smallest index list that can satisfy the filter, bounded by ``limit``."""
        lo, hi = 0, limit

        if audit_filter is None:
            return range(lo, hi)

        time_range = audit_filter.time_range
        if time_range is not None:
            if time_range.start is not None:
                lo = bisect_left(self._timestamps, time_range.start, 0, limit)
            if time_range.end is not None:
                hi = bisect_right(self._timestamps, time_range.end, 0, limit)
            if lo >= hi:
                return ()

        best: Iterable[int] = range(lo, hi)
        best_size = hi - lo

        indices = []
        if audit_filter.subject is not None:
            indices.append(self._by_subject.get(audit_filter.subject, []))
        if audit_filter.outcome is not None:
            indices.append(self._by_outcome.get(audit_filter.outcome, []))

        for index in indices:
            start = bisect_left(index, lo)
            end = bisect_left(index, hi)
            if end - start < best_size:
                best = index[start:end]
                best_size = end - start

        return best

    def _select(self, audit_filter: Optional[AuditFilter] = None) -> Iterator[AuditRecord]:
        limit = len(self._records)
        for index in self._candidates(audit_filter, limit):
            record = self._records[index]
            if audit_filter is None or audit_filter.matches(record):
                yield record

    async def query(self, audit_filter: Optional[AuditFilter] = None) -> AsyncIterator[AuditRecord]:
        """
        Lazily yield records matching ``audit_filter`` in sequence order.

        Only records present when the query starts are visible. The generator
        yields to the event loop every ``query_batch_size`` candidates, so the
        consuming task can be cancelled during long scans.
        """
        limit = len(self._records)
        scanned = 0
        for index in self._candidates(audit_filter, limit):
            record = self._records[index]
            if audit_filter is None or audit_filter.matches(record):
                yield record
            scanned += 1
            if scanned % self.query_batch_size == 0:
                await asyncio.sleep(0)

    def count_denials(self, subject: str, time_range: Optional[TimeRange] = None) -> int:
        """Number of denied decisions for ``subject``, optionally within a time range."""
        audit_filter = AuditFilter(subject=subject, outcome=Effect.DENY, time_range=time_range)
        return sum(1 for _ in self._select(audit_filter))

    def list_actions_by_subject(self, subject: str) -> List[AuditRecord]:
        """Every recorded decision for ``subject``, oldest first."""
        return list(self._select(AuditFilter(subject=subject)))

    def records_since(self, sequence: int, limit: Optional[int] = None) -> List[AuditRecord]:
        """
        Records with a sequence number greater than ``sequence``.

        Intended as a pull cursor for log aggregators.
        """
        start = max(sequence, 0)
        end = len(self._records)
        if limit is not None:
            end = min(end, start + limit)
        return self._records[start:end]

    async def close(self) -> None:
        await self.sink.close()
