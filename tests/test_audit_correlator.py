"""
Tests for the audit correlator and audit sinks.
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from cdrbac.audit import (
    AuditCorrelator,
    AuditFilter,
    AuditRecord,
    FileAuditSink,
    MemoryAuditSink,
    create_audit_sink,
)
from cdrbac.authz import Decision
from cdrbac.policy import Effect, Rule
from cdrbac.types.errors import AuditStorageError
from cdrbac.util import TimeRange


def make_decision(subject="eddie", action="sync", outcome=Effect.ALLOW,
                  resource_type="applications", resource_id="myapp/prod"):
    rule = None
    if outcome is Effect.ALLOW:
        rule = Rule("role:developer", resource_type, action, "*/*", Effect.ALLOW, 2)
    return Decision(
        subject=subject,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        outcome=outcome,
        reason="matched rule" if rule else "implicit deny",
        matched_rule=rule,
        generation=1,
    )


async def collect(iterator):
    return [record async for record in iterator]


class TestRecord:
    """Test appending to the audit log"""

    @pytest.mark.asyncio
    async def test_sequence_numbers(self):
        """Test sequence numbers start at 1 and increase by one"""
        correlator = AuditCorrelator()

        first = await correlator.record(make_decision(), request_id="r1", source_ip="10.0.0.1")
        second = await correlator.record(make_decision(action="get"))

        assert first.sequence == 1
        assert second.sequence == 2
        assert first.request_id == "r1"
        assert first.source_ip == "10.0.0.1"
        assert correlator.last_sequence == 2
        assert len(correlator) == 2

    @pytest.mark.asyncio
    async def test_concurrent_records_are_serialized(self):
        """Test concurrent writers get unique, ordered sequence numbers"""
        correlator = AuditCorrelator()

        records = await asyncio.gather(*[
            correlator.record(make_decision(subject=f"user{i}")) for i in range(50)
        ])

        assert sorted(record.sequence for record in records) == list(range(1, 51))
        logged = correlator.records_since(0)
        assert [record.sequence for record in logged] == list(range(1, 51))
        timestamps = [record.timestamp for record in logged]
        assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_sink_failure_consumes_no_sequence(self):
        """Test a rejected write leaves the log unchanged"""
        sink = MemoryAuditSink(capacity=1)
        correlator = AuditCorrelator(sink)

        await correlator.record(make_decision())
        with pytest.raises(AuditStorageError) as exc_info:
            await correlator.record(make_decision(subject="frank"))

        assert exc_info.value.subject == "frank"
        assert exc_info.value.details["capacity"] == 1
        assert len(correlator) == 1
        assert correlator.list_actions_by_subject("frank") == []

    @pytest.mark.asyncio
    async def test_records_reach_sink(self):
        sink = MemoryAuditSink()
        correlator = AuditCorrelator(sink)
        record = await correlator.record(make_decision())
        assert sink.records == [record]


class TestQuery:
    """Test audit queries and compliance reports"""

    @pytest.fixture
    def decisions(self):
        return [
            make_decision("eddie", "sync"),
            make_decision("eddie", "delete", Effect.DENY),
            make_decision("mallory", "get", Effect.DENY),
            make_decision("eddie", "delete", Effect.DENY, resource_id="other/app"),
            make_decision("frank", "get", resource_type="clusters", resource_id="in-cluster"),
        ]

    @pytest.mark.asyncio
    async def test_query_all(self, decisions):
        correlator = AuditCorrelator()
        for decision in decisions:
            await correlator.record(decision)

        records = await collect(correlator.query())
        assert [record.decision for record in records] == decisions

    @pytest.mark.asyncio
    async def test_query_filters(self, decisions):
        """Test filtering by subject, outcome, action and resource type"""
        correlator = AuditCorrelator()
        for decision in decisions:
            await correlator.record(decision)

        eddie = await collect(correlator.query(AuditFilter(subject="eddie")))
        assert [record.sequence for record in eddie] == [1, 2, 4]

        denied = await collect(correlator.query(AuditFilter(outcome=Effect.DENY)))
        assert [record.sequence for record in denied] == [2, 3, 4]

        eddie_denied = await collect(correlator.query(
            AuditFilter(subject="eddie", outcome=Effect.DENY)
        ))
        assert [record.sequence for record in eddie_denied] == [2, 4]

        clusters = await collect(correlator.query(AuditFilter(resource_type="clusters")))
        assert [record.subject for record in clusters] == ["frank"]

        gets = await collect(correlator.query(AuditFilter(action="get")))
        assert [record.sequence for record in gets] == [3, 5]

        nobody = await collect(correlator.query(AuditFilter(subject="nobody")))
        assert nobody == []

    @pytest.mark.asyncio
    async def test_time_range(self):
        """Test filtering by time range"""
        correlator = AuditCorrelator()
        start = datetime.now()

        await correlator.record(make_decision(outcome=Effect.DENY))
        await correlator.record(make_decision(outcome=Effect.DENY))
        await asyncio.sleep(0.01)
        middle = datetime.now()
        await asyncio.sleep(0.01)
        await correlator.record(make_decision(outcome=Effect.DENY))

        early = TimeRange(start, middle)
        late = TimeRange(start=middle)

        assert correlator.count_denials("eddie") == 3
        assert correlator.count_denials("eddie", early) == 2
        assert correlator.count_denials("eddie", late) == 1
        assert correlator.count_denials("eddie", TimeRange(end=start - timedelta(seconds=1))) == 0

        late_records = await collect(correlator.query(AuditFilter(time_range=late)))
        assert [record.sequence for record in late_records] == [3]

        assert correlator.count_denials("eddie", TimeRange.last(timedelta(minutes=5))) == 3

    @pytest.mark.asyncio
    async def test_time_range_with_aware_bounds(self):
        """Test timezone-aware bounds compare against record timestamps"""
        correlator = AuditCorrelator()
        await correlator.record(make_decision(outcome=Effect.DENY))

        since_2020 = TimeRange(start=datetime(2020, 1, 1, tzinfo=timezone.utc))
        before_2020 = TimeRange(end=datetime(2019, 12, 31, tzinfo=timezone.utc))
        last_hour = TimeRange.last(timedelta(hours=1), datetime.now(timezone.utc))

        assert correlator.count_denials("eddie", since_2020) == 1
        assert correlator.count_denials("eddie", before_2020) == 0
        assert correlator.count_denials("eddie", last_hour) == 1

        records = await collect(correlator.query(AuditFilter(time_range=since_2020)))
        assert [record.sequence for record in records] == [1]
        assert since_2020.start.tzinfo is None

    def test_time_range_bounds(self):
        now = datetime.now()
        with pytest.raises(ValueError):
            TimeRange(now, now - timedelta(seconds=1))
        assert TimeRange(now, now).contains(now)
        assert TimeRange.last(timedelta(hours=1), now) == TimeRange(now - timedelta(hours=1), now)

    @pytest.mark.asyncio
    async def test_list_actions_by_subject(self, decisions):
        correlator = AuditCorrelator()
        for decision in decisions:
            await correlator.record(decision)

        actions = correlator.list_actions_by_subject("eddie")
        assert [record.decision.action for record in actions] == ["sync", "delete", "delete"]

    @pytest.mark.asyncio
    async def test_count_denials_ignores_allows(self, decisions):
        correlator = AuditCorrelator()
        for decision in decisions:
            await correlator.record(decision)

        assert correlator.count_denials("eddie") == 2
        assert correlator.count_denials("frank") == 0

    @pytest.mark.asyncio
    async def test_records_since(self, decisions):
        """Test the pull cursor"""
        correlator = AuditCorrelator()
        for decision in decisions:
            await correlator.record(decision)

        assert [r.sequence for r in correlator.records_since(3)] == [4, 5]
        assert [r.sequence for r in correlator.records_since(0, limit=2)] == [1, 2]
        assert correlator.records_since(5) == []

    @pytest.mark.asyncio
    async def test_query_sees_snapshot_from_start(self):
        """Test records appended during a query are not visible to it"""
        correlator = AuditCorrelator()
        for _ in range(3):
            await correlator.record(make_decision())

        iterator = correlator.query()
        first = await iterator.__anext__()
        await correlator.record(make_decision())
        rest = await collect(iterator)

        assert first.sequence == 1
        assert [record.sequence for record in rest] == [2, 3]
        assert len(correlator) == 4

    @pytest.mark.asyncio
    async def test_query_can_be_cancelled(self):
        """Test a long scan yields to the event loop and can be cancelled"""
        correlator = AuditCorrelator(query_batch_size=10)
        for _ in range(1000):
            await correlator.record(make_decision())

        async def scan():
            return await collect(correlator.query(AuditFilter(action="nothing")))

        task = asyncio.create_task(scan())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestSinks:
    """Test audit sink implementations"""

    @pytest.mark.asyncio
    async def test_file_sink_round_trip(self, tmp_path):
        """Test records written to a file can be read back"""
        path = tmp_path / "audit.jsonl"
        sink = FileAuditSink(path)
        correlator = AuditCorrelator(sink)

        written = [
            await correlator.record(make_decision(), request_id="abc"),
            await correlator.record(make_decision(outcome=Effect.DENY)),
        ]

        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["sequence"] == 1
        assert json.loads(lines[0])["decision"]["matched_rule"]["role"] == "role:developer"

        assert await sink.read_all() == written

    @pytest.mark.asyncio
    async def test_file_sink_unwritable(self, tmp_path):
        """Test an unwritable path raises AuditStorageError"""
        sink = FileAuditSink(tmp_path / "missing-dir" / "audit.jsonl")
        correlator = AuditCorrelator(sink)

        with pytest.raises(AuditStorageError) as exc_info:
            await correlator.record(make_decision())

        assert isinstance(exc_info.value.cause, OSError)
        assert len(correlator) == 0

    @pytest.mark.asyncio
    async def test_file_sink_missing_file_reads_empty(self, tmp_path):
        sink = FileAuditSink(tmp_path / "none.jsonl")
        assert await sink.read_all() == []

    @pytest.mark.asyncio
    async def test_file_sink_corrupt_line(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        path.write_text("{not json}\n")

        with pytest.raises(AuditStorageError) as exc_info:
            await FileAuditSink(path).read_all()
        assert exc_info.value.details["line_number"] == 1

    def test_record_to_dict(self):
        record = AuditRecord(sequence=7, decision=make_decision(), timestamp=datetime(2025, 1, 2, 3, 4, 5))
        data = record.to_dict()
        assert data["sequence"] == 7
        assert data["timestamp"] == "2025-01-02T03:04:05"
        assert data["decision"]["outcome"] == "allow"

    def test_factory(self, tmp_path):
        assert isinstance(create_audit_sink("memory", capacity=5), MemoryAuditSink)
        assert isinstance(create_audit_sink("file", file_path=str(tmp_path / "a.jsonl")), FileAuditSink)
        with pytest.raises(ValueError):
            create_audit_sink("kafka")
