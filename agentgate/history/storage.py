"""Execution storage backends.

Storage is append-only from the pipeline's point of view: ``create``
persists a finished record, ``stats_for`` and ``list`` serve read-side
reporting. A failed ``create`` raises StorageError.
"""

import threading
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from agentgate.db.engine import get_session
from agentgate.db.models import Execution
from agentgate.errors import StorageError
from agentgate.history.models import ExecutionRecord, ExecutionStats, ExecutionStatus


class ExecutionStorage(Protocol):
    def create(self, record: ExecutionRecord) -> ExecutionRecord: ...

    def stats_for(
        self,
        agent_type: Optional[str] = None,
        since: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
    ) -> ExecutionStats: ...

    def list(
        self,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[ExecutionRecord]: ...


def _aggregate(records: list[ExecutionRecord]) -> ExecutionStats:
    durations = [r.duration_ms for r in records if r.duration_ms is not None]
    return ExecutionStats(
        count=len(records),
        success_count=sum(1 for r in records if r.status == ExecutionStatus.SUCCESS),
        error_count=sum(1 for r in records if r.status == ExecutionStatus.ERROR),
        timeout_count=sum(1 for r in records if r.status == ExecutionStatus.TIMEOUT),
        cache_hits=sum(1 for r in records if r.cache_hit),
        total_cost=round(sum(r.total_cost for r in records), 6),
        total_tokens=sum(r.total_tokens for r in records),
        avg_duration_ms=round(sum(durations) / len(durations), 2) if durations else None,
    )


class InMemoryExecutionStorage:
    """List-backed storage for tests and single-process use."""

    def __init__(self):
        self.records: list[ExecutionRecord] = []
        self._lock = threading.Lock()

    def create(self, record: ExecutionRecord) -> ExecutionRecord:
        with self._lock:
            self.records.append(record)
        return record

    def list(
        self,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[ExecutionRecord]:
        with self._lock:
            records = list(self.records)
        if agent_type:
            records = [r for r in records if r.agent_type == agent_type]
        if tenant_id:
            records = [r for r in records if r.tenant_id == tenant_id]
        if since:
            records = [r for r in records if r.started_at and r.started_at >= since]
        return records[-limit:]

    def stats_for(
        self,
        agent_type: Optional[str] = None,
        since: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
    ) -> ExecutionStats:
        return _aggregate(self.list(agent_type, tenant_id, since, limit=len(self.records) or 1))


def _to_row(record: ExecutionRecord) -> Execution:
    data = record.model_dump(exclude={"metadata", "response", "execution_type", "status"})
    return Execution(
        **data,
        execution_type=record.execution_type.value,
        status=record.status.value,
        response=None if record.response is None else {"content": record.response},
        extra=record.metadata or None,
    )


def _to_record(row: Execution) -> ExecutionRecord:
    data = row.model_dump(exclude={"extra", "response", "created_at"})
    return ExecutionRecord(
        **data,
        response=(row.response or {}).get("content"),
        metadata=row.extra or {},
    )


class SQLExecutionStorage:
    """Execution storage on a SQL database via SQLModel."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create(self, record: ExecutionRecord) -> ExecutionRecord:
        try:
            with get_session(self.engine) as session:
                session.add(_to_row(record))
                session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write execution {record.id}: {e}") from e
        return record

    def _filtered(self, statement, agent_type, tenant_id, since):
        if agent_type:
            statement = statement.where(Execution.agent_type == agent_type)
        if tenant_id:
            statement = statement.where(Execution.tenant_id == tenant_id)
        if since:
            statement = statement.where(Execution.started_at >= since)
        return statement

    def list(
        self,
        agent_type: Optional[str] = None,
        tenant_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> list[ExecutionRecord]:
        statement = self._filtered(select(Execution), agent_type, tenant_id, since)
        statement = statement.order_by(Execution.created_at.desc()).limit(limit)
        with get_session(self.engine) as session:
            rows = session.exec(statement).all()
            return [_to_record(row) for row in reversed(rows)]

    def stats_for(
        self,
        agent_type: Optional[str] = None,
        since: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
    ) -> ExecutionStats:
        statement = self._filtered(
            select(
                func.count(Execution.id),
                func.sum(Execution.total_cost),
                func.sum(Execution.total_tokens),
                func.avg(Execution.duration_ms),
            ),
            agent_type,
            tenant_id,
            since,
        )
        status_statement = self._filtered(
            select(Execution.status, func.count(Execution.id)).group_by(Execution.status),
            agent_type,
            tenant_id,
            since,
        )
        cache_statement = self._filtered(
            select(func.count(Execution.id)).where(Execution.cache_hit == True),  # noqa: E712
            agent_type,
            tenant_id,
            since,
        )

        with get_session(self.engine) as session:
            count, total_cost, total_tokens, avg_duration = session.exec(statement).one()
            by_status = dict(session.exec(status_statement).all())
            cache_hits = session.exec(cache_statement).one()

        return ExecutionStats(
            count=count or 0,
            success_count=by_status.get(ExecutionStatus.SUCCESS.value, 0),
            error_count=by_status.get(ExecutionStatus.ERROR.value, 0),
            timeout_count=by_status.get(ExecutionStatus.TIMEOUT.value, 0),
            cache_hits=cache_hits or 0,
            total_cost=round(total_cost or 0.0, 6),
            total_tokens=int(total_tokens or 0),
            avg_duration_ms=round(float(avg_duration), 2) if avg_duration is not None else None,
        )
