"""Builds execution records from a finished Context and persists them.

Recording is best-effort: a storage failure is logged and swallowed so
history can never fail the caller's invocation. In async mode the write
runs on a worker thread and ``drain()`` waits for outstanding writes.
"""

import asyncio
from typing import TYPE_CHECKING, Optional

from agentgate import alerts
from agentgate.alerts import AlertManager
from agentgate.config import EngineConfig
from agentgate.errors import ProviderTimeoutError
from agentgate.history.models import ExecutionRecord, ExecutionStatus
from agentgate.history.storage import ExecutionStorage
from agentgate.logging import get_logger
from agentgate.metrics.costs import calculate_cost
from agentgate.models import TokenUsage
from agentgate.redaction import Redactor

if TYPE_CHECKING:
    from agentgate.pipeline.context import Context

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000

TIMEOUT_ERRORS = (TimeoutError, asyncio.TimeoutError, ProviderTimeoutError)


def status_for(error: BaseException) -> ExecutionStatus:
    return ExecutionStatus.TIMEOUT if isinstance(error, TIMEOUT_ERRORS) else ExecutionStatus.ERROR


class ExecutionRecorder:
    def __init__(
        self,
        storage: ExecutionStorage,
        config: EngineConfig,
        alert_manager: Optional[AlertManager] = None,
    ):
        self.storage = storage
        self.config = config
        self.alert_manager = alert_manager
        self.redactor = Redactor(config.redaction)
        self._pending: set[asyncio.Task] = set()

    async def record_success(self, context: "Context") -> None:
        await self._save(self.build_record(context, ExecutionStatus.SUCCESS))

    async def record_cache_hit(self, context: "Context") -> None:
        await self._save(self.build_record(context, ExecutionStatus.SUCCESS, cache_hit=True))

    async def record_failure(self, context: "Context", error: BaseException) -> None:
        await self._save(self.build_record(context, status_for(error), error=error))

    def build_record(
        self,
        context: "Context",
        status: ExecutionStatus,
        error: Optional[BaseException] = None,
        cache_hit: bool = False,
    ) -> ExecutionRecord:
        """Two-phase cost: tokens first, then cost derived from pricing when absent."""
        tokens = TokenUsage(input_tokens=context.input_tokens, output_tokens=context.output_tokens)

        input_cost, output_cost, total_cost = context.input_cost, context.output_cost, context.total_cost
        if not cache_hit and not total_cost and tokens.total:
            breakdown = calculate_cost(tokens, self.config.pricing_for(context.model_used or context.model))
            input_cost, output_cost, total_cost = (
                breakdown.input_cost,
                breakdown.output_cost,
                breakdown.total_cost,
            )

        if cache_hit:
            tokens = TokenUsage()
            input_cost = output_cost = total_cost = 0.0

        metadata = dict(context.metadata)
        if context.attempts:
            metadata["attempts"] = context.attempts

        response = None
        if status == ExecutionStatus.SUCCESS and self.config.persist_responses and context.output is not None:
            response = self.redactor.redact(getattr(context.output, "content", context.output))

        return ExecutionRecord(
            agent_type=context.agent_type,
            agent_version=context.agent_version,
            execution_type=context.agent.execution_type,
            model_id=context.model,
            chosen_model_id=context.model_used,
            status=status,
            input_tokens=tokens.input_tokens,
            output_tokens=tokens.output_tokens,
            total_tokens=tokens.total,
            input_cost=input_cost,
            output_cost=output_cost,
            total_cost=total_cost,
            duration_ms=context.duration_ms,
            started_at=context.started_at,
            completed_at=context.completed_at,
            tenant_id=context.tenant_id,
            error_class=type(error).__name__ if error else None,
            error_message=str(error)[:MAX_ERROR_MESSAGE_LENGTH] if error else None,
            cache_hit=cache_hit,
            response_cache_key=context.cache_key,
            attempts_count=0 if cache_hit else max(context.attempts_made, 1),
            parameters=self.redactor.redact(context.params),
            response=response,
            metadata=metadata,
        )

    async def _save(self, record: ExecutionRecord) -> None:
        if self.config.async_logging:
            task = asyncio.create_task(asyncio.to_thread(self.write, record))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        else:
            self.write(record)

    def write(self, record: ExecutionRecord) -> None:
        try:
            self.storage.create(record)
        except Exception as e:
            logger.warning(
                "execution_record_failed",
                agent_type=record.agent_type,
                status=record.status.value,
                error=str(e),
                error_class=type(e).__name__,
            )
            return
        self.check_anomaly(record)

    def check_anomaly(self, record: ExecutionRecord) -> bool:
        """Log unusually expensive, slow or failed executions."""
        expensive = record.total_cost > self.config.anomaly_cost_threshold
        slow = (record.duration_ms or 0) > self.config.anomaly_duration_threshold_ms
        failed = record.status == ExecutionStatus.ERROR
        if not (expensive or slow or failed):
            return False

        logger.warning(
            "execution_anomaly",
            execution_id=record.id,
            agent_type=record.agent_type,
            model_id=record.model_id,
            status=record.status.value,
            total_cost=record.total_cost,
            duration_ms=record.duration_ms,
            error_class=record.error_class,
        )
        if (expensive or slow) and self.alert_manager is not None:
            self.alert_manager.notify(
                alerts.AGENT_ANOMALY,
                {
                    "execution_id": record.id,
                    "agent_type": record.agent_type,
                    "model_id": record.model_id,
                    "tenant_id": record.tenant_id,
                    "total_cost": record.total_cost,
                    "duration_ms": record.duration_ms,
                    "cost_threshold": self.config.anomaly_cost_threshold,
                    "duration_threshold_ms": self.config.anomaly_duration_threshold_ms,
                },
            )
        return True

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for async writes scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
