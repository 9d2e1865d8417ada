"""SQLModel table for execution history."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel

from agentgate.clock import utc_now


class Execution(SQLModel, table=True):
    """Append-only record of one agent invocation."""

    __tablename__ = "agentgate_executions"

    id: str = Field(primary_key=True, index=True, nullable=False)
    agent_type: str = Field(index=True)
    agent_version: str = Field(default="1.0")
    execution_type: str = Field(default="chat", index=True)
    model_id: Optional[str] = Field(default=None, index=True)
    chosen_model_id: Optional[str] = None
    status: str = Field(default="running", index=True)  # running, success, error, timeout
    input_tokens: int = Field(default=0)
    output_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)
    input_cost: float = Field(default=0.0)
    output_cost: float = Field(default=0.0)
    total_cost: float = Field(default=0.0)
    duration_ms: Optional[int] = None
    started_at: Optional[datetime] = Field(default=None, index=True)
    completed_at: Optional[datetime] = None
    tenant_id: Optional[str] = Field(default=None, index=True)
    error_class: Optional[str] = None
    error_message: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    cache_hit: bool = Field(default=False)
    response_cache_key: Optional[str] = None
    attempts_count: int = Field(default=0)

    # JSON columns
    parameters: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    response: Optional[dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    extra: Optional[dict[str, Any]] = Field(default=None, sa_column=Column("metadata", JSON, nullable=True))

    created_at: datetime = Field(default_factory=utc_now, nullable=False)
