"""Database layer for execution history."""

from agentgate.db.engine import create_db_engine, drop_all_tables, get_session, init_db
from agentgate.db.models import Execution

__all__ = ["Execution", "create_db_engine", "drop_all_tables", "get_session", "init_db"]
