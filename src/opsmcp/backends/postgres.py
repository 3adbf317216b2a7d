"""Relational tools backed by a pooled SQLAlchemy engine."""

from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

from ..errors import BackendUnavailable, NotFound
from ..tools.base import FieldSpec, ToolSpec, ValidatedArgs
from ..tools.registry import ToolRegistry

SERVER_NAME = "postgres-manager-mcp"

LIST_TABLES_SQL = text(
    """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = 'public'
    ORDER BY table_name
    """
)

DESCRIBE_TABLE_SQL = text(
    """
    SELECT column_name, data_type, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_name = :table_name
    ORDER BY ordinal_position
    """
)


class QueryError(RuntimeError):
    pass


def _dumps(value: Any) -> str:
    # dates, decimals and uuids are rendered with str()
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class PostgresBackend:
    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, url: str) -> "PostgresBackend":
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=3600,
            pool_pre_ping=True,
        )
        return cls(engine)

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        """Check a pooled connection out for one statement; always returned to the pool."""
        conn = self.engine.connect()
        try:
            yield conn
        finally:
            conn.close()

    def execute(self, statement: Any, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run one statement and return its rows (empty for statements without a result set).

        Raw strings go to the driver untouched; prepared TextClauses are bound
        with params. The transaction is committed on success.
        """
        try:
            with self.connection() as conn:
                if isinstance(statement, str):
                    # no parameters: the driver must not treat % as a placeholder
                    result = conn.exec_driver_sql(
                        statement, execution_options={"no_parameters": True}
                    )
                else:
                    result = conn.execute(statement, params or {})
                rows = [dict(m) for m in result.mappings()] if result.returns_rows else []
                conn.commit()
        except SQLAlchemyError as e:
            # the DBAPI error carries the server's message without SQLAlchemy's footer
            raise QueryError(str(getattr(e, "orig", None) or e).strip()) from e
        return rows

    def ping(self) -> None:
        try:
            self.execute(text("SELECT 1"))
        except Exception as e:
            raise BackendUnavailable(self.engine.url.render_as_string(hide_password=True), e) from e

    def close(self) -> None:
        self.engine.dispose()


@dataclass
class QueryTool:
    backend: PostgresBackend
    spec: ToolSpec = ToolSpec(
        name="query",
        description="Run a read-only SQL query against the Postgres database.",
        fields=(FieldSpec("sql", "string", "The SQL query to execute."),),
        gate_field="sql",
        error_prefix="Error executing query",
    )

    def execute(self, args: ValidatedArgs) -> str:
        return _dumps(self.backend.execute(args["sql"]))


@dataclass
class ListTablesTool:
    backend: PostgresBackend
    spec: ToolSpec = ToolSpec(
        name="list_tables",
        description="List all tables in the database.",
        error_prefix="Error listing tables",
    )

    def execute(self, args: ValidatedArgs) -> str:
        rows = self.backend.execute(LIST_TABLES_SQL)
        return _dumps([r["table_name"] for r in rows])


@dataclass
class DescribeTableTool:
    backend: PostgresBackend
    spec: ToolSpec = ToolSpec(
        name="describe_table",
        description="Get schema information for a specific table.",
        fields=(FieldSpec("tableName", "string", "The name of the table to describe."),),
        error_prefix="Error describing table",
    )

    def execute(self, args: ValidatedArgs) -> str:
        name = args["tableName"]
        rows = self.backend.execute(DESCRIBE_TABLE_SQL, {"table_name": name})
        if not rows:
            raise NotFound(f'Table "{name}" not found.')
        return _dumps(rows)


def open_backend(config) -> PostgresBackend:
    return PostgresBackend.from_url(config.target)


def register_tools(registry: ToolRegistry, backend: PostgresBackend | None) -> None:
    registry.register(QueryTool(backend))
    registry.register(ListTablesTool(backend))
    registry.register(DescribeTableTool(backend))
