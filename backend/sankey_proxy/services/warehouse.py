"""Snowflake data gateway: fixed read queries over one shared connection.

The connection is opened lazily and reopened when the driver reports it
closed. There is no pooling and failed statements are not retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import snowflake.connector
from pydantic import ValidationError
from snowflake.connector import DictCursor

from sankey_proxy.config import WarehouseSettings
from sankey_proxy.models.data_models import CategoryRecord, FilterSelection, FlowRecord
from sankey_proxy.services.query_builder import build_predicate, where_clause

logger = logging.getLogger(__name__)


class QueryExecutionError(RuntimeError):
    """Raised when the warehouse cannot run a statement or returns unusable rows."""


CATEGORIES_SQL = """
SELECT DISTINCT
  CATEGORY_FIELD_1,
  CATEGORY_FIELD_2,
  CATEGORY_FIELD_3
FROM {table}
ORDER BY CATEGORY_FIELD_1, CATEGORY_FIELD_2, CATEGORY_FIELD_3
"""

FLOWS_SQL = """
SELECT
  SOURCE,
  TARGET,
  VALUE,
  SOURCE_ATTRIBUTE,
  TARGET_ATTRIBUTE,
  VALUE_SPLIT_CATEGORY
FROM {table}
{where}
ORDER BY SOURCE, TARGET
"""


class WarehouseGateway:
    def __init__(self, settings: WarehouseSettings):
        self.settings = settings
        self._connection: Any = None

    @property
    def configured(self) -> bool:
        return self.settings.configured

    def _get_connection(self) -> Any:
        conn = self._connection
        if conn is not None and not conn.is_closed():
            return conn
        try:
            conn = snowflake.connector.connect(paramstyle="qmark", **self.settings.connect_kwargs())
        except snowflake.connector.Error as exc:
            logger.error("Unable to connect to Snowflake: %s", exc)
            raise QueryExecutionError("Unable to connect to the warehouse") from exc
        logger.info("Connected to Snowflake account %s", self.settings.account)
        self._connection = conn
        return conn

    def _execute(self, sql: str, binds: list[str] | None = None) -> list[dict[str, Any]]:
        conn = self._get_connection()
        try:
            cursor = conn.cursor(DictCursor)
            try:
                cursor.execute(sql, binds or None)
                return cursor.fetchall()
            finally:
                cursor.close()
        except snowflake.connector.Error as exc:
            logger.error("Failed to execute statement: %s", exc)
            raise QueryExecutionError(str(exc)) from exc

    def fetch_categories(self) -> list[CategoryRecord]:
        rows = self._execute(CATEGORIES_SQL.format(table=self.settings.table))
        try:
            return [CategoryRecord.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise QueryExecutionError(f"Invalid category row: {exc}") from exc

    def fetch_flows(self, selection: FilterSelection | None = None) -> list[FlowRecord]:
        predicate, binds = build_predicate(selection)
        sql = FLOWS_SQL.format(table=self.settings.table, where=where_clause(predicate))
        rows = self._execute(sql, binds)
        try:
            return [FlowRecord.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise QueryExecutionError(f"Invalid flow row: {exc}") from exc

    async def list_categories(self) -> list[CategoryRecord]:
        """Distinct category triples, lexicographically ordered."""
        return await asyncio.to_thread(self.fetch_categories)

    async def query_flows(self, selection: FilterSelection | None = None) -> list[FlowRecord]:
        """Flow rows matching the selection, ordered by source then target."""
        return await asyncio.to_thread(self.fetch_flows, selection)

    def close(self) -> None:
        conn, self._connection = self._connection, None
        if conn is None:
            return
        try:
            conn.close()
            logger.info("Snowflake connection closed")
        except snowflake.connector.Error as exc:
            logger.warning("Error closing Snowflake connection: %s", exc)
