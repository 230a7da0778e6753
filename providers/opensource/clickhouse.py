"""
ClickHouse implementation of the persistent store

Tables are ReplacingMergeTree(updated_at) ordered by their upsert key, so a
second insert of the same key supersedes the first; reads use FINAL to see
the deduplicated view.
"""

import asyncio
import logging
import re
from datetime import UTC, datetime
from typing import Any

from clickhouse_driver import Client

from config.settings import get_settings
from core.interfaces.database import BaseTimeSeriesDB

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    """Table/column names are interpolated into SQL, so only allow plain identifiers"""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


class ClickHouseClient(BaseTimeSeriesDB):
    """
    ClickHouse implementation

    The native driver is blocking; calls run in a worker thread behind a lock
    (one connection, one query at a time) so the event loop never stalls.
    """

    def __init__(self):
        self.settings = get_settings()
        self.client: Client | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Establish connection to ClickHouse"""
        try:
            self.client = Client(
                host=self.settings.CLICKHOUSE_HOST,
                port=self.settings.CLICKHOUSE_PORT,
                database=self.settings.CLICKHOUSE_DB,
                user=self.settings.CLICKHOUSE_USER,
                password=self.settings.CLICKHOUSE_PASSWORD,
            )
            # Test connection
            await self._execute("SELECT 1")
            logger.info(
                f"✓ Connected to ClickHouse: "
                f"{self.settings.CLICKHOUSE_HOST}:{self.settings.CLICKHOUSE_PORT}"
            )
        except Exception as e:
            logger.error(f"✗ Failed to connect to ClickHouse: {e}")
            raise

    async def _execute(self, sql: str, params: Any = None, **kwargs) -> Any:
        """Run a driver call off the event loop"""
        if not self.client:
            raise RuntimeError("ClickHouse client not connected")

        async with self._lock:
            if params is None:
                return await asyncio.to_thread(self.client.execute, sql, **kwargs)
            return await asyncio.to_thread(self.client.execute, sql, params, **kwargs)

    def _table(self, table: str) -> str:
        return f"{_check_identifier(self.settings.CLICKHOUSE_DB)}.{_check_identifier(table)}"

    async def upsert_rows(
        self, table: str, rows: list[dict[str, Any]], key: tuple[str, ...]
    ) -> int:
        """
        Upsert rows into a ReplacingMergeTree table

        `key` must match the table's ORDER BY; rows without an `updated_at`
        version column get the current time so the newest write wins.

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        now = datetime.now(UTC)
        columns = list(rows[0].keys())
        if "updated_at" not in columns:
            columns.append("updated_at")
        for column in (*columns, *key):
            _check_identifier(column)

        values = [tuple(row.get(c, now) if c == "updated_at" else row[c] for c in columns) for row in rows]

        query = f"INSERT INTO {self._table(table)} ({', '.join(columns)}) VALUES"

        try:
            await self._execute(query, values)
            logger.debug(f"Upserted {len(values)} rows into {table}")
            return len(values)

        except Exception as e:
            logger.error(f"✗ ClickHouse upsert error on {table}: {e}")
            raise

    async def select_rows(
        self,
        table: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        ranges: dict[str, tuple[Any, Any]] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Query deduplicated rows (FINAL)

        Returns:
            List of result rows as dictionaries
        """
        clauses = []
        params: dict[str, Any] = {}

        for column, value in (where or {}).items():
            _check_identifier(column)
            clauses.append(f"{column} = %({column})s")
            params[column] = value

        for column, (low, high) in (ranges or {}).items():
            _check_identifier(column)
            if low is not None:
                clauses.append(f"{column} >= %({column}_low)s")
                params[f"{column}_low"] = low
            if high is not None:
                clauses.append(f"{column} <= %({column}_high)s")
                params[f"{column}_high"] = high

        sql = f"SELECT * FROM {self._table(table)} FINAL"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if order_by:
            sql += f" ORDER BY {_check_identifier(order_by)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        try:
            result = await self._execute(sql, params or None, with_column_types=True)

            # Convert to list of dicts
            if result and len(result) == 2:
                columns = [col[0] for col in result[1]]
                return [dict(zip(columns, row)) for row in result[0]]

            return []

        except Exception as e:
            logger.error(f"✗ ClickHouse query error on {table}: {e}")
            raise

    async def close(self) -> None:
        """Close connection"""
        if self.client:
            self.client.disconnect()
            self.client = None
            logger.info("✓ ClickHouse connection closed")
