from abc import ABC, abstractmethod
from typing import Any


class BaseTimeSeriesDB(ABC):
    """
    Abstract interface for the persistent store

    Typed upsert/query operations over named tables. Table existence is an
    external precondition (no runtime migrations).

    Implementations:
    - ClickHouseClient (ReplacingMergeTree tables, FINAL reads)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to database"""

    @abstractmethod
    async def upsert_rows(
        self, table: str, rows: list[dict[str, Any]], key: tuple[str, ...]
    ) -> int:
        """
        Insert-or-replace rows keyed on `key`

        Writing the same key twice must leave exactly one row (last write wins),
        so a retried write never duplicates data.

        Args:
            table: Table name
            rows: Row dictionaries (column → value)
            key: Columns forming the uniqueness key

        Returns:
            Number of rows written
        """

    @abstractmethod
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
        Query deduplicated rows

        Args:
            table: Table name
            where: Equality filters (column → value)
            order_by: Column to order by
            descending: Order direction
            limit: Max rows
            ranges: Inclusive range filters (column → (low, high)), either bound may be None

        Returns:
            List of result rows as dictionaries
        """

    @abstractmethod
    async def close(self) -> None:
        """Close connection"""
