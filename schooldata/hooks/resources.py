"""
Read/write helpers for scoped tables.

Reads go through the query cache; writes check the academic year is writable,
run through the scoped builder and invalidate the table's cached reads.
"""

from typing import Any, Dict, List, Optional

from schooldata.client.result import Ok, QueryResult
from schooldata.context.session import TenantSession
from schooldata.hooks.cache import QueryCache

Row = Dict[str, Any]


class ScopedResource:
    """CRUD over one table pinned to the session's school and academic year."""

    read_only_messages: Dict[str, str] = {}

    def __init__(
        self,
        session: TenantSession,
        table: str,
        cache: Optional[QueryCache] = None,
        order_by: Optional[str] = None,
        label: Optional[str] = None,
    ):
        self.session = session
        self.table = table
        self.cache = cache if cache is not None else QueryCache()
        self.order_by = order_by
        self.label = label or table

    def _require_writable(self, action: str) -> None:
        self.session.academic_year.require_writable(
            self.read_only_messages.get(action)
            or f"Cannot {action} {self.label} in a read-only academic year. "
            "Switch to the current academic year."
        )

    def _written(self, result: QueryResult) -> QueryResult:
        if result.ok:
            self.cache.invalidate(self.table)
        return result

    async def list(self, columns: str = "*") -> QueryResult:
        scoped = self.session.scoped(self.table)
        key = (self.table, scoped.school_id, scoped.academic_year_id, columns)

        async def fetch() -> QueryResult:
            query = scoped.select(columns)
            if self.order_by:
                query = query.order(self.order_by, ascending=True)
            return await query

        return await self.cache.get_or_fetch(key, fetch)

    async def get(self, record_id: Any, columns: str = "*") -> QueryResult:
        return await (
            self.session.scoped(self.table)
            .select(columns)
            .eq("id", record_id)
            .maybe_single()
        )

    async def create(self, data: Row) -> QueryResult:
        self._require_writable("create")
        return self._written(await self.session.scoped(self.table).insert(data))

    async def bulk_create(self, rows: List[Row]) -> QueryResult:
        self._require_writable("import")
        if not rows:
            return Ok([], count=0)
        return self._written(await self.session.scoped(self.table).insert(list(rows)))

    async def update(self, record_id: Any, data: Row) -> QueryResult:
        self._require_writable("update")
        return self._written(
            await self.session.scoped(self.table).update(data).eq("id", record_id)
        )

    async def delete(self, record_id: Any) -> QueryResult:
        self._require_writable("delete")
        return self._written(
            await self.session.scoped(self.table).delete().eq("id", record_id)
        )
