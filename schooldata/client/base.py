"""
Backend-neutral query builders.

Every data backend exposes the same fluent surface::

    await client.from_("schools").select("id,code,name").eq("is_active", True)

Builders only record what was asked for in a ``QueryRequest``; the concrete
client decides how that request travels over the wire.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generator, List, Optional, Tuple, Union

import httpx
import structlog

from schooldata.client.result import Err, Ok, QueryResult, transport_error
from schooldata.exceptions import ValidationError

logger = structlog.get_logger()

Row = Dict[str, Any]
Payload = Union[Row, List[Row]]

NO_SINGLE_ROW_MESSAGE = "JSON object requested, multiple (or no) rows returned"


class Method(str, Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class FilterOp(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    IN = "in"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


@dataclass(frozen=True)
class Filter:
    op: FilterOp
    column: str
    value: Any


@dataclass
class QueryRequest:
    """Everything a backend needs to run one table operation."""

    table: str
    method: Method
    columns: str = "*"
    filters: List[Filter] = field(default_factory=list)
    order: Optional[Tuple[str, bool]] = None
    limit: Optional[int] = None
    single: bool = False
    allow_empty: bool = False
    payload: Optional[Payload] = None
    returning: Optional[str] = None

    def equality_filters(self) -> List[Tuple[str, Any]]:
        return [(f.column, f.value) for f in self.filters if f.op is FilterOp.EQ]


def normalize_columns(columns: str) -> str:
    columns = (columns or "*").strip()
    if columns == "*":
        return columns
    return ",".join(part.strip() for part in columns.split(",") if part.strip())


def project_row(row: Any, columns: Optional[str]) -> Any:
    """Keep only the requested columns of a returned row."""
    if not isinstance(row, dict) or not columns or columns == "*":
        return row
    wanted = normalize_columns(columns).split(",")
    return {col: row[col] for col in wanted if col in row}


def decode_json(response: httpx.Response) -> Any:
    """Body of a successful response, or None when it is empty.

    Raises:
        ValueError: If the body is not JSON (e.g. an HTML page from a gateway)
    """
    return response.json() if response.content else None


def invalid_json_error(response: httpx.Response, **details: Any) -> Err:
    return transport_error("Invalid JSON response", response.status_code, **details)


def collapse_single(request: QueryRequest, data: Any) -> QueryResult:
    """Reduce a row list to the one row ``single()``/``maybe_single()`` asked for."""
    if isinstance(data, list):
        if len(data) > 1:
            return transport_error(
                NO_SINGLE_ROW_MESSAGE, 406, table=request.table, rows=len(data)
            )
        data = data[0] if data else None
    if data is None and not request.allow_empty:
        return transport_error(NO_SINGLE_ROW_MESSAGE, 406, table=request.table, rows=0)
    return Ok(data)


class _Executable:
    def __init__(self, client: "DataClient", request: QueryRequest):
        self._client = client
        self.request = request

    async def execute(self) -> QueryResult:
        return await self._client.execute(self.request)

    async def single(self) -> QueryResult:
        self.request.single = True
        self.request.allow_empty = False
        return await self.execute()

    async def maybe_single(self) -> QueryResult:
        self.request.single = True
        self.request.allow_empty = True
        return await self.execute()

    def __await__(self) -> Generator[Any, None, QueryResult]:
        return self.execute().__await__()


class FilterBuilder(_Executable):
    """Chainable filters for select, update and delete."""

    def _add(self, op: FilterOp, column: str, value: Any) -> "FilterBuilder":
        if not column:
            raise ValidationError("Filter column must not be empty", field="column")
        self.request.filters.append(Filter(op, column, value))
        return self

    def eq(self, column: str, value: Any) -> "FilterBuilder":
        return self._add(FilterOp.EQ, column, value)

    def neq(self, column: str, value: Any) -> "FilterBuilder":
        return self._add(FilterOp.NEQ, column, value)

    def in_(self, column: str, values: List[Any]) -> "FilterBuilder":
        return self._add(FilterOp.IN, column, list(values))

    def gt(self, column: str, value: Any) -> "FilterBuilder":
        return self._add(FilterOp.GT, column, value)

    def gte(self, column: str, value: Any) -> "FilterBuilder":
        return self._add(FilterOp.GTE, column, value)

    def lt(self, column: str, value: Any) -> "FilterBuilder":
        return self._add(FilterOp.LT, column, value)

    def lte(self, column: str, value: Any) -> "FilterBuilder":
        return self._add(FilterOp.LTE, column, value)

    def order(self, column: str, ascending: bool = True) -> "FilterBuilder":
        self.request.order = (column, ascending)
        return self

    def limit(self, count: int) -> "FilterBuilder":
        if count < 1:
            raise ValidationError("Limit must be a positive integer", field="limit")
        self.request.limit = count
        return self


class InsertBuilder(_Executable):
    """Insert with optional ``select(columns)`` projection of the returned rows."""

    def select(self, columns: str = "*") -> "InsertBuilder":
        self.request.returning = normalize_columns(columns)
        return self


class QueryBuilder:
    """Entry point returned by ``DataClient.from_(table)``."""

    def __init__(self, client: "DataClient", table: str):
        self._client = client
        self.table = table

    def select(self, columns: str = "*") -> FilterBuilder:
        request = QueryRequest(self.table, Method.SELECT, normalize_columns(columns))
        return FilterBuilder(self._client, request)

    def insert(self, data: Payload) -> InsertBuilder:
        request = QueryRequest(self.table, Method.INSERT, payload=data)
        return InsertBuilder(self._client, request)

    def update(self, data: Row) -> FilterBuilder:
        request = QueryRequest(self.table, Method.UPDATE, payload=dict(data))
        return FilterBuilder(self._client, request)

    def delete(self) -> FilterBuilder:
        return FilterBuilder(self._client, QueryRequest(self.table, Method.DELETE))


class DataClient(ABC):
    """One query interface, whichever physical backend is behind it."""

    backend_name: str = "abstract"

    def from_(self, table: str) -> QueryBuilder:
        if not table or not table.strip():
            raise ValidationError("Table name must not be empty", field="table")
        return QueryBuilder(self, table.strip())

    def table(self, table: str) -> QueryBuilder:
        return self.from_(table)

    @abstractmethod
    async def execute(self, request: QueryRequest) -> QueryResult:
        """Run a compiled request and report the outcome as a result value."""
        pass


class HttpDataClient(DataClient):
    """Shared plumbing for backends reached over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            return await client.request(
                method, path, params=params, json=json, headers=headers
            )

    async def execute(self, request: QueryRequest) -> QueryResult:
        try:
            result = await self._perform(request)
        except httpx.HTTPError as e:
            logger.error(
                "Data backend request failed",
                backend=self.backend_name,
                table=request.table,
                method=request.method.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return transport_error(f"Network error: {e}", table=request.table)

        if isinstance(result, Err):
            logger.warning(
                "Data backend returned an error",
                backend=self.backend_name,
                table=request.table,
                method=request.method.value,
                kind=result.kind.value,
                status_code=result.status_code,
                message=result.message,
            )
        return result

    @abstractmethod
    async def _perform(self, request: QueryRequest) -> QueryResult:
        pass
