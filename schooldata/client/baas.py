"""
Client for the hosted database-as-a-service REST endpoint (PostgREST dialect).

Filters are encoded as ``column=op.value`` query parameters; structured error
bodies (``{message, code, details, hint}``) are turned into ``Err`` values.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx

from schooldata.client.base import (
    FilterOp,
    HttpDataClient,
    Method,
    QueryRequest,
    collapse_single,
    decode_json,
    invalid_json_error,
)
from schooldata.client.result import Ok, QueryResult, auth_error, transport_error
from schooldata.client.storage import AUTH_TOKEN_KEY, LocalStateStore

_HTTP_METHODS = {
    Method.SELECT: "GET",
    Method.INSERT: "POST",
    Method.UPDATE: "PATCH",
    Method.DELETE: "DELETE",
}

_RESERVED_CHARS = set(',.:()"\\ ')


def format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _quote(value: Any) -> str:
    text = format_value(value)
    if any(ch in _RESERVED_CHARS for ch in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def encode_filter(op: FilterOp, value: Any) -> str:
    if op is FilterOp.IN:
        return f"in.({','.join(_quote(v) for v in value)})"
    if value is None and op in (FilterOp.EQ, FilterOp.NEQ):
        return "is.null" if op is FilterOp.EQ else "not.is.null"
    return f"{op.value}.{format_value(value)}"


def encode_params(request: QueryRequest) -> List[Tuple[str, str]]:
    params: List[Tuple[str, str]] = []
    if request.method is Method.SELECT:
        params.append(("select", request.columns))
    elif request.method is Method.INSERT and request.returning:
        params.append(("select", request.returning))
    for f in request.filters:
        params.append((f.column, encode_filter(f.op, f.value)))
    if request.order:
        column, ascending = request.order
        params.append(("order", f"{column}.{'asc' if ascending else 'desc'}"))
    if request.limit:
        params.append(("limit", str(request.limit)))
    return params


def _parse_count(response: httpx.Response) -> Optional[int]:
    # Content-Range: 0-9/42 or */3
    content_range = response.headers.get("content-range", "")
    _, _, total = content_range.partition("/")
    return int(total) if total.isdigit() else None


class BaasDataClient(HttpDataClient):
    backend_name = "hosted_baas"

    def __init__(
        self,
        rest_url: str,
        api_key: str,
        store: Optional[LocalStateStore] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(rest_url, timeout=timeout, transport=transport)
        self.api_key = api_key
        self._store = store

    def headers(self, request: QueryRequest) -> Dict[str, str]:
        token = self._store.get(AUTH_TOKEN_KEY) if self._store else None
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.api_key}",
            "Content-Type": "application/json",
        }
        if request.method in (Method.INSERT, Method.UPDATE):
            headers["Prefer"] = "return=representation"
        elif request.method is Method.DELETE:
            headers["Prefer"] = "return=minimal,count=exact"
        return headers

    def _error(self, request: QueryRequest, response: httpx.Response) -> QueryResult:
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text or f"HTTP {response.status_code}"}
        if not isinstance(body, dict):
            body = {"message": json.dumps(body)}

        message = body.get("message") or f"HTTP {response.status_code}"
        code = str(body.get("code") or "")
        details = {
            "table": request.table,
            "code": code,
            "details": body.get("details"),
            "hint": body.get("hint"),
        }
        if response.status_code == 401 or code.startswith("PGRST3"):
            return auth_error(message, **details)
        return transport_error(message, response.status_code, **details)

    async def _perform(self, request: QueryRequest) -> QueryResult:
        response = await self._request(
            _HTTP_METHODS[request.method],
            f"/{request.table}",
            params=encode_params(request),
            json=request.payload
            if request.method in (Method.INSERT, Method.UPDATE)
            else None,
            headers=self.headers(request),
        )
        if not response.is_success:
            return self._error(request, response)

        try:
            data = decode_json(response)
        except ValueError:
            return invalid_json_error(response, table=request.table)

        if request.method is Method.DELETE:
            return Ok(None, count=_parse_count(response))
        if request.method is Method.INSERT and isinstance(request.payload, dict):
            # Row in, row out.
            if isinstance(data, list):
                data = data[0] if data else None
        if request.single:
            return collapse_single(request, data)
        count = len(data) if isinstance(data, list) else None
        return Ok(data, count=count)
