"""
Two-phase fetch-then-merge for data that lives in separate tables.

Contract: keys on the right-hand side are unique; the merge is a single pass
over each side, O(n + m).
"""

import asyncio
from typing import Any, Awaitable, Dict, Iterable, List, Optional

from schooldata.client.result import Err, Ok, QueryResult
from schooldata.exceptions import ValidationError

Row = Dict[str, Any]


def merge_on_key(
    left: Iterable[Row],
    right: Iterable[Row],
    left_key: str,
    right_key: str = "id",
    into: Optional[str] = None,
) -> List[Row]:
    """Attach the matching right row to each left row.

    Args:
        left: Rows carrying the foreign key
        right: Rows carrying the unique key
        left_key: Foreign-key column on the left rows
        right_key: Unique key column on the right rows
        into: Name of the attached field; defaults to ``left_key`` without ``_id``

    Returns:
        New left rows with the matched right row (or None) under ``into``

    Raises:
        ValidationError: If two right rows share a key
    """
    index: Dict[Any, Row] = {}
    for row in right:
        key = row.get(right_key)
        if key is None:
            continue
        if key in index:
            raise ValidationError(
                f"Duplicate key {key!r} in right-hand rows", field=right_key
            )
        index[key] = row

    target = into or (left_key[:-3] if left_key.endswith("_id") else f"{left_key}_ref")
    return [{**row, target: index.get(row.get(left_key))} for row in left]


async def fetch_and_merge(
    left_query: Awaitable[QueryResult],
    right_query: Awaitable[QueryResult],
    left_key: str,
    right_key: str = "id",
    into: Optional[str] = None,
) -> QueryResult:
    """Run both queries, then merge; the first failure is returned unchanged."""
    left, right = await asyncio.gather(left_query, right_query)
    for result in (left, right):
        if isinstance(result, Err):
            return result
    return Ok(merge_on_key(left.data or [], right.data or [], left_key, right_key, into))
