"""
School / academic-year scoped queries.

Every read and write made through ``ScopedQueryBuilder`` is pinned to one
school and one academic year: the two equality filters are applied inside the
builder, ahead of anything the caller chains on, and inserts always carry
both ids.
"""

from typing import Any, Dict, Optional

from schooldata.client.base import (
    DataClient,
    FilterBuilder,
    InsertBuilder,
    Payload,
    Row,
)
from schooldata.exceptions import SchoolContextError, ValidationError

SCHOOL_COLUMN = "school_id"
ACADEMIC_YEAR_COLUMN = "academic_year_id"


def validate_school_context(
    school_id: Optional[str], academic_year_id: Optional[str]
) -> None:
    """Raise SchoolContextError unless both ids are present."""
    if not school_id:
        raise SchoolContextError("School context is required but not set")
    if not academic_year_id:
        raise SchoolContextError("Academic year context is required but not set")


def create_school_year_filter(
    school_id: Optional[str], academic_year_id: Optional[str]
) -> Dict[str, str]:
    validate_school_context(school_id, academic_year_id)
    return {SCHOOL_COLUMN: school_id, ACADEMIC_YEAR_COLUMN: academic_year_id}


def build_school_year_filters(
    school_id: Optional[str], academic_year_id: Optional[str], **additional: Any
) -> Dict[str, Any]:
    """Scope filter merged with extra equality filters; the scope keys win."""
    return {**additional, **create_school_year_filter(school_id, academic_year_id)}


class ScopedQueryBuilder:
    """Table handle bound to one (school, academic year) pair.

    Args:
        client: Data client for whichever backend is active
        table: Table name; the table must expose both scope columns
        school_id: Tenant id, required
        academic_year_id: Academic year id, required
        school_column: Name of the tenant reference column
        year_column: Name of the academic-year reference column

    Raises:
        ValidationError: If the table name is empty
        SchoolContextError: If either id is missing
    """

    def __init__(
        self,
        client: DataClient,
        table: str,
        school_id: Optional[str],
        academic_year_id: Optional[str],
        school_column: str = SCHOOL_COLUMN,
        year_column: str = ACADEMIC_YEAR_COLUMN,
    ):
        if not table or not table.strip():
            raise ValidationError("Table name must not be empty", field="table")
        validate_school_context(school_id, academic_year_id)
        self._client = client
        self.table = table.strip()
        self.school_id = school_id
        self.academic_year_id = academic_year_id
        self.school_column = school_column
        self.year_column = year_column

    @property
    def scope(self) -> Dict[str, str]:
        return {
            self.school_column: self.school_id,
            self.year_column: self.academic_year_id,
        }

    def _scoped(self, builder: FilterBuilder) -> FilterBuilder:
        return builder.eq(self.school_column, self.school_id).eq(
            self.year_column, self.academic_year_id
        )

    def select(self, columns: str = "*") -> FilterBuilder:
        return self._scoped(self._client.from_(self.table).select(columns))

    def insert(self, data: Payload) -> InsertBuilder:
        if isinstance(data, list):
            payload: Payload = [{**row, **self.scope} for row in data]
        else:
            payload = {**data, **self.scope}
        return self._client.from_(self.table).insert(payload)

    def update(self, data: Row) -> FilterBuilder:
        # Moving a row to another school or year is not an update of this scope.
        patch = {
            k: v
            for k, v in data.items()
            if k not in (self.school_column, self.year_column)
        }
        return self._scoped(self._client.from_(self.table).update(patch))

    def delete(self) -> FilterBuilder:
        return self._scoped(self._client.from_(self.table).delete())


def create_school_year_query(
    client: DataClient,
    table: str,
    school_id: Optional[str],
    academic_year_id: Optional[str],
) -> ScopedQueryBuilder:
    return ScopedQueryBuilder(client, table, school_id, academic_year_id)


async def verify_record_ownership(
    client: DataClient,
    table: str,
    record_id: str,
    school_id: Optional[str],
    academic_year_id: Optional[str],
) -> bool:
    """Check that a record belongs to the given school and academic year."""
    result = await (
        ScopedQueryBuilder(client, table, school_id, academic_year_id)
        .select("id")
        .eq("id", record_id)
        .maybe_single()
    )
    return result.ok and result.data is not None
