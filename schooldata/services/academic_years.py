from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import structlog
from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from schooldata.exceptions import AuthorizationError, NotFoundError, ValidationError
from schooldata.services.data_query import YEAR_SEGREGATED_TABLES, QueryOptions
from schooldata.utils.error_handling import safe_execute_query

logger = structlog.get_logger()

YEAR_ARCHIVED_MESSAGE = (
    "This academic year is archived and read-only. No modifications are allowed."
)
YEAR_NOT_CURRENT_MESSAGE = (
    "Only the current academic year can receive new data. "
    "Please switch to the active year."
)


def referenced_year_ids(
    method: str, body: Any = None, options: Optional[QueryOptions] = None
) -> List[str]:
    """Academic years a write touches: from the row(s) for inserts, from the eq filter otherwise."""
    if method == "POST":
        rows: Sequence[Mapping[str, Any]] = body if isinstance(body, list) else [body or {}]
        ids = [row.get("academic_year_id") for row in rows if isinstance(row, Mapping)]
    else:
        ids = [options.equality_value("academic_year_id")] if options else []
    # Preserve order, drop blanks and duplicates
    return list(dict.fromkeys(str(i) for i in ids if i))


async def enforce_year_write_protection(
    db: AsyncSession, table: str, year_ids: Iterable[str]
) -> None:
    """
    Reject writes to year-segregated tables unless every referenced year is
    current and not archived.

    Writes that name no year pass through; database constraints catch
    cross-school rows.

    Raises:
        ValidationError: If a referenced year does not exist
        AuthorizationError: YEAR_ARCHIVED or YEAR_NOT_CURRENT
    """
    if table not in YEAR_SEGREGATED_TABLES:
        return
    year_ids = list(year_ids)
    if not year_ids:
        return

    query = text(
        "SELECT id, is_current, is_archived FROM academic_years WHERE id IN :ids"
    ).bindparams(bindparam("ids", expanding=True))
    result = await safe_execute_query(
        db, query, {"ids": year_ids}, operation_name="year_write_protection"
    )
    years = {str(row["id"]): row for row in result.mappings().all()}

    for year_id in year_ids:
        year = years.get(year_id)
        if year is None:
            raise ValidationError("Academic year not found", field="academic_year_id")
        if year["is_archived"]:
            logger.info("Write blocked: archived year", table=table, academic_year_id=year_id)
            raise AuthorizationError(YEAR_ARCHIVED_MESSAGE, error_code="YEAR_ARCHIVED")
        if not year["is_current"]:
            logger.info("Write blocked: year not current", table=table, academic_year_id=year_id)
            raise AuthorizationError(YEAR_NOT_CURRENT_MESSAGE, error_code="YEAR_NOT_CURRENT")


async def get_year(db: AsyncSession, year_id: str) -> Dict[str, Any]:
    result = await safe_execute_query(
        db,
        "SELECT * FROM academic_years WHERE id = :id",
        {"id": year_id},
        operation_name="get_academic_year",
    )
    row = result.mappings().first()
    if row is None:
        raise NotFoundError("Academic year not found", resource_type="academic_year")
    return dict(row)


async def activate_year(db: AsyncSession, year_id: str) -> Dict[str, Any]:
    """Make ``year_id`` the school's current year, clearing the flag on its siblings."""
    year = await get_year(db, year_id)
    if year["is_archived"]:
        raise ValidationError("Cannot activate an archived academic year")

    await safe_execute_query(
        db,
        """
        UPDATE academic_years SET is_current = false
        WHERE school_id = :school_id AND id != :id AND is_current = true
        """,
        {"school_id": year["school_id"], "id": year_id},
        operation_name="clear_current_year",
    )
    result = await safe_execute_query(
        db,
        "UPDATE academic_years SET is_current = true WHERE id = :id RETURNING *",
        {"id": year_id},
        operation_name="activate_year",
    )
    activated = dict(result.mappings().one())
    await db.commit()

    logger.info(
        "Academic year activated", academic_year_id=year_id, school_id=activated["school_id"]
    )
    return activated


async def archive_year(
    db: AsyncSession, year_id: str, user_id: Optional[str]
) -> tuple[Dict[str, Any], int]:
    """
    Snapshot the year's grades into ``grade_snapshots`` and archive it.

    Returns:
        The archived row and the number of grade rows preserved
    """
    year = await get_year(db, year_id)
    if year["is_archived"]:
        raise ValidationError("Academic year is already archived")

    snapshot = await safe_execute_query(
        db,
        """
        INSERT INTO grade_snapshots (
            student_id, subject_id, academic_year_id, quarter, written_work,
            performance_task, quarterly_assessment, final_grade, remarks, school_id
        )
        SELECT student_id, subject_id, academic_year_id, quarter, written_work,
            performance_task, quarterly_assessment, final_grade, remarks, school_id
        FROM student_grades
        WHERE academic_year_id = :id
        ON CONFLICT DO NOTHING
        """,
        {"id": year_id},
        operation_name="snapshot_grades",
    )
    preserved = max(snapshot.rowcount or 0, 0)

    result = await safe_execute_query(
        db,
        """
        UPDATE academic_years
        SET is_archived = true, is_current = false, archived_at = NOW(),
            archived_by = :user_id
        WHERE id = :id
        RETURNING *
        """,
        {"id": year_id, "user_id": user_id},
        operation_name="archive_year",
    )
    archived = dict(result.mappings().one())
    await db.commit()

    logger.info(
        "Academic year archived", academic_year_id=year_id, grades_preserved=preserved
    )
    return archived, preserved


async def year_status(db: AsyncSession, year_id: str) -> Dict[str, Any]:
    year = await get_year(db, year_id)
    return {
        "id": year["id"],
        "name": year["name"],
        "is_current": year["is_current"],
        "is_archived": year["is_archived"],
        "is_writable": year["is_current"] and not year["is_archived"],
        "is_read_only": year["is_archived"] or not year["is_current"],
    }
