from typing import Any, Dict, List, Union

import structlog
from fastapi import APIRouter, Body, Request

from schooldata.exceptions import NotFoundError, ValidationError
from schooldata.schemas.academic_year_schema import (
    AcademicYear,
    AcademicYearActionResponse,
    AcademicYearStatus,
)
from schooldata.schemas.data_schema import DeleteResponse
from schooldata.services.academic_years import (
    activate_year,
    archive_year,
    enforce_year_write_protection,
    referenced_year_ids,
    year_status,
)
from schooldata.services.data_query import (
    build_delete,
    build_insert,
    build_select,
    build_update,
    parse_query_options,
    validate_table,
)
from schooldata.utils.deps import CurrentUser, DbSession
from schooldata.utils.error_handling import safe_execute_query

logger = structlog.get_logger()

router = APIRouter()


# Academic-year actions first, so they are never read as a table name.
@router.post("/academic_years/{year_id}/activate", response_model=AcademicYearActionResponse)
async def activate_academic_year(
    year_id: str, current_user: CurrentUser, db: DbSession
) -> AcademicYearActionResponse:
    year = await activate_year(db, year_id)
    return AcademicYearActionResponse(
        message=f"Academic year {year['name']} is now active",
        data=AcademicYear(**year),
    )


@router.post("/academic_years/{year_id}/archive", response_model=AcademicYearActionResponse)
async def archive_academic_year(
    year_id: str, current_user: CurrentUser, db: DbSession
) -> AcademicYearActionResponse:
    """Archive a year after copying its grades into ``grade_snapshots``."""
    year, preserved = await archive_year(db, year_id, current_user["id"])
    return AcademicYearActionResponse(
        message=f"Academic year {year['name']} archived. {preserved} grade records preserved.",
        data=AcademicYear(**year),
        grades_preserved=preserved,
    )


@router.get("/academic_years/{year_id}/status", response_model=AcademicYearStatus)
async def academic_year_status(
    year_id: str, current_user: CurrentUser, db: DbSession
) -> AcademicYearStatus:
    return AcademicYearStatus(**await year_status(db, year_id))


@router.get("/{table}")
async def query_table(
    table: str, request: Request, current_user: CurrentUser, db: DbSession
) -> Any:
    """
    Query a table.

    Filters arrive as JSON ``[column, value]`` pairs in the query string;
    ``eq`` may repeat.
    """
    validate_table(table)
    options = parse_query_options(request.query_params)
    statement, params = build_select(table, options)
    result = await safe_execute_query(db, statement, params, operation_name=f"select_{table}")
    rows = [dict(row) for row in result.mappings().all()]
    if options.single:
        return rows[0] if rows else None
    return rows


@router.post("/{table}")
async def insert_rows(
    table: str,
    current_user: CurrentUser,
    db: DbSession,
    body: Union[Dict[str, Any], List[Dict[str, Any]]] = Body(...),
) -> Any:
    """Insert one row (object body) or many (array body); the response mirrors the body."""
    validate_table(table)
    rows = body if isinstance(body, list) else [body]
    if not rows:
        raise ValidationError("No data provided")

    await enforce_year_write_protection(db, table, referenced_year_ids("POST", body))

    statement, params = build_insert(table, rows)
    result = await safe_execute_query(db, statement, params, operation_name=f"insert_{table}")
    inserted = [dict(row) for row in result.mappings().all()]
    await db.commit()

    logger.info("Rows inserted", table=table, count=len(inserted), user_id=current_user["id"])
    return inserted if isinstance(body, list) else inserted[0]


@router.put("/{table}")
async def update_rows(
    table: str,
    request: Request,
    current_user: CurrentUser,
    db: DbSession,
    data: Dict[str, Any] = Body(...),
) -> List[Dict[str, Any]]:
    validate_table(table)
    options = parse_query_options(request.query_params)
    await enforce_year_write_protection(
        db, table, referenced_year_ids("PUT", options=options)
    )

    statement, params = build_update(table, data, options)
    result = await safe_execute_query(db, statement, params, operation_name=f"update_{table}")
    updated = [dict(row) for row in result.mappings().all()]
    if not updated:
        raise NotFoundError("Record not found", resource_type=table)
    await db.commit()

    logger.info("Rows updated", table=table, count=len(updated), user_id=current_user["id"])
    return updated


@router.delete("/{table}", response_model=DeleteResponse)
async def delete_rows(
    table: str, request: Request, current_user: CurrentUser, db: DbSession
) -> DeleteResponse:
    validate_table(table)
    options = parse_query_options(request.query_params)
    await enforce_year_write_protection(
        db, table, referenced_year_ids("DELETE", options=options)
    )

    statement, params = build_delete(table, options)
    result = await safe_execute_query(db, statement, params, operation_name=f"delete_{table}")
    if not result.rowcount:
        raise NotFoundError("Record not found", resource_type=table)
    await db.commit()

    logger.info("Rows deleted", table=table, count=result.rowcount, user_id=current_user["id"])
    return DeleteResponse(rowCount=result.rowcount)
