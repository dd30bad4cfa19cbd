"""
Error handling utilities for common database operations.
"""

from typing import Any, Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import TextClause

from schooldata.exceptions import SQLError, extract_sql_error_message

logger = structlog.getLogger()


async def safe_execute_query(
    db: AsyncSession,
    query: str | TextClause,
    params: Optional[Dict[str, Any]] = None,
    operation_name: str = "database_query",
) -> Any:
    """
    Safely execute a database query with enhanced error handling.

    Integrity and connectivity errors are re-raised untouched so the
    application handlers can map them to 400 / 503.

    Args:
        db: Database session
        query: SQL query string or text() object
        params: Query parameters
        operation_name: Name of the operation for error messages

    Returns:
        Query result

    Raises:
        SQLError: If SQL execution fails with clear error message
    """
    if isinstance(query, str):
        query = text(query)

    try:
        return await db.execute(query, params or {})
    except (IntegrityError, OperationalError):
        raise
    except Exception as e:
        user_message, technical_details = extract_sql_error_message(e)

        logger.error(
            f"SQL query failed: {operation_name}",
            user_message=user_message,
            technical_details=technical_details,
            query=str(query),
            params=params,
        )

        raise SQLError(
            message=user_message,
            query=str(query),
            original_error=technical_details,
        )
