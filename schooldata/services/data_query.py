"""
SQL construction for the generic ``/data/{table}`` routes.

Table names come from a whitelist and column names must be plain
identifiers; every value is passed as a bound parameter.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause

from schooldata.config import settings
from schooldata.exceptions import ValidationError

ALLOWED_TABLES = frozenset(
    [
        "academic_years", "admission_audit_logs", "admissions", "announcements",
        "assessment_items", "assignment_submissions", "attendance", "audit_logs",
        "balance_carry_forwards", "books", "class_schedules", "curriculum_strands",
        "discounts", "enrollment_applications", "enrollment_documents", "enrollments",
        "exam_schedules", "fee_catalog", "fee_templates", "fee_template_items",
        "finance_audit_logs", "finance_clearance", "finance_settings",
        "grade_snapshots", "holidays", "lesson_plans", "library_checkouts",
        "library_inventory", "library_settings", "messages", "payment_plan_installments",
        "payment_plans", "payments", "profiles", "raw_scores", "reportcard_templates",
        "school_admin_assignments", "school_subjects", "school_themes", "schools",
        "strand_subjects", "student_assessments", "student_assignments",
        "student_attendance", "student_discounts", "student_documents",
        "student_grades", "student_incidents", "student_report_cards",
        "student_subjects", "students", "subjects", "transmutation_tables",
        "user_roles",
    ]
)

# Writes to these tables are locked unless the referenced year is current and not archived
YEAR_SEGREGATED_TABLES = frozenset(
    [
        "students", "student_grades", "student_subjects", "student_attendance",
        "student_assessments", "student_assignments", "raw_scores", "payments",
        "admissions", "grade_snapshots",
    ]
)

FILTER_OPERATORS = {
    "eq": "=",
    "neq": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "in": "IN",
}

_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


@dataclass
class QueryOptions:
    select: str = "*"
    filters: List[Tuple[str, str, Any]] = field(default_factory=list)
    order: Optional[Tuple[str, str]] = None
    limit: Optional[int] = None
    single: bool = False

    def equality_value(self, column: str) -> Any:
        for op, col, value in self.filters:
            if op == "eq" and col == column:
                return value
        return None


def validate_table(table: str) -> str:
    if table not in ALLOWED_TABLES:
        raise ValidationError(f"Invalid table name: {table}", field="table")
    return table


def validate_column(column: Any) -> str:
    if not isinstance(column, str) or not _IDENTIFIER.match(column):
        raise ValidationError(f"Invalid field name: {column}", field="column")
    return column


def sanitize_select(select: str) -> str:
    if not select or select.strip() == "*":
        return "*"
    columns = [validate_column(c.strip()) for c in select.split(",")]
    return ", ".join(columns)


def _parse_pair(raw: str, op: str) -> Tuple[str, Any]:
    try:
        pair = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError(f"Malformed '{op}' filter", field=op)
    if not isinstance(pair, list) or len(pair) != 2:
        raise ValidationError(f"'{op}' filter must be a [column, value] pair", field=op)
    column, value = pair
    if op == "in" and not isinstance(value, list):
        raise ValidationError("IN clause requires array", field=op)
    return validate_column(column), value


def parse_query_options(query_params: Any) -> QueryOptions:
    """Read ``select``/filters/``order``/``limit``/``single`` from a multi-dict of query params."""
    options = QueryOptions()
    if query_params.get("select"):
        options.select = sanitize_select(query_params.get("select"))

    for op in FILTER_OPERATORS:
        for raw in query_params.getlist(op):
            column, value = _parse_pair(raw, op)
            options.filters.append((op, column, value))

    if query_params.get("order"):
        column, direction = _parse_pair(query_params.get("order"), "order")
        direction = "ASC" if str(direction).lower() == "asc" else "DESC"
        options.order = (column, direction)

    if query_params.get("limit"):
        try:
            limit = int(query_params.get("limit"))
        except ValueError:
            raise ValidationError("Invalid limit value", field="limit")
        if limit < 1 or limit > settings.MAX_QUERY_LIMIT:
            raise ValidationError("Invalid limit value", field="limit")
        options.limit = limit

    options.single = query_params.get("single") == "true"
    return options


def _where(
    filters: Sequence[Tuple[str, str, Any]], params: Dict[str, Any], start: int = 0
) -> Tuple[str, List[str]]:
    conditions = []
    expanding = []
    for i, (op, column, value) in enumerate(filters, start=start):
        name = f"p{i}"
        if op == "in":
            conditions.append(f"{column} IN :{name}")
            expanding.append(name)
        elif value is None and op in ("eq", "neq"):
            conditions.append(f"{column} IS {'NOT ' if op == 'neq' else ''}NULL")
            continue
        else:
            conditions.append(f"{column} {FILTER_OPERATORS[op]} :{name}")
        params[name] = value
    clause = f" WHERE {' AND '.join(conditions)}" if conditions else ""
    return clause, expanding


def _statement(sql: str, expanding: List[str]) -> TextClause:
    statement = text(sql)
    if expanding:
        statement = statement.bindparams(
            *[bindparam(name, expanding=True) for name in expanding]
        )
    return statement


def build_select(table: str, options: QueryOptions) -> Tuple[TextClause, Dict[str, Any]]:
    validate_table(table)
    params: Dict[str, Any] = {}
    where, expanding = _where(options.filters, params)
    sql = f"SELECT {options.select} FROM {table}{where}"
    if options.order:
        column, direction = options.order
        sql += f" ORDER BY {column} {direction}"
    if options.limit:
        sql += f" LIMIT {int(options.limit)}"
    return _statement(sql, expanding), params


def build_insert(
    table: str, rows: Sequence[Mapping[str, Any]]
) -> Tuple[TextClause, Dict[str, Any]]:
    """Single or bulk insert; the first row's keys define the column list."""
    validate_table(table)
    if not rows:
        raise ValidationError("No data provided")
    fields = [validate_column(f) for f in rows[0].keys()]
    if not fields:
        raise ValidationError("No data provided")

    params: Dict[str, Any] = {}
    groups = []
    for r, row in enumerate(rows):
        placeholders = []
        for f in fields:
            name = f"v{r}_{f}"
            params[name] = row.get(f)
            placeholders.append(f":{name}")
        groups.append(f"({', '.join(placeholders)})")

    sql = (
        f"INSERT INTO {table} ({', '.join(fields)}) "
        f"VALUES {', '.join(groups)} RETURNING *"
    )
    return text(sql), params


def build_update(
    table: str, data: Mapping[str, Any], options: QueryOptions
) -> Tuple[TextClause, Dict[str, Any]]:
    validate_table(table)
    if not data:
        raise ValidationError("No fields to update")
    params: Dict[str, Any] = {}
    assignments = []
    for f, value in data.items():
        validate_column(f)
        params[f"s_{f}"] = value
        assignments.append(f"{f} = :s_{f}")
    where, expanding = _where(options.filters, params)
    sql = f"UPDATE {table} SET {', '.join(assignments)}{where} RETURNING *"
    return _statement(sql, expanding), params


def build_delete(table: str, options: QueryOptions) -> Tuple[TextClause, Dict[str, Any]]:
    validate_table(table)
    if not options.filters:
        raise ValidationError(
            "DELETE requires WHERE clause (use eq, neq, or in parameter)"
        )
    params: Dict[str, Any] = {}
    where, expanding = _where(options.filters, params)
    return _statement(f"DELETE FROM {table}{where}", expanding), params
