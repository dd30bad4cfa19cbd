"""
Academic-year context.

Resolution order when years are (re)loaded for a school:

1. the persisted selection, if it is one of this school's years (startup only);
2. the year flagged ``is_current``;
3. the earliest year by start date.

A year is read-only when it is archived or not the current year. Mutation
helpers call ``require_writable`` before touching the network.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import structlog

from schooldata.client.base import DataClient
from schooldata.client.storage import SELECTED_ACADEMIC_YEAR_KEY, LocalStateStore
from schooldata.context.events import LoadState, Subscribable
from schooldata.exceptions import ReadOnlyYearError, SchoolContextError

logger = structlog.get_logger()


@dataclass(frozen=True)
class AcademicYear:
    id: str
    school_id: str
    name: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_current: bool = False
    is_archived: bool = False

    @property
    def is_read_only(self) -> bool:
        return self.is_archived or not self.is_current

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AcademicYear":
        return cls(
            id=str(row["id"]),
            school_id=str(row["school_id"]),
            name=row.get("name") or "",
            start_date=str(row["start_date"]) if row.get("start_date") else None,
            end_date=str(row["end_date"]) if row.get("end_date") else None,
            is_current=bool(row.get("is_current")),
            is_archived=bool(row.get("is_archived")),
        )


def resolve_selection(
    years: List[AcademicYear], persisted_id: Optional[str]
) -> Optional[AcademicYear]:
    """Pick the year to select from ``years`` (all belonging to one school)."""
    if not years:
        return None
    if persisted_id:
        match = next((y for y in years if y.id == persisted_id), None)
        if match:
            return match
    current = next((y for y in years if y.is_current), None)
    if current:
        return current
    return min(years, key=lambda y: y.start_date or "")


class AcademicYearContext(Subscribable):
    """Source of truth for the selected academic year of the selected school."""

    def __init__(self, client: DataClient, store: LocalStateStore):
        super().__init__()
        self._client = client
        self._store = store
        self._generation = 0
        self.state = LoadState.UNINITIALIZED
        self.school_id: Optional[str] = None
        self.academic_years: List[AcademicYear] = []
        self.selected_year_id: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.state in (LoadState.UNINITIALIZED, LoadState.LOADING)

    @property
    def selected_year(self) -> Optional[AcademicYear]:
        return next(
            (y for y in self.academic_years if y.id == self.selected_year_id), None
        )

    @property
    def is_current_year(self) -> bool:
        year = self.selected_year
        return year is not None and year.is_current

    @property
    def is_read_only(self) -> bool:
        year = self.selected_year
        return year.is_read_only if year else False

    def require_scope(self) -> Tuple[str, str]:
        """Return ``(school_id, academic_year_id)`` or raise SchoolContextError."""
        year = self.selected_year
        if not self.school_id or year is None:
            raise SchoolContextError(
                "School and academic year must be selected to perform database operations"
            )
        return self.school_id, year.id

    def require_writable(self, message: Optional[str] = None) -> None:
        """Refuse mutation of an archived or non-current year."""
        year = self.selected_year
        if year is None:
            self.require_scope()
        if year.is_read_only:
            reason = "archived" if year.is_archived else "not the current year"
            raise ReadOnlyYearError(
                message
                or f"Academic year '{year.name}' is read-only ({reason}). "
                "Switch to the current academic year.",
                academic_year_id=year.id,
            )

    async def load(self, school_id: Optional[str], restore: bool = True) -> None:
        """Fetch the school's years and resolve the selection.

        Args:
            school_id: Tenant whose years to load; None settles as unresolved
            restore: Whether the persisted selection may be reused
        """
        self._generation += 1
        generation = self._generation
        if school_id != self.school_id:
            self.academic_years = []
            self.selected_year_id = None
        self.school_id = school_id
        self.state = LoadState.LOADING

        if not school_id:
            self._settle_unresolved()
            await self._notify()
            return

        result = await (
            self._client.from_("academic_years")
            .select("*")
            .eq("school_id", school_id)
            .order("start_date", ascending=True)
        )
        if generation != self._generation:
            # A newer load (e.g. a school switch) superseded this one.
            return

        if not result.ok:
            logger.error(
                "Error fetching academic years",
                school_id=school_id,
                kind=result.error.kind.value,
                message=result.error.message,
            )
            self._settle_unresolved()
            await self._notify()
            return

        years = [
            AcademicYear.from_row(row)
            for row in result.data or []
            if str(row.get("school_id")) == str(school_id)
        ]
        years.sort(key=lambda y: y.start_date or "")
        self.academic_years = years

        persisted = self._store.get(SELECTED_ACADEMIC_YEAR_KEY) if restore else None
        selected = resolve_selection(years, persisted)
        if selected is None:
            logger.info("No academic years found", school_id=school_id)
            self._settle_unresolved()
            await self._notify()
            return

        self.selected_year_id = selected.id
        self._store.set(SELECTED_ACADEMIC_YEAR_KEY, selected.id)
        self.state = LoadState.RESOLVED
        logger.info(
            "Academic year resolved",
            school_id=school_id,
            academic_year_id=selected.id,
            restored=selected.id == persisted,
            is_read_only=selected.is_read_only,
        )
        await self._notify()

    async def reload(self) -> None:
        """Refetch for the same school, keeping the current selection if it still exists."""
        if self.selected_year_id:
            self._store.set(SELECTED_ACADEMIC_YEAR_KEY, self.selected_year_id)
        await self.load(self.school_id, restore=True)

    async def on_school_changed(self, school_context: Any) -> None:
        # A selection made under another school is discarded, even on an id collision.
        await self.load(school_context.school_id, restore=False)

    async def select_year(self, year_id: str) -> AcademicYear:
        year = next((y for y in self.academic_years if y.id == year_id), None)
        if year is None:
            raise SchoolContextError(
                f"Academic year '{year_id}' does not belong to the selected school",
                details={"academic_year_id": year_id, "school_id": self.school_id},
            )
        self.selected_year_id = year.id
        self._store.set(SELECTED_ACADEMIC_YEAR_KEY, year.id)
        self.state = LoadState.RESOLVED
        logger.info(
            "Academic year selected",
            academic_year_id=year.id,
            is_read_only=year.is_read_only,
        )
        await self._notify()
        return year

    def _settle_unresolved(self) -> None:
        self.academic_years = []
        self.selected_year_id = None
        self.state = LoadState.UNRESOLVED
