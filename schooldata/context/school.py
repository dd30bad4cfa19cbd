"""
Tenant (school) context.

Holds the list of active schools and the one currently selected. The
selected school code is persisted so it survives restarts.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from schooldata.client.base import DataClient
from schooldata.client.storage import (
    AUTH_TOKEN_KEY,
    SELECTED_SCHOOL_KEY,
    LocalStateStore,
)
from schooldata.context.events import LoadState, Subscribable
from schooldata.exceptions import SchoolContextError

logger = structlog.get_logger()

SCHOOL_COLUMNS = "id,code,name,is_active,region,division,district"


@dataclass(frozen=True)
class School:
    id: str
    code: str
    name: str
    is_active: bool = True
    region: Optional[str] = None
    division: Optional[str] = None
    district: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "School":
        return cls(
            id=str(row["id"]),
            code=row["code"],
            name=row.get("name") or row["code"],
            is_active=row.get("is_active", True),
            region=row.get("region"),
            division=row.get("division"),
            district=row.get("district"),
        )


class SchoolContext(Subscribable):
    """Source of truth for the selected school.

    State machine: ``uninitialized -> loading -> resolved | unresolved``.
    Load failures settle in ``unresolved`` with an empty school list.
    """

    def __init__(
        self,
        client: DataClient,
        store: LocalStateStore,
        requires_auth: bool = False,
    ):
        super().__init__()
        self._client = client
        self._store = store
        self._requires_auth = requires_auth
        self.state = LoadState.UNINITIALIZED
        self.schools: List[School] = []
        self.selected_code: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.state in (LoadState.UNINITIALIZED, LoadState.LOADING)

    @property
    def selected_school(self) -> Optional[School]:
        return next((s for s in self.schools if s.code == self.selected_code), None)

    @property
    def school_id(self) -> Optional[str]:
        school = self.selected_school
        return school.id if school else None

    @property
    def can_switch_school(self) -> bool:
        return len(self.schools) > 1

    def school_id_for(self, code: str) -> Optional[str]:
        """Resolve a school code to its id."""
        return next((s.id for s in self.schools if s.code == code), None)

    def _settle_unresolved(self) -> None:
        self.schools = []
        self.selected_code = None
        self.state = LoadState.UNRESOLVED

    async def load(self) -> None:
        self.state = LoadState.LOADING

        if self._requires_auth and not self._store.get(AUTH_TOKEN_KEY):
            logger.info("Skipping school load; no auth token present")
            self._settle_unresolved()
            await self._notify()
            return

        result = await (
            self._client.from_("schools")
            .select(SCHOOL_COLUMNS)
            .eq("is_active", True)
            .order("name", ascending=True)
        )
        if not result.ok:
            logger.error(
                "Error loading schools",
                kind=result.error.kind.value,
                message=result.error.message,
            )
            self._settle_unresolved()
            await self._notify()
            return

        self.schools = [School.from_row(row) for row in result.data or []]
        if not self.schools:
            logger.info("No active schools found")
            self._settle_unresolved()
            await self._notify()
            return

        persisted = self._store.get(SELECTED_SCHOOL_KEY)
        if persisted and self.school_id_for(persisted):
            self.selected_code = persisted
        else:
            self.selected_code = self.schools[0].code
            self._store.set(SELECTED_SCHOOL_KEY, self.selected_code)

        self.state = LoadState.RESOLVED
        logger.info(
            "School context resolved",
            school_code=self.selected_code,
            school_count=len(self.schools),
        )
        await self._notify()

    async def select_school(self, code: str) -> School:
        school = next((s for s in self.schools if s.code == code), None)
        if school is None:
            raise SchoolContextError(
                f"School '{code}' is not one of the active schools",
                details={"school_code": code},
            )
        self.selected_code = code
        self._store.set(SELECTED_SCHOOL_KEY, code)
        self.state = LoadState.RESOLVED
        logger.info("School selected", school_code=code, school_id=school.id)
        await self._notify()
        return school
