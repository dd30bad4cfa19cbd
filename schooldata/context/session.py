"""
Explicit owner of the tenant and academic-year contexts.

One ``TenantSession`` is created at process start and passed to whatever
needs scoped data access, instead of module-level singletons.
"""

from typing import Optional

import structlog

from schooldata.client.base import DataClient
from schooldata.client.factory import create_client
from schooldata.client.rest import RestDataClient
from schooldata.client.scoping import ScopedQueryBuilder
from schooldata.client.storage import (
    SELECTED_SCHOOL_KEY,
    JsonFileStateStore,
    LocalStateStore,
)
from schooldata.config import Settings
from schooldata.context.academic_year import AcademicYear, AcademicYearContext
from schooldata.context.school import School, SchoolContext

logger = structlog.get_logger()


class TenantSession:
    def __init__(self, client: DataClient, store: LocalStateStore):
        self.client = client
        self.store = store
        self.school = SchoolContext(
            client, store, requires_auth=isinstance(client, RestDataClient)
        )
        self.academic_year = AcademicYearContext(client, store)
        self._unsubscribe = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TenantSession":
        if settings is None:
            from schooldata.config import settings as default_settings

            settings = default_settings
        store = JsonFileStateStore(settings.STATE_FILE)
        return cls(create_client(settings, store), store)

    @property
    def is_loading(self) -> bool:
        return self.school.is_loading or self.academic_year.is_loading

    @property
    def is_read_only(self) -> bool:
        return self.academic_year.is_read_only

    async def initialize(self) -> None:
        """Resolve school, then year, restoring persisted selections where valid."""
        # Re-initializing must not let the school reload reset the persisted year.
        self.close()

        previous_code = self.store.get(SELECTED_SCHOOL_KEY)
        await self.school.load()
        # The persisted year only counts if it was chosen under the same school.
        restore = previous_code is None or previous_code == self.school.selected_code
        await self.academic_year.load(self.school.school_id, restore=restore)

        self._unsubscribe = self.school.subscribe(self.academic_year.on_school_changed)
        logger.info(
            "Tenant session initialized",
            school_code=self.school.selected_code,
            academic_year_id=self.academic_year.selected_year_id,
        )

    async def switch_school(self, code: str) -> School:
        return await self.school.select_school(code)

    async def select_year(self, year_id: str) -> AcademicYear:
        return await self.academic_year.select_year(year_id)

    def scoped(self, table: str) -> ScopedQueryBuilder:
        """Scoped builder for the ids in effect right now."""
        school_id = self.school.school_id
        year = self.academic_year.selected_year
        # A year left over from another school is never paired with this one.
        year_id = year.id if year and year.school_id == school_id else None
        return ScopedQueryBuilder(self.client, table, school_id, year_id)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
