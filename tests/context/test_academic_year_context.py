import asyncio

import pytest

from conftest import SCHOOL_A, SCHOOL_B, YEAR_A_CURRENT, YEAR_A_OLD, YEAR_B_CURRENT, FakeBackend
from schooldata.client.result import transport_error
from schooldata.client.storage import SELECTED_ACADEMIC_YEAR_KEY
from schooldata.context.academic_year import (
    AcademicYear,
    AcademicYearContext,
    resolve_selection,
)
from schooldata.context.events import LoadState
from schooldata.exceptions import ReadOnlyYearError, SchoolContextError


def year(**overrides) -> AcademicYear:
    return AcademicYear.from_row({**YEAR_A_CURRENT, **overrides})


def test_resolve_prefers_persisted_then_current_then_earliest():
    old = AcademicYear.from_row(YEAR_A_OLD)
    current = AcademicYear.from_row(YEAR_A_CURRENT)

    assert resolve_selection([old, current], old.id) == old
    assert resolve_selection([old, current], "unknown") == current
    assert resolve_selection([old, current], None) == current

    later = year(id="y-later", start_date="2025-06-01", is_current=False)
    earlier = year(id="y-earlier", start_date="2022-06-01", is_current=False)
    assert resolve_selection([later, earlier], None) == earlier
    assert resolve_selection([], "anything") is None


def test_read_only_flag():
    assert year(is_current=True, is_archived=False).is_read_only is False
    assert year(is_current=False, is_archived=False).is_read_only is True
    assert year(is_current=True, is_archived=True).is_read_only is True


@pytest.mark.asyncio
async def test_persisted_year_from_another_school_falls_back_to_current(backend, store):
    store.set(SELECTED_ACADEMIC_YEAR_KEY, YEAR_B_CURRENT["id"])
    context = AcademicYearContext(backend, store)

    await context.load(SCHOOL_A["id"])

    assert context.state is LoadState.RESOLVED
    assert context.selected_year_id == YEAR_A_CURRENT["id"]
    assert context.is_read_only is False
    assert context.is_current_year is True
    assert store.get(SELECTED_ACADEMIC_YEAR_KEY) == YEAR_A_CURRENT["id"]


@pytest.mark.asyncio
async def test_persisted_year_is_restored_only_when_allowed(backend, store):
    store.set(SELECTED_ACADEMIC_YEAR_KEY, YEAR_A_OLD["id"])
    context = AcademicYearContext(backend, store)

    await context.load(SCHOOL_A["id"])
    assert context.selected_year_id == YEAR_A_OLD["id"]
    assert context.is_read_only is True

    await context.load(SCHOOL_A["id"], restore=False)
    assert context.selected_year_id == YEAR_A_CURRENT["id"]


@pytest.mark.asyncio
async def test_years_query_filters_by_school_and_orders_by_start(backend, store):
    context = AcademicYearContext(backend, store)

    await context.load(SCHOOL_A["id"])

    assert [y.id for y in context.academic_years] == [YEAR_A_OLD["id"], YEAR_A_CURRENT["id"]]
    request = backend.requests_for("academic_years")[0]
    assert request.equality_filters() == [("school_id", SCHOOL_A["id"])]
    assert request.order == ("start_date", True)


@pytest.mark.asyncio
async def test_no_school_settles_unresolved_without_querying(backend, store):
    context = AcademicYearContext(backend, store)

    await context.load(None)

    assert context.state is LoadState.UNRESOLVED
    assert context.selected_year is None
    assert backend.requests == []


@pytest.mark.asyncio
async def test_load_error_settles_unresolved(backend, store):
    backend.errors["academic_years"] = transport_error("boom", 500)
    context = AcademicYearContext(backend, store)

    await context.load(SCHOOL_A["id"])

    assert context.state is LoadState.UNRESOLVED
    assert context.academic_years == []
    assert context.is_loading is False


@pytest.mark.asyncio
async def test_school_without_years_settles_unresolved(store):
    context = AcademicYearContext(FakeBackend({"academic_years": []}), store)

    await context.load(SCHOOL_A["id"])

    assert context.state is LoadState.UNRESOLVED
    with pytest.raises(SchoolContextError):
        context.require_scope()


@pytest.mark.asyncio
async def test_require_writable(backend, store):
    context = AcademicYearContext(backend, store)
    with pytest.raises(SchoolContextError):
        context.require_writable()

    await context.load(SCHOOL_A["id"])
    context.require_writable()
    assert context.require_scope() == (SCHOOL_A["id"], YEAR_A_CURRENT["id"])

    await context.select_year(YEAR_A_OLD["id"])
    with pytest.raises(ReadOnlyYearError) as excinfo:
        context.require_writable()
    assert "read-only" in excinfo.value.message
    assert "archived" in excinfo.value.message
    assert excinfo.value.details == {"academic_year_id": YEAR_A_OLD["id"]}


@pytest.mark.asyncio
async def test_select_year_rejects_years_of_other_schools(backend, store):
    context = AcademicYearContext(backend, store)
    await context.load(SCHOOL_A["id"])

    with pytest.raises(SchoolContextError):
        await context.select_year(YEAR_B_CURRENT["id"])
    assert context.selected_year_id == YEAR_A_CURRENT["id"]


@pytest.mark.asyncio
async def test_reload_keeps_current_selection(backend, store):
    context = AcademicYearContext(backend, store)
    await context.load(SCHOOL_A["id"])
    await context.select_year(YEAR_A_OLD["id"])

    await context.reload()

    assert context.selected_year_id == YEAR_A_OLD["id"]


@pytest.mark.asyncio
async def test_listeners_are_notified(backend, store):
    context = AcademicYearContext(backend, store)
    seen = []
    unsubscribe = context.subscribe(lambda ctx: seen.append(ctx.selected_year_id))

    await context.load(SCHOOL_A["id"])
    unsubscribe()
    await context.select_year(YEAR_A_OLD["id"])

    assert seen == [YEAR_A_CURRENT["id"]]


class GatedBackend(FakeBackend):
    """Holds the first academic-year query until the gate opens."""

    def __init__(self, tables):
        super().__init__(tables)
        self.gate = asyncio.Event()
        self._held = False

    async def execute(self, request):
        if request.table == "academic_years" and not self._held:
            self._held = True
            await self.gate.wait()
        return await super().execute(request)


@pytest.mark.asyncio
async def test_superseded_load_is_discarded(store):
    backend = GatedBackend({"academic_years": [YEAR_A_OLD, YEAR_A_CURRENT, YEAR_B_CURRENT]})
    context = AcademicYearContext(backend, store)

    stale = asyncio.create_task(context.load(SCHOOL_A["id"]))
    await asyncio.sleep(0)
    await context.load(SCHOOL_B["id"])
    backend.gate.set()
    await stale

    assert context.school_id == SCHOOL_B["id"]
    assert context.selected_year_id == YEAR_B_CURRENT["id"]
    assert [y.school_id for y in context.academic_years] == [SCHOOL_B["id"]]
