import pytest

from conftest import SCHOOL_A, SCHOOL_B, YEAR_A_CURRENT, YEAR_A_OLD, YEAR_B_CURRENT
from schooldata.client.storage import SELECTED_ACADEMIC_YEAR_KEY, SELECTED_SCHOOL_KEY
from schooldata.exceptions import SchoolContextError


@pytest.mark.asyncio
async def test_year_persisted_under_another_school_resolves_to_current(session, store):
    store.set(SELECTED_SCHOOL_KEY, SCHOOL_A["code"])
    store.set(SELECTED_ACADEMIC_YEAR_KEY, YEAR_B_CURRENT["id"])

    await session.initialize()

    assert session.school.school_id == SCHOOL_A["id"]
    assert session.academic_year.selected_year_id == YEAR_A_CURRENT["id"]
    assert session.is_read_only is False
    assert session.is_loading is False


@pytest.mark.asyncio
async def test_persisted_pair_is_restored_on_startup(session, store):
    store.set(SELECTED_SCHOOL_KEY, SCHOOL_A["code"])
    store.set(SELECTED_ACADEMIC_YEAR_KEY, YEAR_A_OLD["id"])

    await session.initialize()

    assert session.academic_year.selected_year_id == YEAR_A_OLD["id"]
    assert session.is_read_only is True


@pytest.mark.asyncio
async def test_persisted_year_is_ignored_when_school_fell_back(session, store):
    store.set(SELECTED_SCHOOL_KEY, "CLOSED")
    store.set(SELECTED_ACADEMIC_YEAR_KEY, YEAR_A_OLD["id"])

    await session.initialize()

    assert session.school.selected_code == SCHOOL_A["code"]
    assert session.academic_year.selected_year_id == YEAR_A_CURRENT["id"]


@pytest.mark.asyncio
async def test_switching_school_reloads_years_for_new_school(session, store):
    await session.initialize()

    await session.switch_school(SCHOOL_B["code"])

    assert session.academic_year.school_id == SCHOOL_B["id"]
    assert session.academic_year.selected_year_id == YEAR_B_CURRENT["id"]
    assert store.get(SELECTED_ACADEMIC_YEAR_KEY) == YEAR_B_CURRENT["id"]
    builder = session.scoped("students")
    assert builder.scope == {
        "school_id": SCHOOL_B["id"],
        "academic_year_id": YEAR_B_CURRENT["id"],
    }


@pytest.mark.asyncio
async def test_scoped_requires_resolved_context(session, backend):
    with pytest.raises(SchoolContextError):
        session.scoped("students")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_initialize_twice_subscribes_once(session, backend):
    await session.initialize()
    await session.initialize()
    backend.requests.clear()

    await session.switch_school(SCHOOL_B["code"])

    assert len(backend.requests_for("academic_years")) == 1


@pytest.mark.asyncio
async def test_close_stops_following_school_changes(session, backend):
    await session.initialize()
    session.close()
    backend.requests.clear()

    await session.switch_school(SCHOOL_B["code"])

    assert backend.requests_for("academic_years") == []
    # The stale year is never paired with the new school
    with pytest.raises(SchoolContextError):
        session.scoped("students")


@pytest.mark.asyncio
async def test_select_year_within_session(session):
    await session.initialize()

    await session.select_year(YEAR_A_OLD["id"])

    assert session.is_read_only is True
    assert session.scoped("students").academic_year_id == YEAR_A_OLD["id"]


@pytest.mark.asyncio
async def test_initialize_again_keeps_the_selected_year(session, store):
    await session.initialize()
    await session.select_year(YEAR_A_OLD["id"])

    await session.initialize()

    assert session.academic_year.selected_year_id == YEAR_A_OLD["id"]
    assert store.get(SELECTED_ACADEMIC_YEAR_KEY) == YEAR_A_OLD["id"]
    assert session.is_read_only is True
