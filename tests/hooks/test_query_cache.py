import pytest

from schooldata.client.result import Ok, transport_error
from schooldata.hooks.cache import QueryCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_entries_expire_after_stale_window():
    clock = FakeClock()
    cache = QueryCache(stale_seconds=30, clock=clock)
    cache.set(("students", "s1", "y1"), Ok([1]))

    clock.now = 30
    assert cache.get(("students", "s1", "y1")).data == [1]

    clock.now = 30.5
    assert cache.get(("students", "s1", "y1")) is None


def test_invalidate_by_prefix():
    cache = QueryCache()
    cache.set(("students", "s1", "y1"), Ok([]))
    cache.set(("students", "s1", "y2"), Ok([]))
    cache.set(("schools",), Ok([]))

    assert cache.invalidate("students", "s1", "y1") == 1
    assert cache.invalidate("students") == 1
    assert cache.get(("schools",)) is not None

    cache.clear()
    assert cache.get(("schools",)) is None


@pytest.mark.asyncio
async def test_get_or_fetch_only_stores_successes():
    cache = QueryCache()
    calls = []

    async def failing():
        calls.append("fail")
        return transport_error("down", 503)

    async def succeeding():
        calls.append("ok")
        return Ok(["row"])

    assert not (await cache.get_or_fetch(("k",), failing)).ok
    assert (await cache.get_or_fetch(("k",), succeeding)).data == ["row"]
    assert (await cache.get_or_fetch(("k",), succeeding)).data == ["row"]
    assert calls == ["fail", "ok"]
