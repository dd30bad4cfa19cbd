import json

from schooldata.client.storage import (
    SELECTED_ACADEMIC_YEAR_KEY,
    SELECTED_SCHOOL_KEY,
    JsonFileStateStore,
    MemoryStateStore,
)


def test_memory_store_round_trip():
    store = MemoryStateStore({SELECTED_SCHOOL_KEY: "SFXSAI"})

    store.set(SELECTED_ACADEMIC_YEAR_KEY, "y2")
    store.remove(SELECTED_SCHOOL_KEY)

    assert store.get(SELECTED_ACADEMIC_YEAR_KEY) == "y2"
    assert store.get(SELECTED_SCHOOL_KEY) is None


def test_file_store_survives_restart(tmp_path):
    path = tmp_path / "nested" / "state.json"

    JsonFileStateStore(path).set(SELECTED_SCHOOL_KEY, "MABINI")
    reopened = JsonFileStateStore(path)

    assert reopened.get(SELECTED_SCHOOL_KEY) == "MABINI"
    assert json.loads(path.read_text()) == {SELECTED_SCHOOL_KEY: "MABINI"}


def test_file_store_removal_is_persisted(tmp_path):
    path = tmp_path / "state.json"
    store = JsonFileStateStore(path)
    store.set(SELECTED_SCHOOL_KEY, "MABINI")
    store.set(SELECTED_ACADEMIC_YEAR_KEY, "y1")

    store.remove(SELECTED_ACADEMIC_YEAR_KEY)

    assert JsonFileStateStore(path).get(SELECTED_ACADEMIC_YEAR_KEY) is None


def test_corrupt_state_file_is_treated_as_empty(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json")

    store = JsonFileStateStore(path)

    assert store.get(SELECTED_SCHOOL_KEY) is None
    store.set(SELECTED_SCHOOL_KEY, "SFXSAI")
    assert json.loads(path.read_text()) == {SELECTED_SCHOOL_KEY: "SFXSAI"}
