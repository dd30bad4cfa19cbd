"""Persisted client-side state: the selected school, academic year and auth token."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

import structlog

logger = structlog.get_logger()

SELECTED_ACADEMIC_YEAR_KEY = "selected-academic-year"
SELECTED_SCHOOL_KEY = "selected-school"
AUTH_TOKEN_KEY = "auth_token"


class LocalStateStore(ABC):
    """String key/value storage that survives restarts."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class MemoryStateStore(LocalStateStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileStateStore(LocalStateStore):
    """Write-through store backed by a single JSON object on disk."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._values = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as file:
                data = json.load(file)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                "Ignoring unreadable state file", path=str(self.path), error=str(e)
            )
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed state file", path=str(self.path))
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as file:
            json.dump(self._values, file, indent=2, sort_keys=True)

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)
        self._flush()

    def remove(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._flush()
