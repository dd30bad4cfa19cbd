import inspect
from enum import Enum
from typing import Any, Callable, List


Listener = Callable[[Any], Any]


class LoadState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


class Subscribable:
    """Single-writer state holder that notifies readers after each change."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a sync or async listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _notify(self) -> None:
        for listener in list(self._listeners):
            outcome = listener(self)
            if inspect.isawaitable(outcome):
                await outcome
