"""
Uniform result type returned by every data backend.

Both backends report transport and authentication failures as values rather
than exceptions, so callers never branch on which backend is active.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from schooldata.exceptions import (
    AuthenticationError,
    SchoolContextError,
    SchoolDataException,
    TransportError,
)


class ErrorKind(str, Enum):
    """Discriminator for failed queries."""

    CONTEXT = "context"
    TRANSPORT = "transport"
    AUTH = "auth"


@dataclass(frozen=True)
class Ok:
    data: Any = None
    count: Optional[int] = None

    @property
    def ok(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    def unwrap(self) -> Any:
        return self.data


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    status_code: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False

    @property
    def data(self) -> None:
        return None

    @property
    def error(self) -> "Err":
        return self

    def to_exception(self) -> SchoolDataException:
        """Convert to the exception matching this error kind."""
        if self.kind is ErrorKind.CONTEXT:
            return SchoolContextError(self.message, details=dict(self.details))
        if self.kind is ErrorKind.AUTH:
            return AuthenticationError(self.message)
        return TransportError(
            self.message, status_code=self.status_code, details=dict(self.details)
        )

    def unwrap(self) -> Any:
        raise self.to_exception()


QueryResult = Union[Ok, Err]


def transport_error(
    message: str, status_code: Optional[int] = None, **details: Any
) -> Err:
    return Err(ErrorKind.TRANSPORT, message, status_code, details)


def auth_error(message: str = "Authentication required", **details: Any) -> Err:
    return Err(ErrorKind.AUTH, message, 401, details)
