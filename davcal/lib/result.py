"""
Result type shared by the transport, the codec and the service.

Expected failures (HTTP error statuses, missing resources, stale etags,
network trouble) are returned as an :class:`Error` value instead of being
raised, so callers get one uniform contract across the whole package:

    result = client.list_calendars()
    if result.is_success:
        for calendar in result.data:
            ...
    elif result.retryable:
        ...
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Success(Generic[T]):
    """The operation succeeded and produced ``data``."""

    data: T

    is_success = True
    is_error = False

    def get_or_none(self) -> T:
        return self.data

    def get_or_default(self, default: Any) -> T:
        return self.data

    def map(self, transform: Callable[[T], R]) -> "Success[R]":
        """Transform the data, keeping the result a Success."""
        return Success(transform(self.data))

    def fold(
        self,
        on_success: Callable[[T], R],
        on_error: Callable[[int, str], R],
    ) -> R:
        return on_success(self.data)


@dataclass(frozen=True)
class Error:
    """
    The operation failed.

    Attributes:
        code: HTTP status code, or 0 for transport-level (network) failures
        message: Human readable description.  Not guaranteed to be safe
            for display verbatim.
        retryable: True if repeating the same call may succeed
    """

    code: int
    message: str
    retryable: bool = False

    is_success = False
    is_error = True

    @property
    def is_auth_error(self) -> bool:
        """401 or 403 - the credentials need to be reconfigured"""
        return self.code in (401, 403)

    @property
    def is_not_found(self) -> bool:
        return self.code == 404

    @property
    def is_conflict(self) -> bool:
        """412 - the etag is stale, refetch before retrying"""
        return self.code == 412

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.code <= 599

    @property
    def is_network_error(self) -> bool:
        return self.code == 0

    def get_or_none(self) -> None:
        return None

    def get_or_default(self, default: Any) -> Any:
        return default

    def map(self, transform: Callable[[Any], Any]) -> "Error":
        return self

    def fold(
        self,
        on_success: Callable[[Any], R],
        on_error: Callable[[int, str], R],
    ) -> R:
        return on_error(self.code, self.message)


Result = Union[Success[T], Error]
