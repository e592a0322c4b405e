"""Tagged lookup results returned by the gateways."""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    """The record exists."""

    record: T


@dataclass(frozen=True)
class NotFound:
    """The record does not exist and may be created."""

    reason: str | None = None


@dataclass(frozen=True)
class Failed:
    """The lookup itself failed; the record's existence is unknown."""

    detail: str
    error: Exception | None = None
    code: str | None = None


LookupResult = Union[Found[T], NotFound, Failed]
