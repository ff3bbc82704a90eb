"""Response classification.

Maps an HTTP status code to a typed outcome so callers never branch on raw
status numbers. The mapping is one-shot: no retry, no backoff.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from kluster.errors import StatusError, UnauthorizedError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    body: T


@dataclass(frozen=True)
class Unauthorized:
    pass


@dataclass(frozen=True)
class OtherFailure:
    status: int


def classify(status_code: int, body: T) -> Success[T] | Unauthorized | OtherFailure:
    """200 passes the body through, 401 is Unauthorized, anything else is OtherFailure."""
    if status_code == 200:
        return Success(body)
    if status_code == 401:
        return Unauthorized()
    return OtherFailure(status_code)


def raise_for_outcome(outcome: Success[T] | Unauthorized | OtherFailure) -> T:
    """Return the body of a Success, or raise the matching KubeError."""
    if isinstance(outcome, Success):
        return outcome.body
    if isinstance(outcome, Unauthorized):
        raise UnauthorizedError()
    if isinstance(outcome, OtherFailure):
        raise StatusError(outcome.status)
    raise TypeError(f"Unknown outcome: {outcome!r}")
