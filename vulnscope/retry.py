"""Retrying remote calls with exponential back-off while the server is unavailable."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 10

_INITIAL_INTERVAL = 0.5
_RANDOMIZATION_FACTOR = 0.5
_MULTIPLIER = 1.5
_MAX_INTERVAL = 60.0
_MAX_ELAPSED = 15 * 60.0


class ErrorCode(str, Enum):
    """Error codes of the remote procedure call protocol."""

    CANCELED = "canceled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid_argument"
    MALFORMED = "malformed"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOT_FOUND = "not_found"
    BAD_ROUTE = "bad_route"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    UNAUTHENTICATED = "unauthenticated"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    FAILED_PRECONDITION = "failed_precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out_of_range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "dataloss"


class RpcError(Exception):
    """An error returned by a remote procedure call."""

    def __init__(self, code: ErrorCode | str, msg: str = "") -> None:
        super().__init__(msg)
        self.code = ErrorCode(code)
        self.msg = msg

    def __str__(self) -> str:
        return f"twirp error {self.code.value}: {self.msg}"


class _ExponentialBackoff:
    def __init__(self) -> None:
        self._interval = _INITIAL_INTERVAL
        self._start = time.monotonic()

    def next_delay(self) -> float | None:
        if time.monotonic() - self._start > _MAX_ELAPSED:
            return None
        delta = _RANDOMIZATION_FACTOR * self._interval
        low, high = self._interval - delta, self._interval + delta
        delay = low + random.random() * (high - low)
        self._interval = min(self._interval * _MULTIPLIER, _MAX_INTERVAL)
        return delay


def retry(func: Callable[[], T]) -> T:
    """Call func, retrying while it raises an UNAVAILABLE RpcError.

    Any other exception is raised at once; after MAX_RETRIES retries the
    last error is raised.
    """
    backoff = _ExponentialBackoff()
    retries = 0
    while True:
        try:
            return func()
        except RpcError as err:
            if err.code is not ErrorCode.UNAVAILABLE or retries >= MAX_RETRIES:
                raise
            delay = backoff.next_delay()
            if delay is None:
                raise
            retries += 1
            logger.warning("%s", err)
            logger.info("Retrying HTTP request...")
            time.sleep(delay)