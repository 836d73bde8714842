"""Cooperative cancellation for the minimizers.

An abort is never an interrupt: the minimizers poll their token at the top
of each pass, each scan step and each simplex iteration, and return the best
point found so far once they notice the request. Callers that cannot pass a
token around use the process-wide default through :func:`request_abort`.
"""

from __future__ import annotations

import signal
import sys
import threading
from contextlib import contextmanager
from enum import Flag, auto
from typing import Iterator, Optional, Sequence

from .logging import get_logger

logger = get_logger(__name__)

_ANNOUNCEMENT = "simplex_min abort requested"


class AbortFlags(Flag):
    """Options accepted by :meth:`AbortToken.request`."""

    REQUEST = auto()
    ANNOUNCE_STDOUT = auto()
    ANNOUNCE_STDERR = auto()


class AbortToken:
    """
    Set-once flag shared between a controller and a running minimization.

    The flag is a :class:`threading.Event`, so a signal handler or a
    supervising thread may set it while the computation thread polls it.
    Concurrent writers are not ordered with respect to :meth:`reset`.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def request(self, flags: AbortFlags = AbortFlags.REQUEST) -> bool:
        """Request an abort, optionally announcing it, and return the flag state."""
        self._event.set()
        if AbortFlags.ANNOUNCE_STDOUT in flags:
            print(_ANNOUNCEMENT, file=sys.stdout, flush=True)
        if AbortFlags.ANNOUNCE_STDERR in flags:
            print(_ANNOUNCEMENT, file=sys.stderr, flush=True)
        logger.debug("abort requested")
        return self.requested

    def reset(self) -> None:
        self._event.clear()

    def __bool__(self) -> bool:
        return self.requested


_default_token = AbortToken()


def default_abort_token() -> AbortToken:
    """Return the process-wide token used when no token is injected."""
    return _default_token


def resolve_token(token: Optional[AbortToken]) -> AbortToken:
    return _default_token if token is None else token


def request_abort(flags: AbortFlags = AbortFlags.REQUEST) -> bool:
    """Request an abort of any minimization using the default token."""
    return _default_token.request(flags)


def abort_requested() -> bool:
    """Query the default token."""
    return _default_token.requested


@contextmanager
def abort_on_signal(
    token: Optional[AbortToken] = None,
    signals: Sequence[int] = (signal.SIGINT,),
    flags: AbortFlags = AbortFlags.REQUEST,
) -> Iterator[AbortToken]:
    """
    Context manager turning the given signals into abort requests.

    Previous handlers are restored on exit. Must be entered from the main
    thread, as required by :func:`signal.signal`.

    Example
    -------
    >>> with abort_on_signal() as token:
    ...     result = simplex_min(fun, x0, abort=token)
    """
    target = resolve_token(token)

    def _handler(signum, frame):
        logger.warning("signal %d received, requesting abort", signum)
        target.request(flags)

    previous = {sig: signal.signal(sig, _handler) for sig in signals}
    try:
        yield target
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


__all__ = [
    "AbortFlags",
    "AbortToken",
    "abort_on_signal",
    "abort_requested",
    "default_abort_token",
    "request_abort",
    "resolve_token",
]
