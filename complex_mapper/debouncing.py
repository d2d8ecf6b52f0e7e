"""Coalescing debounce helper for expensive recomputes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class _PendingCall:
    args: Tuple[Any, ...]
    kwargs: dict[str, Any]


class CoalescingDebouncer:
    """Collapse bursts of calls into one deferred execution.

    Every call replaces the pending arguments; a single timer is armed by the
    first call of a burst and, when it fires, the callback runs once with the
    latest arguments. Earlier unexecuted requests are discarded.

    Parameters
    ----------
    callback:
        Callable to execute.
    delay_ms:
        Delay between the first request of a burst and execution.
    """

    def __init__(self, callback: Callable[..., Any], *, delay_ms: int) -> None:
        if delay_ms <= 0:
            raise ValueError("delay_ms must be > 0")
        self._callback = callback
        self._delay_s = delay_ms / 1000.0

        self._pending: Optional[_PendingCall] = None
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            self._pending = _PendingCall(args=args, kwargs=dict(kwargs))
            if self._timer is None:
                self._schedule_locked()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None

    def _schedule_locked(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(self._delay_s, self._on_tick)
            timer.daemon = True
            self._timer = timer
            timer.start()
            return

        self._timer = loop.call_later(self._delay_s, self._on_tick)

    def _take_locked(self) -> Optional[_PendingCall]:
        call = self._pending
        self._pending = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return call

    def _on_tick(self) -> None:
        with self._lock:
            self._timer = None
            call = self._pending
            self._pending = None
        if call is not None:
            self._run(call)

    def _run(self, call: _PendingCall) -> None:
        try:
            self._callback(*call.args, **call.kwargs)
        except Exception:
            logger.exception("CoalescingDebouncer callback failed")

    def flush(self) -> bool:
        """Run the pending call now. Returns ``True`` if one was executed."""
        with self._lock:
            call = self._take_locked()
        if call is None:
            return False
        self._run(call)
        return True

    def cancel(self) -> None:
        """Drop the pending call without executing it."""
        with self._lock:
            self._take_locked()
