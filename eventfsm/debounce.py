"""
Per-event debouncing on the asyncio event loop.

Each event name owns at most one armed timer. Calling ``schedule`` again for
the same event disarms the previous timer; the futures handed out by earlier
calls stay pending and settle with the result of the newest call once it
fires. A ``None`` wait cancels the pending call without arming a new one;
the futures of the cancelled calls are left pending.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from eventfsm.machine import Machine

logger = logging.getLogger(__name__)


@dataclass
class PendingCall:
    """The armed timer for one event plus every future waiting on it."""

    handle: asyncio.TimerHandle
    args: Tuple[Any, ...]
    waiters: List[asyncio.Future] = field(default_factory=list)


def _resolve_waiters(waiters: List[asyncio.Future], value: Any = None, error: Optional[BaseException] = None) -> None:
    for waiter in waiters:
        # The caller may have cancelled its own future
        if waiter.done():
            continue
        if error is not None:
            waiter.set_exception(error)
        else:
            waiter.set_result(value)


class DebounceController:
    """
    Debounce slots for a single machine.

    Owned by the machine so separate machines never share timers.
    """

    def __init__(self, machine: "Machine"):
        self._machine = machine
        self._pending: Dict[str, PendingCall] = {}

    def schedule(self, event: str, wait: Optional[float], *args) -> asyncio.Future:
        """
        Dispatch ``event`` with ``args`` once ``wait`` seconds pass without
        another ``schedule`` call for the same event.

        Must be called while an event loop is running.

        Args:
            event: Event name to dispatch.
            wait: Delay in seconds, or None to cancel the pending call.
            *args: Arguments for the dispatch.

        Returns:
            A future resolving to the machine's state after the dispatch. For
            a ``None`` wait it resolves at once to the current state, and the
            cancelled calls' futures never settle.

        Raises:
            ValueError: If ``wait`` is negative.
            RuntimeError: If no event loop is running.
        """
        if wait is not None and wait < 0:
            raise ValueError(f"wait must be >= 0 or None, got {wait}")

        loop = asyncio.get_running_loop()
        future = loop.create_future()

        superseded = self._pending.pop(event, None)
        waiters = [future]
        if superseded is not None:
            superseded.handle.cancel()
            waiters = superseded.waiters + waiters
            logger.debug(f"Debounce '{event}': superseded pending call {superseded.args!r}")

        if wait is None:
            # Superseded waiters are dropped unsettled; only this call resolves
            logger.debug(f"Debounce '{event}': cancelled")
            future.set_result(self._machine.state)
            return future

        handle = loop.call_later(wait, self._fire, event)
        self._pending[event] = PendingCall(handle=handle, args=args, waiters=waiters)
        logger.debug(f"Debounce '{event}': armed for {wait}s")
        return future

    def _fire(self, event: str) -> None:
        call = self._pending.pop(event)
        logger.debug(f"Debounce '{event}': firing with {call.args!r}")

        try:
            result = self._machine.dispatch(event, *call.args)
        except Exception as e:
            logger.warning(f"Debounced '{event}' raised: {e}")
            _resolve_waiters(call.waiters, error=e)
            return

        if not inspect.isawaitable(result):
            _resolve_waiters(call.waiters, result)
            return

        task = asyncio.ensure_future(result)

        def _done(task: asyncio.Future) -> None:
            if task.cancelled():
                _resolve_waiters(call.waiters, self._machine.state)
            elif task.exception() is not None:
                logger.warning(f"Debounced '{event}' raised: {task.exception()}")
                _resolve_waiters(call.waiters, error=task.exception())
            else:
                _resolve_waiters(call.waiters, task.result())

        task.add_done_callback(_done)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, event: str) -> bool:
        """
        Disarm the pending call for ``event``, resolving its waiters with the
        current state.

        Returns:
            True if a call was pending.
        """
        call = self._pending.pop(event, None)
        if call is None:
            return False
        call.handle.cancel()
        _resolve_waiters(call.waiters, self._machine.state)
        logger.debug(f"Debounce '{event}': cancelled")
        return True

    def cancel_all(self) -> None:
        for event in list(self._pending):
            self.cancel(event)

    def pending(self, event: str) -> bool:
        """True if a timer is armed for ``event``."""
        return event in self._pending
