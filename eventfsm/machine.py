"""
Machine — a declarative, event-driven state machine runtime.

Features:
- States declared as a plain mapping of event name → target state or handler
- Wildcard ("*") node used as a fallback for events and lifecycle hooks
- ``_exit`` / ``_enter`` hooks called with TransitionMetadata
- Automatic transitions: an ``_enter`` hook returning a state moves on again
- Sync and async handlers; a dispatch becomes awaitable only when it has to
- Per-event debouncing on the asyncio loop
- Store-style ``subscribe`` that reports the settled state once per dispatch

Usage:
    from eventfsm import create

    def kick(machine, force):
        return "on" if force == "hard" else None

    switch = create("off", {
        "*":   {"surge": "blown"},
        "off": {"toggle": "on", "kick": kick},
        "on":  {
            "toggle": "off",
            "_enter": lambda machine, meta: print(f"on via {meta.event}"),
        },
    })

    unsubscribe = switch.subscribe(print)   # prints "off"
    switch.toggle()                          # prints "on via toggle", then "on"
    switch.kick("hard")                      # no binding in "on" → ignored
    await switch.toggle.debounce(0.1)        # inside a running event loop

Handlers receive the machine as their first argument, followed by the
arguments of the call. Lifecycle hooks receive the machine and the
TransitionMetadata.
"""

import inspect
import logging
from collections import deque
from collections.abc import Mapping
from typing import Any, Generator, List, Optional, Union

from eventfsm.debounce import DebounceController
from eventfsm.exceptions import InvalidSubscribeArgument, TransitionCycleError
from eventfsm.graph import StateGraph
from eventfsm.subscriptions import SubscriptionRegistry
from eventfsm.types import (
    ENTER,
    EXIT,
    LIFECYCLE_HOOKS,
    SUBSCRIBE,
    Action,
    StateId,
    TransitionMetadata,
    is_state_id,
    state_name,
)

logger = logging.getLogger(__name__)

# Generator protocol used by the transition engine: it yields the raw return
# value of every handler or hook it calls and is sent back the settled value.
Steps = Generator[Any, Any, StateId]


def drive(steps: Steps) -> Any:
    """
    Run a step generator to completion.

    Runs synchronously for as long as every yielded value is plain. At the
    first awaitable, the remainder moves into a coroutine, which is returned
    in place of the final state.
    """
    try:
        value = next(steps)
        while not inspect.isawaitable(value):
            value = steps.send(value)
    except StopIteration as stop:
        return stop.value
    return _drive_async(steps, value)


async def _drive_async(steps: Steps, pending) -> StateId:
    try:
        value = await pending
        while True:
            value = steps.send(value)
            if inspect.isawaitable(value):
                value = await value
    except StopIteration as stop:
        return stop.value
    finally:
        steps.close()


class EventDispatcher:
    """
    Callable surface for one event name, as returned by ``machine.<event>``.

    Calling it dispatches the event. ``debounce(wait, *args)`` schedules a
    coalesced dispatch instead.
    """

    __slots__ = ("_machine", "name")

    def __init__(self, machine: "Machine", name: str):
        self._machine = machine
        self.name = name

    def __call__(self, *args) -> Any:
        return self._machine.dispatch(self.name, *args)

    def debounce(self, wait: Optional[float], *args):
        """
        Dispatch after ``wait`` seconds of quiet, replacing any pending
        debounced call for this event. ``wait=None`` cancels the pending call.

        Returns:
            asyncio.Future resolving to the resulting state.
        """
        return self._machine._debounce.schedule(self.name, wait, *args)

    def __repr__(self) -> str:
        return f"<EventDispatcher {self.name!r}>"


class Machine:
    """
    A live state machine built from a state definition mapping.

    Every public attribute that is not defined on the class resolves to an
    EventDispatcher, so ``machine.toggle()`` dispatches ``toggle``. Events
    whose names clash with the attributes below, or that are not valid
    identifiers, are reachable through ``machine["name"]`` or
    ``machine.dispatch("name")``.

    Attributes:
        MAX_CHAIN_DEPTH: Cap on transitions per dispatch, automatic hops
                         included, so ``_enter`` cycles fail instead of
                         spinning forever (default: 100).
        HISTORY_SIZE: Number of transitions kept for ``get_history()``
                      (default: 100).
        entry: Awaitable finishing the initial ``_enter`` chain when it
               suspends, otherwise None.
    """

    MAX_CHAIN_DEPTH: int = 100
    HISTORY_SIZE: int = 100

    def __init__(
        self,
        initial_state: StateId,
        states: Union[Mapping, StateGraph],
        max_chain_depth: Optional[int] = None,
        history_size: Optional[int] = None,
    ):
        if not is_state_id(initial_state):
            raise ValueError(
                f"Initial state {initial_state!r} must be a str or Enum member"
            )

        self._max_chain_depth = (
            self.MAX_CHAIN_DEPTH if max_chain_depth is None else max_chain_depth
        )
        if self._max_chain_depth < 1:
            raise ValueError(f"max_chain_depth must be >= 1, got {self._max_chain_depth}")

        self._graph = states if isinstance(states, StateGraph) else StateGraph(states)
        self._state: StateId = initial_state
        self._history: deque = deque(
            maxlen=self.HISTORY_SIZE if history_size is None else history_size
        )
        self._subscriptions = SubscriptionRegistry()
        self._debounce = DebounceController(self)
        self._dispatchers: dict = {}

        if initial_state not in self._graph:
            logger.warning(
                f"Initial state {state_name(initial_state)} has no node; "
                f"only wildcard bindings apply"
            )

        logger.info(
            f"{self.__class__.__name__} initialised — "
            f"{len(self._graph.states)} states, "
            f"starting at {state_name(initial_state)}"
        )

        self.entry = None
        result = drive(self._entry_steps())
        self.entry = result if inspect.isawaitable(result) else None

    # ------------------------------------------------------------------
    # Event access
    # ------------------------------------------------------------------

    def __getattr__(self, name: str) -> EventDispatcher:
        # Only reached for names missing from the instance and class
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __getitem__(self, event: str) -> EventDispatcher:
        if event in LIFECYCLE_HOOKS:
            raise KeyError(f"{event} is a lifecycle hook and cannot be dispatched")
        dispatcher = self._dispatchers.get(event)
        if dispatcher is None:
            dispatcher = self._dispatchers[event] = EventDispatcher(self, event)
        return dispatcher

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, event: str, *args) -> Any:
        """
        Dispatch ``event`` against the current state.

        Unbound events are ignored. Handler and hook exceptions propagate
        unchanged, leaving whatever state had been reached before the failure.

        Returns:
            The settled state, or an awaitable resolving to it when a handler
            or hook along the way was asynchronous.

        Raises:
            ValueError: If ``event`` names a lifecycle hook.
            TransitionCycleError: If automatic transitions do not settle.
        """
        if event in LIFECYCLE_HOOKS:
            raise ValueError(f"{event} is a lifecycle hook and cannot be dispatched")

        action = self._graph.resolve(self._state, event)
        if action is None:
            logger.debug(f"No binding for '{event}' in {state_name(self._state)} — ignored")
            return self._state

        return drive(self._dispatch_steps(action, event, args))

    def _dispatch_steps(self, action: Action, event: str, args: tuple) -> Steps:
        start = self._state
        result = action.value
        if action.is_handler:
            result = yield action.value(self, *args)
        return (yield from self._transition_steps(result, event, args, start))

    def _entry_steps(self) -> Steps:
        metadata = TransitionMetadata(None, self._state)
        self._history.append(metadata)
        result = yield self._invoke_hook(ENTER, self._state, metadata)
        return (yield from self._transition_steps(result, None, (), self._state))

    def _transition_steps(self, result: Any, event: Optional[str], args: tuple, start: StateId) -> Steps:
        """
        Follow ``result`` and any automatic transitions it sets off.

        Only the first hop carries the caller's event and args; every hop
        after it is automatic. Subscribers hear about the settled state once.
        """
        hops = 0
        while is_state_id(result) and result != self._state:
            if hops >= self._max_chain_depth:
                raise TransitionCycleError(self._state, self._max_chain_depth)
            hops += 1

            metadata = TransitionMetadata(self._state, result, event, args)
            yield self._invoke_hook(EXIT, self._state, metadata)

            logger.info(
                f"Transition: {state_name(self._state)} → {state_name(result)} "
                f"({f'on {event}' if event is not None else 'automatic'})"
            )
            self._state = result
            self._history.append(metadata)

            result = yield self._invoke_hook(ENTER, result, metadata)
            event, args = None, ()

        if self._state != start:
            self._subscriptions.notify(self._state)
        return self._state

    def _invoke_hook(self, hook: str, state: StateId, metadata: TransitionMetadata) -> Any:
        """Call ``state``'s resolved ``_exit`` or ``_enter`` hook, if any."""
        action = self._graph.resolve(state, hook)
        if action is None:
            return None
        if action.is_handler:
            return action.value(self, metadata)
        return action.value

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> StateId:
        """The current state."""
        return self._state

    @property
    def graph(self) -> StateGraph:
        return self._graph

    def subscribe(self, *args) -> Any:
        """
        Register a callback for state changes.

        With a single callable argument, the callback is called immediately
        with the current state and again after every dispatch that settles on
        a different state. Any other call shape is dispatched as the
        ``subscribe`` event when one is bound.

        Returns:
            A function that unsubscribes the callback, or the dispatch result
            when the call was forwarded to a ``subscribe`` action.

        Raises:
            InvalidSubscribeArgument: For no arguments or a single
                non-callable argument with no ``subscribe`` action bound.
                Calls with several arguments are dispatched regardless and,
                like any unbound event, return the current state.
        """
        if len(args) == 1 and callable(args[0]):
            return self._subscriptions.add(args[0], self._state)

        malformed = not args or len(args) == 1
        if malformed and self._graph.resolve(self._state, SUBSCRIBE) is None:
            raise InvalidSubscribeArgument(
                f"subscribe() takes a single callable, got {len(args)} argument(s)"
            )
        return self.dispatch(SUBSCRIBE, *args)

    def get_history(self, last_n: Optional[int] = None) -> List[TransitionMetadata]:
        """
        Return the recorded transitions, oldest first.

        Args:
            last_n: If provided, return only the last N entries.
        """
        history = list(self._history)
        return history[-last_n:] if last_n is not None else history

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def destroy(self) -> None:
        """Drop every subscriber and cancel pending debounced calls."""
        self._subscriptions.clear()
        self._debounce.cancel_all()
        logger.info(f"{self.__class__.__name__} destroyed in {state_name(self._state)}")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} state={self._state!r}>"


