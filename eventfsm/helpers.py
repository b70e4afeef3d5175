"""
Helper utilities for building state machines.

Provides the ``create`` factory and a decorator that adds debug logging to
action handlers and lifecycle hooks.
"""

import inspect
import logging
from collections.abc import Mapping
from functools import wraps
from typing import Optional

from eventfsm.machine import Machine
from eventfsm.types import StateId, is_state_id, state_name

logger = logging.getLogger(__name__)


def create(
    initial_state: StateId,
    states: Mapping,
    max_chain_depth: Optional[int] = None,
    history_size: Optional[int] = None,
) -> Machine:
    """
    Create a Machine and run the initial state's ``_enter`` hook.

    Args:
        initial_state: State the machine starts in.
        states: Mapping of state id → node; the "*" node is the wildcard.
        max_chain_depth: Per-dispatch transition cap (default:
                         Machine.MAX_CHAIN_DEPTH).
        history_size: Transitions kept for ``get_history()`` (default:
                      Machine.HISTORY_SIZE).

    Returns:
        A live Machine. If the initial ``_enter`` chain was asynchronous,
        await ``machine.entry`` before dispatching.

    Example:
        switch = create("off", {
            "off": {"toggle": "on"},
            "on":  {"toggle": "off"},
        })
        switch.toggle()  # → "on"
    """
    return Machine(
        initial_state,
        states,
        max_chain_depth=max_chain_depth,
        history_size=history_size,
    )


def log_action(func):
    """
    Decorator that adds entry/exit logging to action handlers and hooks.

    Logs the handler name, the state it ran in and what it returned at DEBUG
    level.

    Usage:
        @log_action
        def kick(machine, force):
            return "on" if force == "hard" else None

    Note:
        For ``async def`` handlers only the call is logged; the outcome is
        reported as pending.
    """

    @wraps(func)
    def wrapper(machine, *args):
        name = func.__name__
        logger.debug(f"{name}: called in {state_name(machine.state)} with {args!r}")
        result = func(machine, *args)
        if inspect.isawaitable(result):
            logger.debug(f"{name}: pending")
        elif is_state_id(result):
            logger.debug(f"{name}: → {state_name(result)}")
        else:
            logger.debug(f"{name}: no transition")
        return result

    return wrapper
