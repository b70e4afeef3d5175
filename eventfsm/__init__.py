"""
eventfsm
~~~~~~~~

A small declarative finite state machine runtime for Python.

Quick start:
    from eventfsm import create

    switch = create("off", {"off": {"toggle": "on"}, "on": {"toggle": "off"}})
    switch.subscribe(print)
    switch.toggle()
"""

from eventfsm.exceptions import InvalidSubscribeArgument, TransitionCycleError
from eventfsm.graph import WILDCARD, StateGraph
from eventfsm.helpers import create, log_action
from eventfsm.machine import EventDispatcher, Machine
from eventfsm.types import (
    Action,
    ActionKind,
    StateId,
    TransitionMetadata,
    is_state_id,
)

__all__ = [
    "Machine",
    "EventDispatcher",
    "StateGraph",
    "WILDCARD",
    "Action",
    "ActionKind",
    "StateId",
    "TransitionMetadata",
    "InvalidSubscribeArgument",
    "TransitionCycleError",
    "create",
    "is_state_id",
    "log_action",
]
