"""
State machine data types and structures.

Defines the core types used by the event dispatch runtime:
- StateId: Identifiers a machine can be in (strings or Enum members)
- ActionKind / Action: Compiled form of a single event binding
- TransitionMetadata: Record passed to every lifecycle hook
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

StateId = Union[str, Enum]

ENTER = "_enter"
EXIT = "_exit"
SUBSCRIBE = "subscribe"

LIFECYCLE_HOOKS = frozenset({ENTER, EXIT})


def is_state_id(value: Any) -> bool:
    """True if ``value`` names a state, i.e. returning it causes a transition."""
    return isinstance(value, (str, Enum))


def state_name(state: Optional[StateId]) -> str:
    """Readable label for a state, used in log messages."""
    if state is None:
        return "<none>"
    if isinstance(state, Enum):
        return state.name
    return state


class ActionKind(Enum):
    """
    How an event binding produces its result.

    TARGET bindings name the next state directly, HANDLER bindings are called
    with the machine as context, and VALUE bindings are inert literals that
    never cause a transition.
    """

    TARGET = "target"
    HANDLER = "handler"
    VALUE = "value"


@dataclass(frozen=True)
class Action:
    """
    A resolved event or hook binding.

    Args:
        kind: Which ActionKind this binding is.
        value: The target state, the handler callable or the literal value.
    """

    kind: ActionKind
    value: Any

    @classmethod
    def from_binding(cls, binding: Any) -> "Action":
        if is_state_id(binding):
            return cls(ActionKind.TARGET, binding)
        if callable(binding):
            return cls(ActionKind.HANDLER, binding)
        return cls(ActionKind.VALUE, binding)

    @property
    def is_handler(self) -> bool:
        return self.kind is ActionKind.HANDLER


@dataclass(frozen=True)
class TransitionMetadata:
    """
    Describes a single transition to ``_exit`` and ``_enter`` hooks.

    Args:
        from_state: State being left. None for the machine's initial entry.
        to_state: State being entered.
        event: Name of the triggering event. None for the initial entry and
               for automatic transitions.
        args: Positional arguments of the triggering call. Empty for the
              initial entry and for automatic transitions.
    """

    from_state: Optional[StateId]
    to_state: StateId
    event: Optional[str] = None
    args: Tuple[Any, ...] = ()

    @property
    def automatic(self) -> bool:
        """True for hops triggered by an ``_enter`` return value or the initial entry."""
        return self.event is None

    def to_dict(self) -> dict:
        """Serialise to a plain dictionary."""
        return {
            "from": self.from_state,
            "to": self.to_state,
            "event": self.event,
            "args": list(self.args),
        }
