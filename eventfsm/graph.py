"""
StateGraph — read-only view over a machine's state definitions.

A definition is a mapping of state id → node, where each node maps event
names to a target state, a handler callable or an inert literal. The node
stored under ``WILDCARD`` is consulted whenever the current state's node has
no binding for a key, lifecycle hooks included.

Usage:
    graph = StateGraph({
        "*":   {"surge": "blown"},
        "off": {"toggle": "on"},
        "on":  {"toggle": "off", "_enter": lambda machine, meta: None},
    })
    graph.resolve("on", "surge")   # → Action(TARGET, "blown")
"""

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Dict, FrozenSet, Optional

from eventfsm.types import LIFECYCLE_HOOKS, Action, StateId, is_state_id, state_name

logger = logging.getLogger(__name__)

WILDCARD = "*"


class StateGraph:
    """
    Compiled, immutable state graph.

    Bindings are converted to ``Action`` values once at construction time, so
    later changes to the caller's dictionaries have no effect on dispatch.
    """

    def __init__(self, definition: Mapping):
        if not isinstance(definition, Mapping):
            raise TypeError(
                f"State definition must be a mapping, got {type(definition).__name__}"
            )

        nodes: Dict[StateId, Mapping] = {}
        wildcard: Mapping = MappingProxyType({})

        for state, node in definition.items():
            compiled = self._compile_node(state, node)
            if state == WILDCARD:
                wildcard = compiled
            else:
                nodes[state] = compiled

        self._nodes = MappingProxyType(nodes)
        self._wildcard = wildcard

        logger.debug(
            f"Compiled state graph — {len(self._nodes)} states, "
            f"{len(self._wildcard)} wildcard bindings"
        )

    @staticmethod
    def _compile_node(state, node) -> Mapping:
        """Validate one node and convert its bindings. Raises ValueError on problems."""
        if not is_state_id(state):
            raise ValueError(f"State id {state!r} must be a str or Enum member")
        if not isinstance(node, Mapping):
            raise ValueError(
                f"Node for state {state_name(state)} must be a mapping, "
                f"got {type(node).__name__}"
            )

        compiled = {}
        for key, binding in node.items():
            if not isinstance(key, str):
                raise ValueError(
                    f"Event name {key!r} in state {state_name(state)} must be a str"
                )
            # None is the same as leaving the event unbound
            if binding is None:
                continue
            compiled[key] = Action.from_binding(binding)
        return MappingProxyType(compiled)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, state: StateId, key: str) -> Optional[Action]:
        """
        Find the binding for ``key`` while in ``state``.

        Checks the state's own node first, then the wildcard node.

        Returns:
            The Action, or None if neither node binds ``key``.
        """
        node = self._nodes.get(state)
        if node is not None and key in node:
            return node[key]
        return self._wildcard.get(key)

    @property
    def states(self) -> FrozenSet[StateId]:
        """Declared state ids, wildcard excluded."""
        return frozenset(self._nodes)

    @property
    def has_wildcard(self) -> bool:
        return bool(self._wildcard)

    def events(self, state: StateId) -> FrozenSet[str]:
        """Event names dispatchable from ``state``, lifecycle hooks excluded."""
        keys = set(self._wildcard)
        keys.update(self._nodes.get(state, ()))
        return frozenset(keys - LIFECYCLE_HOOKS)

    def __contains__(self, state) -> bool:
        return state in self._nodes

    def __repr__(self) -> str:
        names = ", ".join(sorted(state_name(s) for s in self._nodes))
        return f"StateGraph([{names}])"
