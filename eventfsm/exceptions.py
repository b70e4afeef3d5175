"""Errors raised by the event dispatch runtime."""


class InvalidSubscribeArgument(TypeError):
    """
    ``subscribe()`` was called with something other than a single callable
    and no ``subscribe`` action is bound to absorb the call.
    """


class TransitionCycleError(RuntimeError):
    """
    A chain of automatic transitions exceeded the machine's depth limit.

    Attributes:
        state: State the machine had reached when the limit was hit.
        depth: The limit that was exceeded.
    """

    def __init__(self, state, depth: int):
        self.state = state
        self.depth = depth
        super().__init__(
            f"Automatic transitions did not settle after {depth} hops "
            f"(last state: {state!r})"
        )
