"""Exception hierarchy for the agent-runtime bridge."""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for everything the bridge raises."""


class RuntimeInitError(BridgeError):
    """The embedded runtime failed to start. Fatal for the process."""


class ModuleLoadError(BridgeError):
    """A policy module could not be loaded or bound."""


class PolicyModuleNotFoundError(ModuleLoadError):
    """The module name did not resolve to anything importable."""


class RequiredFunctionMissingError(ModuleLoadError):
    """A mandatory entry point (action or reward) is missing from the module."""

    def __init__(self, module: str, function: str):
        super().__init__(f"module {module!r} has no callable {function!r}")
        self.module = module
        self.function = function


class AgentStateError(BridgeError):
    """Operation issued in the wrong agent state."""


class ReentrantCallError(AgentStateError):
    """A bridge call was issued while another call on the same agent was in flight."""


class StepError(BridgeError):
    """Recoverable per-call failure; the agent stays usable."""


class MarshalError(StepError):
    """A host value could not be converted into a runtime tensor."""


class ShapeMismatchError(MarshalError):
    def __init__(self, expected: tuple[int, ...], got: tuple[int, ...]):
        super().__init__(f"expected state of shape {expected} ({_numel(expected)} values), got {got}")
        self.expected = expected
        self.got = got


class ActionRangeError(StepError):
    def __init__(self, value: Any, num_actions: int, reason: str = "outside action range"):
        super().__init__(f"policy returned {value!r}: {reason} (valid range [0, {num_actions}))")
        self.value = value
        self.num_actions = num_actions


class CheckpointIOError(StepError):
    """Checkpoint file missing, unreadable or unwritable."""


class RuntimeInternalError(StepError):
    """The policy module raised while handling a bridge call."""


def _numel(shape: tuple[int, ...]) -> int:
    n = 1
    for dim in shape:
        n *= dim
    return n
