"""Bridge between a host control loop and a dynamically loaded RL policy module."""

from .agent import AgentState, RLAgent
from .binding import BindingSlot
from .config import AgentConfig, FlatInput, ImageInput
from .errors import (
    ActionRangeError,
    AgentStateError,
    BridgeError,
    CheckpointIOError,
    MarshalError,
    ModuleLoadError,
    PolicyModuleNotFoundError,
    ReentrantCallError,
    RequiredFunctionMissingError,
    RuntimeInitError,
    RuntimeInternalError,
    ShapeMismatchError,
    StepError,
)
from .runtime import ensure_loaded, interpreter_ready

__all__ = [
    "RLAgent",
    "AgentState",
    "AgentConfig",
    "BindingSlot",
    "FlatInput",
    "ImageInput",
    "ensure_loaded",
    "interpreter_ready",
    "BridgeError",
    "RuntimeInitError",
    "ModuleLoadError",
    "PolicyModuleNotFoundError",
    "RequiredFunctionMissingError",
    "AgentStateError",
    "ReentrantCallError",
    "StepError",
    "MarshalError",
    "ShapeMismatchError",
    "ActionRangeError",
    "CheckpointIOError",
    "RuntimeInternalError",
]
