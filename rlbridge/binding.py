"""Resolution of the four policy entry points into typed slots."""

from __future__ import annotations

import enum
import inspect
import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable, Dict, Optional, Sequence

from .errors import RequiredFunctionMissingError
from .runtime import EmbeddedRuntime

logger = logging.getLogger(__name__)

Adapter = Callable[..., tuple]


class BindingSlot(enum.Enum):
    ACTION = 0
    REWARD = 1
    LOAD = 2
    SAVE = 3

    @property
    def required(self) -> bool:
        return self in (BindingSlot.ACTION, BindingSlot.REWARD)


def _positional_arity(fn: Callable[..., Any]) -> Optional[int]:
    """Number of positional parameters, or None when it cannot be known."""
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in sig.parameters.values():
        if param.kind == param.VAR_POSITIONAL:
            return None
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


def _state_args(state: Any) -> tuple:
    return (state,)


def _reward_args(state: Any, reward: float, end_episode: bool) -> tuple:
    return (state, reward, end_episode)


def _reward_args_stateless(state: Any, reward: float, end_episode: bool) -> tuple:
    return (reward, end_episode)


def _path_args(path: str) -> tuple:
    return (path,)


def make_adapter(slot: BindingSlot, fn: Callable[..., Any]) -> Adapter:
    if slot is BindingSlot.ACTION:
        return _state_args
    if slot is BindingSlot.REWARD:
        # older policies take only (reward, end_episode)
        return _reward_args_stateless if _positional_arity(fn) == 2 else _reward_args
    return _path_args


@dataclass
class Binding:
    slot: BindingSlot
    name: str
    handle: Optional[Callable[..., Any]] = None
    adapter: Optional[Adapter] = None

    @property
    def bound(self) -> bool:
        return self.handle is not None


class BindingTable:
    """Owns a loaded policy module and its resolved entry points."""

    def __init__(self, module_name: str, module: ModuleType, bindings: Dict[BindingSlot, Binding]):
        self.module_name = module_name
        self.module: Optional[ModuleType] = module
        self.bindings = bindings

    @classmethod
    def resolve(
        cls,
        runtime: EmbeddedRuntime,
        module_name: str,
        function_names: Sequence[str],
        argv: Optional[Sequence[str]] = None,
        search_paths: Sequence[str] = (),
    ) -> "BindingTable":
        """Load ``module_name`` and bind one function per slot, in slot order."""
        if len(function_names) != len(BindingSlot):
            raise ValueError(f"expected {len(BindingSlot)} function names, got {len(function_names)}")
        module = runtime.import_module(module_name, argv=argv, search_paths=search_paths)

        bindings: Dict[BindingSlot, Binding] = {}
        for slot, name in zip(BindingSlot, function_names):
            fn = getattr(module, name, None) if name else None
            if fn is not None and not callable(fn):
                logger.warning("%s.%s is not callable; %s slot left unbound", module_name, name, slot.name)
                fn = None
            if fn is None:
                if slot.required:
                    raise RequiredFunctionMissingError(module_name, name)
                logger.info("%s.%s not found; %s disabled", module_name, name, slot.name.lower())
                bindings[slot] = Binding(slot, name)
                continue
            bindings[slot] = Binding(slot, name, fn, make_adapter(slot, fn))
        return cls(module_name, module, bindings)

    def is_bound(self, slot: BindingSlot) -> bool:
        binding = self.bindings.get(slot)
        return binding is not None and binding.bound

    def name_of(self, slot: BindingSlot) -> str:
        return self.bindings[slot].name

    def call(self, slot: BindingSlot, *args: Any) -> Any:
        binding = self.bindings[slot]
        if binding.handle is None or binding.adapter is None:
            raise LookupError(f"{slot.name} slot is not bound")
        return binding.handle(*binding.adapter(*args))

    def release(self) -> None:
        for binding in self.bindings.values():
            binding.handle = None
            binding.adapter = None
        self.module = None
