"""Reinforcement-learning agent backed by a dynamically loaded policy module.

The host loop calls :meth:`RLAgent.next_action` with the current state and
:meth:`RLAgent.next_reward` with the reward earned by that action. How the
policy picks actions, learns and persists itself is up to the module.

The agent is not thread-safe. All calls into one process-wide runtime must be
serialized by the caller (one thread, or one worker that owns every agent).
"""

from __future__ import annotations

import contextlib
import dataclasses
import enum
import logging
import os
from types import ModuleType
from typing import Any, Callable, Iterator, Optional, Sequence, Union

from .backend import TorchBackend
from .binding import BindingSlot, BindingTable
from .config import (
    DEFAULT_LOAD_MODEL,
    DEFAULT_NEXT_ACTION,
    DEFAULT_NEXT_REWARD,
    DEFAULT_RL_MODULE,
    DEFAULT_SAVE_MODEL,
    AgentConfig,
    FlatInput,
    ImageInput,
    InputShape,
)
from .errors import (
    AgentStateError,
    BridgeError,
    CheckpointIOError,
    ReentrantCallError,
    RuntimeInitError,
    RuntimeInternalError,
    StepError,
)
from .runtime import EmbeddedRuntime, ensure_loaded, interpreter_ready
from .tensors import ActionTensor, RewardTensor, from_runtime

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class AgentState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONSTRUCTED = "constructed"
    BOUND = "bound"
    READY = "ready"
    DESTROYED = "destroyed"


class RLAgent:
    """Bridge between a host control loop and one policy module."""

    def __init__(self, config: AgentConfig, runtime: Optional[EmbeddedRuntime] = None):
        self.state = AgentState.UNINITIALIZED
        self.config = config
        self.last_error: Optional[StepError] = None
        self._bindings: Optional[BindingTable] = None
        self._in_call = False

        self._runtime = runtime or ensure_loaded()
        try:
            self.backend = TorchBackend(device=config.device)
            self._action_tensor: Optional[ActionTensor] = ActionTensor(config.input.shape, self.backend)
            self._reward_tensor: Optional[RewardTensor] = RewardTensor(self.backend)
        except (RuntimeError, AssertionError) as exc:
            raise RuntimeInitError(f"cannot allocate tensors on device {config.device!r}: {exc}") from exc
        self.state = AgentState.CONSTRUCTED

        self._bindings = BindingTable.resolve(
            self._runtime,
            config.module,
            config.function_names,
            argv=config.module_argv(),
            search_paths=config.search_paths,
        )
        self.state = AgentState.BOUND
        # both mandatory slots are guaranteed by resolve()
        self.state = AgentState.READY
        logger.info(
            "agent ready: module=%s input=%s actions=%d device=%s",
            config.module,
            config.input.shape,
            config.num_actions,
            self.backend.device,
        )

    @classmethod
    def from_config(cls, config: AgentConfig) -> Optional["RLAgent"]:
        """Construct an agent, or log the failure and return None."""
        try:
            return cls(config)
        except BridgeError as exc:
            logger.error("failed to create agent for module %r: %s", config.module, exc)
            return None

    @classmethod
    def create(
        cls,
        num_inputs: int,
        num_actions: int,
        module: str = DEFAULT_RL_MODULE,
        next_action: str = DEFAULT_NEXT_ACTION,
        next_reward: str = DEFAULT_NEXT_REWARD,
        load_model: str = DEFAULT_LOAD_MODEL,
        save_model: str = DEFAULT_SAVE_MODEL,
        **kwargs: Any,
    ) -> Optional["RLAgent"]:
        """Agent over a flat state vector of ``num_inputs`` floats."""
        return cls._create(lambda: FlatInput(num_inputs), num_actions, module, next_action, next_reward, load_model, save_model, **kwargs)

    @classmethod
    def create_image(
        cls,
        width: int,
        height: int,
        channels: int,
        num_actions: int,
        module: str = DEFAULT_RL_MODULE,
        next_action: str = DEFAULT_NEXT_ACTION,
        next_reward: str = DEFAULT_NEXT_REWARD,
        load_model: str = DEFAULT_LOAD_MODEL,
        save_model: str = DEFAULT_SAVE_MODEL,
        **kwargs: Any,
    ) -> Optional["RLAgent"]:
        """Agent over a ``channels x height x width`` image state."""
        return cls._create(
            lambda: ImageInput(width, height, channels), num_actions, module, next_action, next_reward, load_model, save_model, **kwargs
        )

    @classmethod
    def _create(
        cls,
        make_shape: Callable[[], InputShape],
        num_actions: int,
        module: str,
        next_action: str,
        next_reward: str,
        load_model: str,
        save_model: str,
        **kwargs: Any,
    ) -> Optional["RLAgent"]:
        try:
            config = AgentConfig(
                input=make_shape(),
                num_actions=num_actions,
                module=module,
                next_action=next_action,
                next_reward=next_reward,
                load_model=load_model,
                save_model=save_model,
                **kwargs,
            )
        except (TypeError, ValueError) as exc:
            logger.error("invalid agent configuration: %s", exc)
            return None
        return cls.from_config(config)

    # -- introspection -------------------------------------------------

    @property
    def ready(self) -> bool:
        return self.state is AgentState.READY

    @property
    def interpreter_ready(self) -> bool:
        return interpreter_ready()

    @property
    def module_name(self) -> Optional[str]:
        return self._bindings.module_name if self._bindings is not None else None

    @property
    def policy_module(self) -> Optional[ModuleType]:
        """The loaded policy module, for inspection by the host."""
        return self._bindings.module if self._bindings is not None else None

    @property
    def num_actions(self) -> int:
        return self.config.num_actions

    @property
    def input_shape(self) -> tuple:
        return self.config.input.shape

    @property
    def supports_checkpoints(self) -> bool:
        return self._bindings is not None and (
            self._bindings.is_bound(BindingSlot.LOAD) or self._bindings.is_bound(BindingSlot.SAVE)
        )

    def is_bound(self, slot: BindingSlot) -> bool:
        return self._bindings is not None and self._bindings.is_bound(slot)

    # -- step protocol -------------------------------------------------

    def next_action(self, state: Any) -> int:
        """Infer the action index for ``state``.

        Raises ShapeMismatchError/MarshalError for a bad state buffer,
        ActionRangeError for an unusable result and RuntimeInternalError when
        the policy raises. The agent stays ready in every case.
        """
        with self._call():
            try:
                tensor = self._action_tensor.load(state)
                try:
                    result = self._bindings.call(BindingSlot.ACTION, tensor)
                except (Exception, SystemExit) as exc:
                    raise RuntimeInternalError(
                        f"{self.module_name}.{self._bindings.name_of(BindingSlot.ACTION)} raised {exc!r}"
                    ) from exc
                action = from_runtime(result, self.config.num_actions).index
            except StepError as exc:
                self.last_error = exc
                raise
        self.last_error = None
        return action

    def next_reward(self, reward: float, end_episode: bool) -> bool:
        """Deliver the reward for the last action; True if the policy accepted it."""
        with self._call():
            try:
                self._reward_tensor.pack(reward, end_episode)
            except StepError as exc:
                return self._fail(exc)
            try:
                self._bindings.call(
                    BindingSlot.REWARD,
                    self._action_tensor.state,
                    self._reward_tensor.reward,
                    self._reward_tensor.end_episode,
                )
            except (Exception, SystemExit) as exc:
                err = RuntimeInternalError(f"{self.module_name}.{self._bindings.name_of(BindingSlot.REWARD)} raised {exc!r}")
                err.__cause__ = exc
                return self._fail(err)
        self.last_error = None
        return True

    # -- checkpoints ---------------------------------------------------

    def load_checkpoint(self, path: PathLike) -> bool:
        return self._checkpoint(BindingSlot.LOAD, path)

    def save_checkpoint(self, path: PathLike) -> bool:
        return self._checkpoint(BindingSlot.SAVE, path)

    def _checkpoint(self, slot: BindingSlot, path: PathLike) -> bool:
        with self._call():
            if not self._bindings.is_bound(slot):
                logger.info("%s does not implement %s; checkpoint skipped", self.module_name, self._bindings.name_of(slot))
                self.last_error = None
                return False
            name = f"{self.module_name}.{self._bindings.name_of(slot)}"
            target = os.fspath(path)
            try:
                ok = self._bindings.call(slot, target)
            except CheckpointIOError as exc:
                return self._fail(exc)
            except OSError as exc:
                err = CheckpointIOError(f"{name}({target!r}): {exc}")
                err.__cause__ = exc
                return self._fail(err)
            except (Exception, SystemExit) as exc:
                err = RuntimeInternalError(f"{name}({target!r}) raised {exc!r}")
                err.__cause__ = exc
                return self._fail(err)
            if ok is False:
                return self._fail(CheckpointIOError(f"{name}({target!r}) reported failure"))
        self.last_error = None
        return True

    # -- module management ---------------------------------------------

    def load_module(
        self,
        module: str,
        argv: Optional[Sequence[str]] = None,
        function_names: Optional[Sequence[str]] = None,
    ) -> None:
        """Swap in another policy module.

        The new module is fully resolved before anything is replaced, so on
        failure the previous bindings keep working. ``argv`` replaces the
        configured extra arguments for this load.
        """
        names = tuple(function_names or self.config.function_names)
        with self._call():
            table = BindingTable.resolve(
                self._runtime,
                module,
                names,
                argv=self.config.module_argv(module, argv),
                search_paths=self.config.search_paths,
            )
            old, self._bindings = self._bindings, table
            self.config = dataclasses.replace(
                self.config,
                module=module,
                next_action=names[0],
                next_reward=names[1],
                load_model=names[2],
                save_model=names[3],
                extra_args=self.config.extra_args if argv is None else tuple(argv),
            )
            if old is not None:
                old.release()
        logger.info("agent rebound to module %s", module)

    def close(self) -> None:
        """Release module and tensors. The runtime itself stays up."""
        if self.state is AgentState.DESTROYED:
            return
        if self._bindings is not None:
            self._bindings.release()
        self._bindings = None
        self._action_tensor = None
        self._reward_tensor = None
        self.state = AgentState.DESTROYED

    def __enter__(self) -> "RLAgent":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RLAgent(module={self.module_name!r}, input={self.config.input}, actions={self.config.num_actions}, state={self.state.value})"

    # -- internals -----------------------------------------------------

    @contextlib.contextmanager
    def _call(self) -> Iterator[None]:
        if self.state is not AgentState.READY:
            raise AgentStateError(f"agent is {self.state.value}, not ready")
        if self._in_call:
            raise ReentrantCallError("bridge call issued while another call on this agent is in flight")
        self._in_call = True
        try:
            yield
        finally:
            self._in_call = False

    def _fail(self, err: StepError) -> bool:
        self.last_error = err
        logger.warning("%s", err)
        return False
