"""Agent and run-level configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, Union

import torch

DEFAULT_RL_MODULE = "DQN"
DEFAULT_NEXT_ACTION = "next_action"
DEFAULT_NEXT_REWARD = "next_reward"
DEFAULT_LOAD_MODEL = "load_model"
DEFAULT_SAVE_MODEL = "save_model"


@dataclass(frozen=True)
class FlatInput:
    """State is a flat vector of ``num_inputs`` floats."""

    num_inputs: int

    def __post_init__(self) -> None:
        if self.num_inputs <= 0:
            raise ValueError("num_inputs must be positive.")

    @property
    def shape(self) -> Tuple[int, ...]:
        return (self.num_inputs,)

    @property
    def dims(self) -> Tuple[int, int, int]:
        """(width, height, channels) as reported to the policy module."""
        return (self.num_inputs, 1, 1)


@dataclass(frozen=True)
class ImageInput:
    """State is an image; the tensor is laid out channels-first."""

    width: int
    height: int
    channels: int = 1

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0 or self.channels <= 0:
            raise ValueError("width, height and channels must be positive.")

    @property
    def shape(self) -> Tuple[int, ...]:
        return (self.channels, self.height, self.width)

    @property
    def dims(self) -> Tuple[int, int, int]:
        return (self.width, self.height, self.channels)


InputShape = Union[FlatInput, ImageInput]


@dataclass
class AgentConfig:
    input: InputShape
    num_actions: int
    module: str = DEFAULT_RL_MODULE
    next_action: str = DEFAULT_NEXT_ACTION
    next_reward: str = DEFAULT_NEXT_REWARD
    load_model: str = DEFAULT_LOAD_MODEL
    save_model: str = DEFAULT_SAVE_MODEL
    extra_args: Sequence[str] = ()
    search_paths: Sequence[str] = ()
    device: str = "cpu"  # "auto", "cuda", "mps", or "cpu"

    def __post_init__(self) -> None:
        if not isinstance(self.input, (FlatInput, ImageInput)):
            raise TypeError(f"input must be FlatInput or ImageInput, got {type(self.input).__name__}")
        if self.num_actions <= 0:
            raise ValueError("num_actions must be positive.")
        if not self.module:
            raise ValueError("module name must not be empty.")
        if self.device != "auto":
            try:
                torch.device(self.device)
            except (RuntimeError, TypeError) as exc:
                raise ValueError(f"invalid device {self.device!r}: {exc}") from exc

    @property
    def function_names(self) -> Tuple[str, str, str, str]:
        return (self.next_action, self.next_reward, self.load_model, self.save_model)

    def module_argv(self, module: Optional[str] = None, extra_args: Optional[Sequence[str]] = None) -> list[str]:
        """Build the argv a policy module sees while it is being imported."""
        width, height, channels = self.input.dims
        argv = [
            module or self.module,
            f"--input_width={width}",
            f"--input_height={height}",
            f"--input_channels={channels}",
            f"--num_actions={self.num_actions}",
        ]
        argv.extend(self.extra_args if extra_args is None else extra_args)
        return argv


@dataclass
class RunConfig:
    seed: int = 42
    num_episodes: int = 200
    env_width: int = 8
    env_height: int = 8
    image_input: bool = False
    module: str = DEFAULT_RL_MODULE
    module_args: Tuple[str, ...] = field(default_factory=tuple)
    device: str = "cpu"
    fallback_action: int = 0  # catch: "stay"
    log_interval_episodes: int = 10
    load_checkpoint: Optional[str] = None
    save_checkpoint: Optional[str] = None
    wandb_mode: str = "disabled"
    wandb_project: str = "rlbridge"
    verbosity: int = 1
