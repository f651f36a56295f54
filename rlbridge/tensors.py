"""Marshalling between host buffers and runtime tensors.

Host buffers are anything numpy can turn into a float array (lists, arrays,
tensors). Runtime tensors are float32, contiguous and live on the agent's
device. Every conversion copies, so the host may reuse its buffer as soon as a
call returns.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np
import torch

from .backend import TorchBackend
from .errors import ActionRangeError, MarshalError, ShapeMismatchError

Shape = Tuple[int, ...]


@dataclass
class ActionResult:
    index: int
    raw: np.ndarray


def _numel(shape: Shape) -> int:
    return int(np.prod(shape)) if shape else 1


def _host_array(buffer: Any, backend: TorchBackend) -> np.ndarray:
    try:
        return backend.as_host_array(buffer)
    except (TypeError, ValueError) as exc:
        raise MarshalError(f"state buffer is not numeric: {exc}") from exc


def _check_shape(arr: np.ndarray, shape: Shape) -> np.ndarray:
    """Accept an array of exactly ``shape`` or a flat buffer of the right length.

    Flat targets also take any host layout with the right number of values,
    read row-major.
    """
    if arr.shape == shape:
        return arr
    if (arr.ndim == 1 or len(shape) == 1) and arr.size == _numel(shape):
        return arr.reshape(shape)
    raise ShapeMismatchError(shape, tuple(arr.shape))


def to_runtime(buffer: Any, shape: Shape, backend: Optional[TorchBackend] = None) -> torch.Tensor:
    """Copy a host buffer into a fresh runtime tensor of ``shape``."""
    backend = backend or TorchBackend("cpu")
    arr = _check_shape(_host_array(buffer, backend), tuple(shape))
    return torch.from_numpy(np.ascontiguousarray(arr)).to(backend.device)


def from_runtime(result: Any, num_actions: int) -> ActionResult:
    """Reduce whatever the action function returned to a discrete index.

    A scalar is taken as the index. A tensor or sequence with ``num_actions``
    elements is read as a distribution (or Q-values) and reduced with argmax,
    so with a single action ``[3.2]`` picks action 0. Other one-element
    sequences are read as the index.
    """
    if result is None:
        raise ActionRangeError(result, num_actions, "no action")
    if isinstance(result, (bool, np.bool_)):
        raise ActionRangeError(result, num_actions, "boolean is not an action index")
    try:
        if isinstance(result, torch.Tensor):
            arr = result.detach().to("cpu", dtype=torch.float64).numpy().copy()
        else:
            arr = np.array(result, dtype=np.float64, copy=True)
    except (TypeError, ValueError) as exc:
        raise ActionRangeError(result, num_actions, "not numeric") from exc
    raw = arr.reshape(-1)

    if arr.ndim > 0 and raw.size == num_actions:
        if not np.all(np.isfinite(raw)):
            raise ActionRangeError(raw.tolist(), num_actions, "non-finite distribution")
        index = int(np.argmax(raw))
    elif raw.size == 1:
        value = float(raw[0])
        if not math.isfinite(value) or value != int(value):
            raise ActionRangeError(value, num_actions, "not an integral index")
        index = int(value)
    else:
        raise ActionRangeError(tuple(raw.shape), num_actions, f"{raw.size} values cannot map to an index")

    if not 0 <= index < num_actions:
        raise ActionRangeError(index, num_actions)
    return ActionResult(index=index, raw=raw.astype(np.float32))


class ActionTensor:
    """Reusable state buffer handed to the policy's action function."""

    def __init__(self, shape: Shape, backend: TorchBackend):
        self.shape = tuple(shape)
        self.backend = backend
        self.state = backend.zeros(self.shape)

    def load(self, buffer: Any) -> torch.Tensor:
        """Validate, then overwrite the state in place."""
        arr = _check_shape(_host_array(buffer, self.backend), self.shape)
        with torch.no_grad():
            self.state.copy_(torch.from_numpy(np.ascontiguousarray(arr)))
        return self.state


class RewardTensor:
    """Reusable ``[reward, end_episode]`` buffer."""

    def __init__(self, backend: TorchBackend):
        self.backend = backend
        self.data = backend.zeros((2,))

    def pack(self, reward: float, end_episode: bool) -> torch.Tensor:
        try:
            value = float(reward)
        except (TypeError, ValueError) as exc:
            raise MarshalError(f"reward is not numeric: {reward!r}") from exc
        if not math.isfinite(value):
            raise MarshalError(f"reward must be finite, got {value}")
        self.data[0] = value
        self.data[1] = 1.0 if end_episode else 0.0
        return self.data

    @property
    def reward(self) -> float:
        return float(self.data[0].item())

    @property
    def end_episode(self) -> bool:
        return bool(self.data[1].item() != 0.0)
