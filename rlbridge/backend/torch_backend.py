"""Minimal torch backend shim for tensors and device handling."""

from __future__ import annotations

from typing import Any, Iterable

import numpy as np
import torch


def get_best_device() -> str:
    """Return best available device: cuda > mps > cpu."""
    if torch.cuda.is_available():
        return "cuda"
    if torch.backends.mps.is_available():
        return "mps"
    return "cpu"


class TorchBackend:
    """Owns the device that bridge tensors live on."""

    def __init__(self, device: str = "auto"):
        if device == "auto":
            device = get_best_device()
        self.device = torch.device(device)

    def zeros(self, shape: Iterable[int], dtype: torch.dtype = torch.float32) -> torch.Tensor:
        return torch.zeros(tuple(shape), dtype=dtype, device=self.device)

    def as_host_array(self, x: Any) -> np.ndarray:
        """Copy a host buffer or tensor into a float32 numpy array (never a view)."""
        if isinstance(x, torch.Tensor):
            return x.detach().to("cpu", dtype=self.float_dtype).numpy().copy()
        return np.array(x, dtype=np.float32, copy=True)

    @property
    def float_dtype(self) -> torch.dtype:
        return torch.float32
