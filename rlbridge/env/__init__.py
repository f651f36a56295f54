"""Host-side environments for driving the bridge."""

from .catch import CatchConfig, CatchEnv

__all__ = ["CatchConfig", "CatchEnv"]
