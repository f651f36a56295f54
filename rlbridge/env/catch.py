"""Catch: a falling ball and a paddle, the classic bridge smoke-test game."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np

Action = int


@dataclass
class CatchConfig:
    """Configuration for the catch game."""

    width: int = 8
    height: int = 8
    paddle_width: int = 1
    seed: Optional[int] = None
    catch_reward: float = 1.0
    miss_reward: float = -1.0
    step_penalty: float = 0.0

    def __post_init__(self) -> None:
        if self.width < 3 or self.height < 3:
            raise ValueError("Board must be at least 3x3.")
        if not 0 < self.paddle_width < self.width:
            raise ValueError("paddle_width must be in [1, width).")


class CatchEnv:
    """Ball drops one row per step; the paddle on the bottom row moves sideways.

    Observations are float32 arrays of shape ``(1, height, width)`` with the
    ball and paddle cells set to 1.
    """

    ACTIONS: Sequence[str] = ("stay", "left", "right")

    def __init__(self, config: CatchConfig):
        self.cfg = config
        self.rng = random.Random(config.seed)
        self.width = config.width
        self.height = config.height
        self.ball: Tuple[int, int] = (0, 0)
        self.paddle_x: int = 0
        self.steps: int = 0
        self.reset()

    def reset(self) -> np.ndarray:
        self.steps = 0
        self.ball = (self.rng.randrange(self.width), 0)
        self.paddle_x = (self.width - self.cfg.paddle_width) // 2
        return self._observe()

    def step(self, action: Action) -> Tuple[np.ndarray, float, bool, Dict[str, object]]:
        """Advance one step."""
        if not 0 <= action < len(self.ACTIONS):
            raise ValueError(f"Invalid action {action}. Valid: 0..{len(self.ACTIONS) - 1}")
        self.steps += 1
        dx = {0: 0, 1: -1, 2: 1}[action]
        self.paddle_x = max(0, min(self.width - self.cfg.paddle_width, self.paddle_x + dx))
        bx, by = self.ball
        self.ball = (bx, by + 1)

        reward = self.cfg.step_penalty
        done = False
        info: Dict[str, object] = {}
        if self.ball[1] >= self.height - 1:
            done = True
            caught = self.paddle_x <= bx < self.paddle_x + self.cfg.paddle_width
            info["caught"] = caught
            reward += self.cfg.catch_reward if caught else self.cfg.miss_reward
        return self._observe(), reward, done, info

    def _observe(self) -> np.ndarray:
        board = np.zeros((1, self.height, self.width), dtype=np.float32)
        bx, by = self.ball
        board[0, min(by, self.height - 1), bx] = 1.0
        board[0, self.height - 1, self.paddle_x : self.paddle_x + self.cfg.paddle_width] = 1.0
        return board

    @property
    def num_actions(self) -> int:
        return len(self.ACTIONS)
