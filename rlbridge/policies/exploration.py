"""Epsilon-greedy action selection over Q-values."""

from __future__ import annotations

import math
import random

import torch


class EpsilonSchedule:
    """Exponential decay from ``start`` to ``end`` with time constant ``decay`` steps."""

    def __init__(self, start: float, end: float, decay: float):
        self.start = start
        self.end = end
        self.decay = decay

    def value(self, step: int) -> float:
        if self.decay <= 0:
            return self.end
        return self.end + (self.start - self.end) * math.exp(-step / self.decay)


class EpsilonGreedyPolicy:
    """Chooses action indices based on Q-values with epsilon exploration."""

    def __init__(self, num_actions: int, rng: random.Random | None = None) -> None:
        self.num_actions = num_actions
        self.rng = rng or random.Random()

    def select(self, q_values: torch.Tensor, epsilon: float) -> int:
        """q_values shape [num_actions]."""
        if epsilon > 0 and self.rng.random() < epsilon:
            return self.rng.randrange(self.num_actions)
        return int(torch.argmax(q_values).item())
