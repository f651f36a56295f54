"""Replay buffer with prioritized sampling."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List

import torch


@dataclass
class Transition:
    state: torch.Tensor
    action: int
    reward: float
    next_state: torch.Tensor
    done: bool
    priority: float = 1.0


class ReplayBuffer:
    """Ring buffer with priority-aware sampling."""

    def __init__(self, capacity: int = 10000, seed: int | None = None) -> None:
        self.capacity = capacity
        self.storage: List[Transition] = []
        self.priorities: List[float] = []
        self.position = 0
        self.rng = random.Random(seed)

    def __len__(self) -> int:
        return len(self.storage)

    def add(self, transition: Transition) -> None:
        """Store a transition, overwriting old entries when full."""
        priority = max(transition.priority, 1e-3)
        if len(self.storage) < self.capacity:
            self.storage.append(transition)
            self.priorities.append(priority)
        else:
            self.storage[self.position] = transition
            self.priorities[self.position] = priority
        self.position = (self.position + 1) % self.capacity

    def sample_prioritized(
        self, batch_size: int, alpha: float = 0.6, beta: float = 0.4
    ) -> tuple[List[Transition], List[float], List[int]]:
        """Sample transitions proportionally to priority."""
        if not self.storage:
            return [], [], []
        scaled = [p**alpha for p in self.priorities]
        total = sum(scaled)
        probs = [s / total for s in scaled]
        k = min(batch_size, len(self.storage))
        indices = self.rng.choices(range(len(self.storage)), weights=probs, k=k)
        samples = [self.storage[i] for i in indices]
        if beta > 0:
            weights = [(1 / (len(self.storage) * probs[i])) ** beta for i in indices]
            max_w = max(weights) if weights else 1.0
            weights = [w / max_w for w in weights]
        else:
            weights = [1.0] * k
        return samples, weights, indices

    def update_priorities(self, indices: List[int], priorities: List[float]) -> None:
        for idx, prio in zip(indices, priorities):
            if 0 <= idx < len(self.priorities):
                self.priorities[idx] = max(prio, 1e-3)
