"""Q-networks for discrete action values."""

from __future__ import annotations

from typing import Sequence

import torch
from torch import nn


class QNetwork(nn.Module):
    def __init__(self, input_dim: int, hidden_dim: int, num_actions: int):
        super().__init__()
        self.net = nn.Sequential(
            nn.Linear(input_dim, hidden_dim),
            nn.ReLU(),
            nn.Linear(hidden_dim, hidden_dim),
            nn.ReLU(),
            nn.Linear(hidden_dim, num_actions),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.net(x)


class ConvQNetwork(nn.Module):
    """Small conv stack for channels-first image states of any size."""

    def __init__(self, channels: int, hidden_dim: int, num_actions: int):
        super().__init__()
        self.features = nn.Sequential(
            nn.Conv2d(channels, 16, kernel_size=3, padding=1),
            nn.ReLU(),
            nn.Conv2d(16, 32, kernel_size=3, stride=2, padding=1),
            nn.ReLU(),
            nn.AdaptiveAvgPool2d((4, 4)),
            nn.Flatten(),
        )
        self.head = nn.Sequential(
            nn.Linear(32 * 4 * 4, hidden_dim),
            nn.ReLU(),
            nn.Linear(hidden_dim, num_actions),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.head(self.features(x))


def build_q_network(input_shape: Sequence[int], hidden_dim: int, num_actions: int) -> nn.Module:
    """MLP for flat states, conv net for (C, H, W) states."""
    if len(input_shape) == 1:
        return QNetwork(input_shape[0], hidden_dim, num_actions)
    if len(input_shape) == 3:
        return ConvQNetwork(input_shape[0], hidden_dim, num_actions)
    raise ValueError(f"unsupported input shape {tuple(input_shape)}")
