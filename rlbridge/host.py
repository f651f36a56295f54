"""Host control loop that drives an environment through an RLAgent."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

import numpy as np
import wandb

from .agent import RLAgent
from .errors import ActionRangeError, MarshalError, RuntimeInternalError

logger = logging.getLogger(__name__)


@dataclass
class EpisodeMetrics:
    steps: int = 0
    reward: float = 0.0
    action_errors: int = 0
    reward_errors: int = 0
    success: bool = False


class HostLoop:
    """Runs episodes: observe, ask the agent for an action, step, deliver the reward.

    When the agent cannot produce a usable action the loop substitutes
    ``fallback_action`` and keeps going.
    """

    def __init__(self, env: Any, agent: RLAgent, fallback_action: int = 0, max_steps: Optional[int] = None):
        if not 0 <= fallback_action < agent.num_actions:
            raise ValueError(f"fallback_action {fallback_action} outside [0, {agent.num_actions})")
        self.env = env
        self.agent = agent
        self.fallback_action = fallback_action
        self.max_steps = max_steps
        self.global_step = 0
        self.history: List[EpisodeMetrics] = []

    def choose_action(self, obs: Any, metrics: EpisodeMetrics) -> int:
        try:
            return self.agent.next_action(obs)
        except (ActionRangeError, MarshalError, RuntimeInternalError) as exc:
            metrics.action_errors += 1
            logger.warning("step %d: %s; using fallback action %d", self.global_step, exc, self.fallback_action)
            return self.fallback_action

    def run_episode(self) -> EpisodeMetrics:
        """Roll out a single episode."""
        metrics = EpisodeMetrics()
        obs = self.env.reset()
        done = False
        while not done:
            action = self.choose_action(obs, metrics)
            obs, reward, done, info = self.env.step(action)
            metrics.steps += 1
            metrics.reward += reward
            self.global_step += 1
            if self.max_steps is not None and metrics.steps >= self.max_steps:
                done = True
            if not self.agent.next_reward(reward, done):
                metrics.reward_errors += 1
            if done:
                metrics.success = bool(info.get("caught", reward > 0))
        self.history.append(metrics)
        return metrics

    def run(self, num_episodes: int, log_interval: int = 0) -> List[EpisodeMetrics]:
        results = []
        for episode in range(num_episodes):
            metrics = self.run_episode()
            results.append(metrics)
            self._log_episode(episode, metrics)
            if log_interval > 0 and (episode + 1) % log_interval == 0:
                logger.info(
                    "episode %d: reward=%.2f success_rate(last %d)=%.2f",
                    episode + 1,
                    metrics.reward,
                    log_interval,
                    self.success_rate(log_interval),
                )
        return results

    def success_rate(self, window: int = 10) -> float:
        recent = self.history[-window:]
        return float(np.mean([m.success for m in recent])) if recent else 0.0

    def _log_episode(self, episode_idx: int, metrics: EpisodeMetrics) -> None:
        if wandb.run is None:
            return
        wandb.log(
            {
                "episode": episode_idx,
                "episode_length": metrics.steps,
                "episode_reward": metrics.reward,
                "episode_success": float(metrics.success),
                "success_rate/10": self.success_rate(10),
                "errors/action": metrics.action_errors,
                "errors/reward": metrics.reward_errors,
            },
            step=self.global_step,
        )
