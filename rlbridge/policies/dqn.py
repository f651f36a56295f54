"""Deep Q-learning policy module, loaded by the bridge under the name ``DQN``.

The module is configured from ``sys.argv`` when it is imported; the agent
passes ``--input_width/--input_height/--input_channels/--num_actions`` plus any
extra arguments. Each agent executes its own copy of this module, so the
module-level policy below is private to that agent.

Entry points:
    next_action(state) -> int
    next_reward(state, reward, end_episode) -> int | None
    load_model(path) -> bool
    save_model(path) -> bool
"""

from __future__ import annotations

import argparse
import logging
import os
import pickle
import random
import sys
from typing import Optional, Sequence, Tuple

import torch

from rlbridge.errors import CheckpointIOError
from rlbridge.policies.exploration import EpsilonGreedyPolicy, EpsilonSchedule
from rlbridge.policies.q_network import build_q_network
from rlbridge.policies.qlearning import QTrainer, TransitionBatch
from rlbridge.policies.replay import ReplayBuffer, Transition

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="DQN", description="DQN policy for the agent bridge.", allow_abbrev=False)
    parser.add_argument("--input_width", type=int, default=64)
    parser.add_argument("--input_height", type=int, default=1)
    parser.add_argument("--input_channels", type=int, default=1)
    parser.add_argument("--num_actions", type=int, default=2)
    parser.add_argument("--replay_mem", type=int, default=10000)
    parser.add_argument("--batch_size", type=int, default=32)
    parser.add_argument("--train_start", type=int, default=64, help="Transitions to collect before training.")
    parser.add_argument("--gamma", type=float, default=0.9)
    parser.add_argument("--lr", type=float, default=1e-3)
    parser.add_argument("--hidden_dim", type=int, default=64)
    parser.add_argument("--epsilon_start", type=float, default=0.9)
    parser.add_argument("--epsilon_end", type=float, default=0.05)
    parser.add_argument("--epsilon_decay", type=float, default=200.0)
    parser.add_argument("--target_update", type=int, default=50)
    parser.add_argument("--priority_alpha", type=float, default=0.6)
    parser.add_argument("--priority_beta", type=float, default=0.4)
    parser.add_argument("--device", type=str, default="cpu")
    parser.add_argument("--seed", type=int, default=None)
    # unknown flags are tolerated so hosts can share one argv across policies
    args, _ = parser.parse_known_args(list(argv)[1:])
    return args


def input_shape(args: argparse.Namespace) -> Tuple[int, ...]:
    if args.input_height == 1 and args.input_channels == 1:
        return (args.input_width,)
    return (args.input_channels, args.input_height, args.input_width)


class DQNPolicy:
    """Online DQN with prioritized replay and a periodically synced target network."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.device = torch.device(args.device)
        self.input_shape = input_shape(args)
        if args.seed is not None:
            torch.manual_seed(args.seed)
        self.q_network = build_q_network(self.input_shape, args.hidden_dim, args.num_actions).to(self.device)
        self.target_network = build_q_network(self.input_shape, args.hidden_dim, args.num_actions).to(self.device)
        self.target_network.load_state_dict(self.q_network.state_dict())
        self.target_network.eval()
        self.optimizer = torch.optim.Adam(self.q_network.parameters(), lr=args.lr)
        self.replay = ReplayBuffer(capacity=args.replay_mem, seed=args.seed)
        self.q_trainer = QTrainer(args.gamma)
        self.exploration = EpsilonGreedyPolicy(args.num_actions, rng=random.Random(args.seed))
        self.schedule = EpsilonSchedule(args.epsilon_start, args.epsilon_end, args.epsilon_decay)
        self.steps_done = 0
        self.episodes = 0
        self.last_state: Optional[torch.Tensor] = None
        self.last_action: Optional[int] = None
        self.pending: Optional[Tuple[torch.Tensor, int, float]] = None
        self.last_loss: Optional[float] = None

    @property
    def epsilon(self) -> float:
        return self.schedule.value(self.steps_done)

    def act(self, state: torch.Tensor) -> int:
        # the bridge reuses its state tensor, keep a private copy
        s = state.detach().to(self.device, dtype=torch.float32).reshape(self.input_shape).clone()
        if self.pending is not None:
            prev_state, prev_action, prev_reward = self.pending
            self._remember(prev_state, prev_action, prev_reward, s, done=False)
            self.pending = None
        with torch.no_grad():
            q_values = self.q_network(s.unsqueeze(0)).squeeze(0)
        action = self.exploration.select(q_values, self.epsilon)
        self.last_state, self.last_action = s, action
        return action

    def observe(self, reward: float, end_episode: bool) -> Optional[int]:
        if self.last_state is None or self.last_action is None:
            return None
        action = self.last_action
        if end_episode:
            self._remember(self.last_state, action, reward, torch.zeros_like(self.last_state), done=True)
            self.pending = None
            self.last_state, self.last_action = None, None
            self.episodes += 1
        else:
            self.pending = (self.last_state, action, float(reward))
        self.steps_done += 1
        self._optimize()
        if self.args.target_update > 0 and self.steps_done % self.args.target_update == 0:
            self.target_network.load_state_dict(self.q_network.state_dict())
        return action

    def _remember(self, state: torch.Tensor, action: int, reward: float, next_state: torch.Tensor, done: bool) -> None:
        priority = max(self.replay.priorities, default=1.0)
        self.replay.add(Transition(state, action, float(reward), next_state, done, priority=priority))

    def _optimize(self) -> None:
        if len(self.replay) < max(self.args.batch_size, self.args.train_start):
            return
        samples, weights, indices = self.replay.sample_prioritized(
            self.args.batch_size, alpha=self.args.priority_alpha, beta=self.args.priority_beta
        )
        batch = TransitionBatch(
            states=torch.stack([t.state for t in samples]),
            next_states=torch.stack([t.next_state for t in samples]),
            actions=torch.tensor([t.action for t in samples], dtype=torch.long, device=self.device),
            rewards=torch.tensor([t.reward for t in samples], dtype=torch.float32, device=self.device),
            dones=torch.tensor([float(t.done) for t in samples], dtype=torch.float32, device=self.device),
            weights=torch.tensor(weights, dtype=torch.float32, device=self.device),
        )
        loss, td_abs = self.q_trainer.compute_td_loss(self.q_network, self.target_network, batch)
        self.q_trainer.apply_gradients(self.optimizer, loss, self.q_network.parameters())
        self.replay.update_priorities(indices, td_abs.cpu().tolist())
        self.last_loss = float(loss.item())

    def save(self, path: str) -> bool:
        payload = {
            "q_network": self.q_network.state_dict(),
            "target_network": self.target_network.state_dict(),
            "optimizer": self.optimizer.state_dict(),
            "steps_done": self.steps_done,
            "episodes": self.episodes,
            "input_shape": list(self.input_shape),
            "num_actions": self.args.num_actions,
        }
        try:
            torch.save(payload, path)
        except (OSError, RuntimeError) as exc:
            raise CheckpointIOError(f"cannot write checkpoint {path}: {exc}") from exc
        logger.info("saved DQN checkpoint to %s (step %d)", path, self.steps_done)
        return True

    def load(self, path: str) -> bool:
        if not os.path.isfile(path):
            raise CheckpointIOError(f"checkpoint not found: {path}")
        try:
            payload = torch.load(path, map_location=self.device)
        except (OSError, RuntimeError, EOFError, pickle.UnpicklingError) as exc:
            raise CheckpointIOError(f"cannot read checkpoint {path}: {exc}") from exc
        if tuple(payload.get("input_shape", ())) != self.input_shape or payload.get("num_actions") != self.args.num_actions:
            raise CheckpointIOError(
                f"checkpoint {path} was saved for input {payload.get('input_shape')} "
                f"and {payload.get('num_actions')} actions"
            )
        self.q_network.load_state_dict(payload["q_network"])
        self.target_network.load_state_dict(payload.get("target_network", payload["q_network"]))
        if "optimizer" in payload:
            self.optimizer.load_state_dict(payload["optimizer"])
        self.steps_done = int(payload.get("steps_done", 0))
        self.episodes = int(payload.get("episodes", 0))
        self.last_state, self.last_action, self.pending = None, None, None
        logger.info("loaded DQN checkpoint from %s (step %d)", path, self.steps_done)
        return True


args = parse_args(sys.argv)
policy = DQNPolicy(args)


def next_action(state: torch.Tensor) -> int:
    return policy.act(state)


def next_reward(state: torch.Tensor, reward: float, end_episode: bool) -> Optional[int]:
    return policy.observe(reward, end_episode)


def load_model(path: str) -> bool:
    return policy.load(path)


def save_model(path: str) -> bool:
    return policy.save(path)
