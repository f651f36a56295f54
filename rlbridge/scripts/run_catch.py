"""Train or evaluate a policy module on the catch game through the agent bridge."""

from __future__ import annotations

import argparse
import random
import sys
from dataclasses import asdict
from typing import Optional, Sequence

import numpy as np
import torch
import wandb

from rlbridge.agent import RLAgent
from rlbridge.backend import get_best_device
from rlbridge.config import RunConfig
from rlbridge.env import CatchConfig, CatchEnv
from rlbridge.host import HostLoop
from rlbridge.utils import configure_logging, get_logger

logger = get_logger("rlbridge.scripts.run_catch")


def set_seeds(seed: int) -> None:
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    if torch.cuda.is_available():
        torch.cuda.manual_seed(seed)
        torch.cuda.manual_seed_all(seed)


def parse_args(argv: Optional[Sequence[str]] = None) -> RunConfig:
    parser = argparse.ArgumentParser(description="Drive a policy module on the catch game.", allow_abbrev=False)
    parser.add_argument("--episodes", type=int, default=RunConfig.num_episodes, help="Number of episodes to run.")
    parser.add_argument("--width", type=int, default=RunConfig.env_width, help="Board width.")
    parser.add_argument("--height", type=int, default=RunConfig.env_height, help="Board height.")
    parser.add_argument("--image", action="store_true", default=False, help="Pass the board as a 1xHxW image instead of a flat vector.")
    parser.add_argument("--module", type=str, default=RunConfig.module, help="Policy module name.")
    parser.add_argument("--device", type=str, default=RunConfig.device, help='"auto", "cuda", "mps", or "cpu".')
    parser.add_argument("--load", type=str, default=None, help="Checkpoint to load before running.")
    parser.add_argument("--save", type=str, default=None, help="Checkpoint to save after running.")
    parser.add_argument("--fallback-action", type=int, default=RunConfig.fallback_action, help="Action used when the policy fails.")
    parser.add_argument("--log-interval", type=int, default=RunConfig.log_interval_episodes, help="Log a status line every N episodes.")
    parser.add_argument("--wandb-mode", type=str, default=RunConfig.wandb_mode, choices=["online", "offline", "disabled"])
    parser.add_argument("--wandb-project", type=str, default=RunConfig.wandb_project)
    parser.add_argument("--seed", type=int, default=RunConfig.seed, help="Random seed.")
    parser.add_argument("-v", "--verbose", action="count", default=RunConfig.verbosity)
    args, module_args = parser.parse_known_args(argv)
    return RunConfig(
        seed=args.seed,
        num_episodes=args.episodes,
        env_width=args.width,
        env_height=args.height,
        image_input=args.image,
        module=args.module,
        module_args=tuple(module_args),
        device=args.device,
        fallback_action=args.fallback_action,
        log_interval_episodes=args.log_interval,
        load_checkpoint=args.load,
        save_checkpoint=args.save,
        wandb_mode=args.wandb_mode,
        wandb_project=args.wandb_project,
        verbosity=args.verbose,
    )


def build_agent(cfg: RunConfig, env: CatchEnv) -> Optional[RLAgent]:
    device = get_best_device() if cfg.device == "auto" else cfg.device
    extra = ("--seed", str(cfg.seed), "--device", device, *cfg.module_args)
    if cfg.image_input:
        return RLAgent.create_image(
            env.width, env.height, 1, env.num_actions, module=cfg.module, extra_args=extra, device=device
        )
    return RLAgent.create(env.width * env.height, env.num_actions, module=cfg.module, extra_args=extra, device=device)


def main(argv: Optional[Sequence[str]] = None) -> int:
    cfg = parse_args(argv)
    configure_logging(cfg.verbosity)
    set_seeds(cfg.seed)

    env = CatchEnv(CatchConfig(width=cfg.env_width, height=cfg.env_height, seed=cfg.seed))
    agent = build_agent(cfg, env)
    if agent is None:
        logger.error("could not create agent for module %s", cfg.module)
        return 1
    print(f"Using device: {agent.backend.device}")

    wandb.init(project=cfg.wandb_project, mode=cfg.wandb_mode, config=asdict(cfg))
    try:
        if cfg.load_checkpoint and not agent.load_checkpoint(cfg.load_checkpoint):
            logger.warning("starting from scratch: %s", agent.last_error or "module has no load function")
        loop = HostLoop(env, agent, fallback_action=cfg.fallback_action)
        loop.run(cfg.num_episodes, log_interval=cfg.log_interval_episodes)
        print(f"[catch] episodes={cfg.num_episodes} success_rate(last 100)={loop.success_rate(100):.2f}")
        if cfg.save_checkpoint and not agent.save_checkpoint(cfg.save_checkpoint):
            logger.error("checkpoint not saved: %s", agent.last_error or "module has no save function")
            return 1
    except KeyboardInterrupt:
        print("[catch] stopped.")
    finally:
        agent.close()
        wandb.finish()
    return 0


if __name__ == "__main__":
    sys.exit(main())
