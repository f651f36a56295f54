import numpy as np
import torch

from rlbridge import CheckpointIOError, RLAgent
from rlbridge.policies.dqn import DQNPolicy, parse_args

GREEDY = ("--epsilon_start", "0", "--epsilon_end", "0", "--train_start", "4", "--batch_size", "4", "--hidden_dim", "16")


def test_parse_args_tolerates_unknown_flags() -> None:
    args = parse_args(["DQN", "--input_width=6", "--num_actions=3", "--unknown", "x"])
    assert args.input_width == 6
    assert args.num_actions == 3


def test_dqn_trains_through_the_bridge() -> None:
    agent = RLAgent.create(4, 2, extra_args=("--seed", "0", *GREEDY))
    assert agent is not None
    policy = agent.policy_module.policy
    rng = np.random.default_rng(0)
    for step in range(12):
        action = agent.next_action(rng.normal(size=4))
        assert 0 <= action < 2
        assert agent.next_reward(1.0 if action == 0 else -1.0, step % 4 == 3) is True
    assert policy.steps_done == 12
    assert policy.episodes == 3
    assert len(policy.replay) > 0
    assert policy.last_loss is not None and np.isfinite(policy.last_loss)


def test_dqn_image_input() -> None:
    agent = RLAgent.create_image(5, 4, 1, 3, extra_args=("--seed", "1", *GREEDY))
    assert agent is not None
    action = agent.next_action(np.zeros((1, 4, 5), dtype=np.float32))
    assert 0 <= action < 3
    assert agent.next_reward(0.0, True) is True


def test_dqn_checkpoint_round_trip(tmp_path) -> None:
    trained = RLAgent.create(4, 3, extra_args=("--seed", "0", *GREEDY))
    assert trained is not None
    rng = np.random.default_rng(1)
    for step in range(10):
        trained.next_action(rng.normal(size=4))
        trained.next_reward(float(rng.normal()), step == 9)
    ckpt = tmp_path / "dqn.pt"
    assert trained.save_checkpoint(ckpt) is True
    assert ckpt.exists()

    fresh = RLAgent.create(4, 3, extra_args=("--seed", "123", *GREEDY))
    assert fresh is not None
    assert fresh.load_checkpoint(ckpt) is True
    assert fresh.policy_module.policy.steps_done == 10
    probes = [rng.normal(size=4) for _ in range(8)]
    assert [fresh.next_action(p) for p in probes] == [trained.next_action(p) for p in probes]


def test_dqn_checkpoint_errors(tmp_path) -> None:
    agent = RLAgent.create(4, 2, extra_args=GREEDY)
    assert agent is not None
    assert agent.load_checkpoint(tmp_path / "missing.pt") is False
    assert isinstance(agent.last_error, CheckpointIOError)
    assert agent.save_checkpoint(tmp_path / "no" / "such" / "dir" / "dqn.pt") is False
    assert isinstance(agent.last_error, CheckpointIOError)

    other = RLAgent.create(5, 2, extra_args=GREEDY)
    assert other is not None and other.save_checkpoint(tmp_path / "other.pt")
    assert agent.load_checkpoint(tmp_path / "other.pt") is False
    assert "saved for input" in str(agent.last_error)


def test_dqn_policy_copies_bridge_state() -> None:
    policy = DQNPolicy(parse_args(["DQN", "--input_width=2", "--num_actions=2", *GREEDY]))
    state = torch.tensor([1.0, 2.0])
    policy.act(state)
    state.fill_(0.0)
    assert policy.last_state.tolist() == [1.0, 2.0]
