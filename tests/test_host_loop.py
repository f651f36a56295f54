import pytest

from rlbridge import RLAgent
from rlbridge.env import CatchConfig, CatchEnv
from rlbridge.host import HostLoop


def test_host_loop_runs_episodes_with_lookup_policy(lookup_policy) -> None:
    env = CatchEnv(CatchConfig(width=4, height=4, seed=0))
    agent = RLAgent.create(16, 3, module="lookup_policy", search_paths=[lookup_policy])
    assert agent is not None
    loop = HostLoop(env, agent)
    results = loop.run(3)
    assert [m.steps for m in results] == [3, 3, 3]
    assert all(m.action_errors == 0 and m.reward_errors == 0 for m in results)
    assert len(agent.policy_module.rewards) == 9
    assert [done for _, done in agent.policy_module.rewards].count(True) == 3
    assert 0.0 <= loop.success_rate() <= 1.0


def test_host_loop_falls_back_on_bad_actions(write_policy) -> None:
    path = write_policy(
        "wild_policy",
        """
        def next_action(state):
            return 42

        def next_reward(state, reward, end_episode):
            pass
        """,
    )
    env = CatchEnv(CatchConfig(width=4, height=4, seed=0))
    agent = RLAgent.create(16, 3, module="wild_policy", search_paths=[path])
    loop = HostLoop(env, agent, fallback_action=0)
    metrics = loop.run_episode()
    assert metrics.action_errors == metrics.steps == 3
    assert env.paddle_x == (4 - 1) // 2


def test_host_loop_counts_reward_failures(write_policy) -> None:
    path = write_policy(
        "grumpy_policy",
        """
        def next_action(state):
            return 0

        def next_reward(state, reward, end_episode):
            raise RuntimeError("optimizer diverged")
        """,
    )
    env = CatchEnv(CatchConfig(width=4, height=4, seed=0))
    agent = RLAgent.create(16, 3, module="grumpy_policy", search_paths=[path])
    metrics = HostLoop(env, agent).run_episode()
    assert metrics.reward_errors == 3
    assert agent.ready


def test_host_loop_rejects_bad_fallback(lookup_policy) -> None:
    agent = RLAgent.create(16, 3, module="lookup_policy", search_paths=[lookup_policy])
    with pytest.raises(ValueError):
        HostLoop(CatchEnv(CatchConfig(width=4, height=4)), agent, fallback_action=3)
