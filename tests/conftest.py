import importlib
import textwrap
from pathlib import Path
from typing import Callable

import pytest

LOOKUP_POLICY = """
    terminal_seen = False
    rewards = []

    def next_action(state):
        return 1 if terminal_seen else 0

    def next_reward(state, reward, end_episode):
        global terminal_seen
        rewards.append((float(reward), bool(end_episode)))
        if end_episode:
            terminal_seen = True

    def load_model(path):
        global terminal_seen
        with open(path) as f:
            terminal_seen = f.read().strip() == "terminal"
        return True

    def save_model(path):
        with open(path, "w") as f:
            f.write("terminal" if terminal_seen else "fresh")
        return True
"""


@pytest.fixture
def write_policy(tmp_path: Path) -> Callable[[str, str], str]:
    """Write a throwaway policy module and return the directory to search."""

    def _write(name: str, source: str) -> str:
        (tmp_path / f"{name}.py").write_text(textwrap.dedent(source))
        importlib.invalidate_caches()
        return str(tmp_path)

    return _write


@pytest.fixture
def lookup_policy(write_policy) -> str:
    return write_policy("lookup_policy", LOOKUP_POLICY)
