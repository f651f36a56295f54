"""Policy modules bundled with the bridge, addressable by short name."""

POLICY_REGISTRY: dict[str, str] = {
    "DQN": "rlbridge.policies.dqn",
}

__all__ = ["POLICY_REGISTRY"]
