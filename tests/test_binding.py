import pytest

from rlbridge.binding import BindingSlot, BindingTable
from rlbridge.config import DEFAULT_LOAD_MODEL, DEFAULT_NEXT_ACTION, DEFAULT_NEXT_REWARD, DEFAULT_SAVE_MODEL
from rlbridge.errors import RequiredFunctionMissingError
from rlbridge.runtime import PythonRuntime

DEFAULT_NAMES = (DEFAULT_NEXT_ACTION, DEFAULT_NEXT_REWARD, DEFAULT_LOAD_MODEL, DEFAULT_SAVE_MODEL)


def test_resolve_binds_all_four_slots(lookup_policy) -> None:
    table = BindingTable.resolve(PythonRuntime(), "lookup_policy", DEFAULT_NAMES, search_paths=[lookup_policy])
    assert all(table.is_bound(slot) for slot in BindingSlot)
    assert table.call(BindingSlot.ACTION, None) == 0


def test_optional_slots_may_be_missing(write_policy) -> None:
    path = write_policy(
        "no_checkpoints",
        """
        def next_action(state):
            return 0

        def next_reward(state, reward, end_episode):
            pass

        save_model = "not callable"
        """,
    )
    table = BindingTable.resolve(PythonRuntime(), "no_checkpoints", DEFAULT_NAMES, search_paths=[path])
    assert table.is_bound(BindingSlot.ACTION)
    assert table.is_bound(BindingSlot.REWARD)
    assert not table.is_bound(BindingSlot.LOAD)
    assert not table.is_bound(BindingSlot.SAVE)
    with pytest.raises(LookupError):
        table.call(BindingSlot.SAVE, "x.pt")


@pytest.mark.parametrize("missing", ["next_action", "next_reward"])
def test_mandatory_slot_missing(write_policy, missing) -> None:
    body = {
        "next_action": "def next_action(state):\n    return 0\n",
        "next_reward": "def next_reward(state, reward, end_episode):\n    pass\n",
    }
    del body[missing]
    path = write_policy("half_policy", "\n".join(body.values()))
    with pytest.raises(RequiredFunctionMissingError) as info:
        BindingTable.resolve(PythonRuntime(), "half_policy", DEFAULT_NAMES, search_paths=[path])
    assert info.value.function == missing


def test_custom_function_names(write_policy) -> None:
    path = write_policy(
        "renamed_policy",
        """
        def act(state):
            return 1

        def learn(state, reward, end_episode):
            return None
        """,
    )
    table = BindingTable.resolve(PythonRuntime(), "renamed_policy", ("act", "learn", "restore", "store"), search_paths=[path])
    assert table.name_of(BindingSlot.ACTION) == "act"
    assert table.call(BindingSlot.ACTION, None) == 1
    assert not table.is_bound(BindingSlot.LOAD)


def test_two_argument_reward_function_skips_state(write_policy) -> None:
    path = write_policy(
        "legacy_policy",
        """
        seen = []

        def next_action(state):
            return 0

        def next_reward(reward, end_episode):
            seen.append((reward, end_episode))
        """,
    )
    table = BindingTable.resolve(PythonRuntime(), "legacy_policy", DEFAULT_NAMES, search_paths=[path])
    table.call(BindingSlot.REWARD, "state", 0.5, True)
    assert table.module.seen == [(0.5, True)]


def test_release_drops_handles(lookup_policy) -> None:
    table = BindingTable.resolve(PythonRuntime(), "lookup_policy", DEFAULT_NAMES, search_paths=[lookup_policy])
    table.release()
    assert table.module is None
    assert not any(table.is_bound(slot) for slot in BindingSlot)
