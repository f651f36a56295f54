import numpy as np
import pytest
import torch

from rlbridge.backend import TorchBackend
from rlbridge.errors import ActionRangeError, MarshalError, ShapeMismatchError
from rlbridge.tensors import ActionTensor, RewardTensor, from_runtime, to_runtime


def test_to_runtime_copies_host_buffer() -> None:
    host = np.array([1.0, 2.0, 3.0, 4.0], dtype=np.float32)
    tensor = to_runtime(host, (4,))
    host[0] = 99.0
    assert tensor.dtype == torch.float32
    assert tensor.tolist() == [1.0, 2.0, 3.0, 4.0]


def test_to_runtime_accepts_flat_buffer_for_image_shape() -> None:
    tensor = to_runtime(list(range(6)), (1, 2, 3))
    assert tensor.shape == (1, 2, 3)
    assert tensor[0, 1, 2].item() == 5.0


def test_to_runtime_rejects_wrong_length() -> None:
    with pytest.raises(ShapeMismatchError) as info:
        to_runtime([0.0, 0.0, 0.0], (4,))
    assert info.value.expected == (4,)
    assert info.value.got == (3,)


def test_to_runtime_rejects_transposed_image() -> None:
    with pytest.raises(ShapeMismatchError):
        to_runtime(np.zeros((2, 3, 1)), (1, 2, 3))


def test_to_runtime_rejects_non_numeric() -> None:
    with pytest.raises(MarshalError):
        to_runtime(["a", "b"], (2,))


def test_action_tensor_is_reused_and_untouched_on_failure() -> None:
    buf = ActionTensor((4,), TorchBackend("cpu"))
    storage = buf.state.data_ptr()
    buf.load([1, 2, 3, 4])
    with pytest.raises(ShapeMismatchError):
        buf.load([9, 9])
    assert buf.state.tolist() == [1.0, 2.0, 3.0, 4.0]
    buf.load(np.zeros((2, 2)))
    assert buf.state.data_ptr() == storage
    assert buf.state.tolist() == [0.0, 0.0, 0.0, 0.0]


@pytest.mark.parametrize("result", [2, np.int64(2), torch.tensor(2), torch.tensor([2.0]), 2.0])
def test_from_runtime_single_value(result) -> None:
    assert from_runtime(result, 3).index == 2


def test_from_runtime_distribution_uses_argmax() -> None:
    out = from_runtime(torch.tensor([[0.1, 0.7, 0.2]]), 3)
    assert out.index == 1
    assert out.raw.shape == (3,)


def test_from_runtime_single_action_reads_q_values() -> None:
    assert from_runtime(torch.tensor([3.2]), 1).index == 0
    assert from_runtime([-0.5], 1).index == 0
    with pytest.raises(ActionRangeError):
        from_runtime(3.2, 1)


@pytest.mark.parametrize("result", [3, -1, 1.5, None, True, float("nan"), torch.zeros(5), "left"])
def test_from_runtime_rejects_unusable_results(result) -> None:
    with pytest.raises(ActionRangeError):
        from_runtime(result, 3)


def test_reward_tensor_packs_in_place() -> None:
    rt = RewardTensor(TorchBackend("cpu"))
    storage = rt.data.data_ptr()
    rt.pack(1.0, False)
    assert rt.reward == 1.0 and rt.end_episode is False
    rt.pack(-0.5, True)
    assert rt.reward == -0.5 and rt.end_episode is True
    assert rt.data.data_ptr() == storage


def test_reward_tensor_rejects_non_finite() -> None:
    rt = RewardTensor(TorchBackend("cpu"))
    rt.pack(0.25, False)
    with pytest.raises(MarshalError):
        rt.pack(float("inf"), True)
    assert rt.reward == 0.25 and rt.end_episode is False
