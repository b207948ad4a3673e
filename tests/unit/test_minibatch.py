from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from sgdnet.core.accumulator import alloc_batch_work
from sgdnet.core.backprop import backprop
from sgdnet.core.minibatch import MiniBatchTrainer, process_mini_batch, update
from sgdnet.core.network import Network
from sgdnet.core.types import ContractViolation, Example


def _examples(n, d_in=5, classes=3, seed=0):
    rng = np.random.default_rng(seed)
    return [Example.from_label(rng.uniform(size=d_in), i % classes, classes) for i in range(n)]


@pytest.fixture
def network():
    return Network([5, 4, 3], seed=21)


def test_batch_of_one_equals_raw_backprop(network):
    (example,) = _examples(1)
    work = alloc_batch_work(network, 1)
    process_mini_batch(network, work, [example])
    expected = backprop(network, example.x, example.y)
    for idx, grad in enumerate(expected):
        assert np.allclose(work.weight_grads[idx], grad.weight)
        assert np.allclose(work.bias_grads[idx], grad.bias)


def test_reduction_is_order_independent(network):
    batch = _examples(12)
    work = alloc_batch_work(network, 12)
    process_mini_batch(network, work, batch)
    reference = [g.copy() for g in work.weight_grads + work.bias_grads]

    rng = np.random.default_rng(5)
    for _ in range(3):
        permuted = [batch[i] for i in rng.permutation(len(batch))]
        process_mini_batch(network, work, permuted)
        for got, expected in zip(work.weight_grads + work.bias_grads, reference):
            assert np.allclose(got, expected, rtol=1e-12, atol=1e-15)


def test_parallel_map_matches_serial(network):
    batch = _examples(16)
    serial = alloc_batch_work(network, 16)
    threaded = alloc_batch_work(network, 16)
    process_mini_batch(network, serial, batch)
    with ThreadPoolExecutor(max_workers=4) as pool:
        process_mini_batch(network, threaded, batch, executor=pool)
    for a, b in zip(serial.weight_grads + serial.bias_grads, threaded.weight_grads + threaded.bias_grads):
        assert np.array_equal(a, b)


def test_process_resets_previous_sums(network):
    batch = _examples(4)
    work = alloc_batch_work(network, 4)
    process_mini_batch(network, work, batch)
    first = [g.copy() for g in work.weight_grads]
    process_mini_batch(network, work, batch)
    for got, expected in zip(work.weight_grads, first):
        assert np.allclose(got, expected)


def test_process_does_not_touch_network(network):
    before = network.state_dict()
    work = alloc_batch_work(network, 3)
    process_mini_batch(network, work, _examples(3))
    for key, value in network.state_dict().items():
        assert np.array_equal(value, before[key])


def test_batch_length_must_match_accumulator(network):
    work = alloc_batch_work(network, 4)
    with pytest.raises(ContractViolation):
        process_mini_batch(network, work, _examples(3))


def test_update_with_zero_eta_is_identity(network):
    work = alloc_batch_work(network, 5)
    process_mini_batch(network, work, _examples(5))
    before = network.state_dict()
    update(network, work, 0.0)
    for key, value in network.state_dict().items():
        assert np.array_equal(value, before[key])


def test_update_applies_scaled_step(network):
    work = alloc_batch_work(network, 5)
    process_mini_batch(network, work, _examples(5))
    before = network.state_dict()
    update(network, work, 0.5)
    scale = 0.5 / 5
    for idx in range(2):
        assert np.allclose(network.weights[idx], before[f"W{idx}"] - scale * work.weight_grads[idx])
        assert np.allclose(network.biases[idx], before[f"b{idx}"] - scale * work.bias_grads[idx])


def test_update_rejects_negative_eta(network):
    work = alloc_batch_work(network, 1)
    with pytest.raises(ValueError):
        update(network, work, -0.1)


def test_update_lowers_batch_cost(network):
    batch = _examples(8)

    def batch_cost():
        return sum(0.5 * float(np.sum((network.forward(e.x) - e.y) ** 2)) for e in batch)

    work = alloc_batch_work(network, 8)
    process_mini_batch(network, work, batch)
    before = batch_cost()
    update(network, work, 0.1)
    assert batch_cost() < before


def test_minibatch_trainer_reuses_storage_per_length(network):
    with MiniBatchTrainer(network, 0.5, workers=2) as trainer:
        first = trainer.step(_examples(4))
        second = trainer.step(_examples(4, seed=1))
        short = trainer.step(_examples(2, seed=2))
    assert first is second
    assert short is not first
    assert short.batch_length == 2


def test_minibatch_trainer_threaded_equals_serial():
    a = Network([5, 4, 3], seed=8)
    b = Network([5, 4, 3], seed=8)
    batches = [_examples(6, seed=s) for s in range(5)]
    with MiniBatchTrainer(a, 1.0) as serial, MiniBatchTrainer(b, 1.0, workers=3) as threaded:
        for batch in batches:
            serial.step(batch)
            threaded.step(batch)
    for key, value in a.state_dict().items():
        assert np.array_equal(value, b.state_dict()[key])
