import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from sgdnet.core.backprop import backprop, quadratic_cost
from sgdnet.core.network import Network
from sgdnet.core.types import ContractViolation


def _s(z):
    return 1.0 / (1.0 + math.exp(-z))


def _ds(z):
    return _s(z) * (1.0 - _s(z))


@pytest.fixture
def tiny_network():
    """Topology [2, 2, 1] with fixed parameters."""

    weights = [np.array([[0.1, 0.2], [0.3, 0.4]]), np.array([[0.7, 0.8]])]
    biases = [np.array([0.5, 0.6]), np.array([0.9])]
    return Network.from_parameters(weights, biases)


def test_forward_matches_hand_computation(tiny_network):
    z1 = [0.1 * 1.0 + 0.2 * 0.0 + 0.5, 0.3 * 1.0 + 0.4 * 0.0 + 0.6]
    a1 = [_s(z) for z in z1]
    z2 = 0.7 * a1[0] + 0.8 * a1[1] + 0.9
    out = tiny_network.forward(np.array([1.0, 0.0]))
    assert out.shape == (1, 1)
    assert out[0, 0] == pytest.approx(_s(z2), rel=1e-12)
    assert out[0, 0] == pytest.approx(0.8722, abs=1e-3)


def test_backprop_matches_hand_derivation(tiny_network):
    x = np.array([[1.0], [0.0]])
    y = np.array([[1.0]])
    z1 = [0.6, 0.9]
    a1 = [_s(z) for z in z1]
    z2 = 0.7 * a1[0] + 0.8 * a1[1] + 0.9
    a2 = _s(z2)

    delta2 = (a2 - 1.0) * _ds(z2)
    delta1 = [0.7 * delta2 * _ds(z1[0]), 0.8 * delta2 * _ds(z1[1])]

    grads = backprop(tiny_network, x, y)
    assert len(grads) == 2

    first, last = grads
    assert last.bias.shape == (1, 1)
    assert last.weight.shape == (1, 2)
    assert last.bias[0, 0] == pytest.approx(delta2, rel=1e-12)
    assert last.weight[0, 0] == pytest.approx(delta2 * a1[0], rel=1e-12)
    assert last.weight[0, 1] == pytest.approx(delta2 * a1[1], rel=1e-12)

    assert first.bias.shape == (2, 1)
    assert first.weight.shape == (2, 2)
    for j in range(2):
        assert first.bias[j, 0] == pytest.approx(delta1[j], rel=1e-12)
        assert first.weight[j, 0] == pytest.approx(delta1[j] * 1.0, rel=1e-12)
        assert first.weight[j, 1] == 0.0


def _cost(network, x, y):
    return quadratic_cost(network.forward(x), y)


@pytest.mark.parametrize("sizes", [[3, 4, 2], [4, 5, 3, 2]])
def test_gradients_match_finite_differences(sizes):
    rng = np.random.default_rng(11)
    network = Network(sizes, seed=2)
    x = rng.uniform(size=(sizes[0], 1))
    y = np.zeros((sizes[-1], 1))
    y[1, 0] = 1.0
    grads = backprop(network, x, y)
    eps = 1e-6

    for layer, grad in enumerate(grads):
        pairs = ((network.weights[layer], grad.weight), (network.biases[layer], grad.bias))
        for params, analytic in pairs:
            for index in np.ndindex(params.shape):
                original = params[index]
                params[index] = original + eps
                plus = _cost(network, x, y)
                params[index] = original - eps
                minus = _cost(network, x, y)
                params[index] = original
                numeric = (plus - minus) / (2 * eps)
                assert numeric == pytest.approx(analytic[index], rel=1e-4, abs=1e-9)


def test_backprop_is_pure(tiny_network):
    before = tiny_network.state_dict()
    x, y = np.array([1.0, 0.0]), np.array([1.0])
    first = backprop(tiny_network, x, y)
    second = backprop(tiny_network, x, y)
    for key, value in tiny_network.state_dict().items():
        assert np.array_equal(value, before[key])
    for a, b in zip(first, second):
        assert np.array_equal(a.weight, b.weight)
        assert np.array_equal(a.bias, b.bias)


def test_backprop_concurrent_calls_agree_with_serial():
    network = Network([8, 6, 4], seed=4)
    rng = np.random.default_rng(3)
    xs = [rng.uniform(size=(8, 1)) for _ in range(32)]
    ys = [np.eye(4)[:, [i % 4]] for i in range(32)]
    serial = [backprop(network, x, y) for x, y in zip(xs, ys)]
    with ThreadPoolExecutor(max_workers=4) as pool:
        parallel = list(pool.map(lambda xy: backprop(network, *xy), zip(xs, ys)))
    for s, p in zip(serial, parallel):
        for gs, gp in zip(s, p):
            assert np.array_equal(gs.weight, gp.weight)
            assert np.array_equal(gs.bias, gp.bias)


def test_backprop_rejects_mismatched_vectors(tiny_network):
    with pytest.raises(ContractViolation):
        backprop(tiny_network, np.zeros(3), np.zeros(1))
    with pytest.raises(ContractViolation):
        backprop(tiny_network, np.zeros(2), np.zeros(2))


def test_single_transition_network():
    network = Network.from_parameters([np.array([[0.5, -0.5]])], [np.array([0.0])])
    grads = backprop(network, np.array([1.0, 1.0]), np.array([0.0]))
    # z = 0 so a = 0.5 and sigmoid'(0) = 0.25.
    assert grads[0].bias[0, 0] == pytest.approx(0.5 * 0.25)
    assert np.allclose(grads[0].weight, [[0.125, 0.125]])
