"""Backpropagation for the sigmoid network under quadratic cost."""

from __future__ import annotations

from typing import List

import numpy as np

from ..reporting.tracing import NULL_TRACER, Tracer
from .activations import sigmoid, sigmoid_prime
from .network import Network
from .types import Array, ContractViolation, Gradients, LayerGradient


def quadratic_cost(output: Array, target: Array) -> float:
    """Return ``0.5 * ||output - target||^2``."""

    diff = np.asarray(output) - np.asarray(target)
    return float(0.5 * np.sum(diff * diff))


def cost_derivative(output: Array, target: Array) -> Array:
    """Partial derivatives of :func:`quadratic_cost` with respect to ``output``."""

    return output - target


def backprop(
    network: Network, x: Array, y: Array, tracer: Tracer | None = None
) -> Gradients:
    """Return per-layer gradients of the cost for a single example.

    The result holds one :class:`LayerGradient` per layer transition, ordered
    like ``network.weights``. ``network`` is only read, so concurrent calls for
    different examples against the same network are safe.
    """

    tracer = tracer or NULL_TRACER
    sizes = network.layer_sizes
    x = np.asarray(x)
    y = np.asarray(y)
    if x.size != sizes[0]:
        raise ContractViolation(f"Input has {x.size} values, expected {sizes[0]}")
    if y.size != sizes[-1]:
        raise ContractViolation(f"Target has {y.size} values, expected {sizes[-1]}")

    weights = network.weights
    activation = x.reshape(-1, 1)
    activations: List[Array] = [activation]
    zs: List[Array] = []
    with tracer.span("forward"):
        for W, b in zip(weights, network.biases):
            z = W @ activation + b
            zs.append(z)
            activation = sigmoid(z)
            activations.append(activation)

    last = len(weights) - 1
    backward: Gradients = []
    with tracer.span("backward", layer=last):
        delta = cost_derivative(activations[-1], y.reshape(-1, 1)) * sigmoid_prime(zs[-1])
        backward.append(LayerGradient(weight=delta @ activations[-2].T, bias=delta))

    for idx in range(last - 1, -1, -1):
        with tracer.span("backward", layer=idx):
            delta = (weights[idx + 1].T @ delta) * sigmoid_prime(zs[idx])
            backward.append(LayerGradient(weight=delta @ activations[idx].T, bias=delta))

    backward.reverse()
    return backward


__all__ = ["backprop", "cost_derivative", "quadratic_cost"]
