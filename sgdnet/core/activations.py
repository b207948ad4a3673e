"""Activation utilities for sgdnet."""

from __future__ import annotations

import numpy as np

from .types import Array


def sigmoid(x: Array) -> Array:
    """Return the logistic function ``1 / (1 + e^-x)`` elementwise."""

    # exp overflows to inf for very negative inputs, which correctly yields 0.
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def sigmoid_prime(x: Array) -> Array:
    """Return the derivative of :func:`sigmoid` evaluated at ``x``."""

    s = sigmoid(x)
    return s * (1.0 - s)
