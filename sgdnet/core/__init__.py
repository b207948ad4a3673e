"""Core numerical primitives for sgdnet."""

from . import accumulator, activations, backprop, minibatch, network, types

__all__ = ["accumulator", "activations", "backprop", "minibatch", "network", "types"]
