"""Fully-connected sigmoid network."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, MutableSequence, Sequence

import numpy as np

from .activations import sigmoid
from .types import Array, ContractViolation, ModelDescription


class TopologyError(ValueError):
    """Raised when layer sizes or parameter shapes are inconsistent."""


def _check_sizes(layer_sizes: Sequence[int]) -> list[int]:
    sizes = [int(s) for s in layer_sizes]
    if len(sizes) < 2:
        raise TopologyError(
            f"A network needs an input layer and at least one more layer, got {sizes}"
        )
    if any(s <= 0 for s in sizes):
        raise TopologyError(f"Layer sizes must be positive, got {sizes}")
    return sizes


@dataclass
class Network:
    """Dense feed-forward network with one sigmoid per layer transition.

    ``weights[i]`` has shape ``(layer_sizes[i + 1], layer_sizes[i])`` and
    ``biases[i]`` has shape ``(layer_sizes[i + 1], 1)``. Every entry is drawn
    uniformly from ``[-1, 1)`` at construction.
    """

    layer_sizes: Sequence[int]
    seed: int | None = None
    dtype: Any = np.float64
    weights: MutableSequence[Array] = field(init=False, repr=False)
    biases: MutableSequence[Array] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.layer_sizes = _check_sizes(self.layer_sizes)
        self.reset(self.seed)

    @classmethod
    def from_parameters(
        cls, weights: Sequence[Array], biases: Sequence[Array], *, dtype: Any = np.float64
    ) -> "Network":
        """Build a network around fixed parameters."""

        if len(weights) != len(biases) or not weights:
            raise TopologyError(
                f"Expected matching non-empty weight/bias lists, got "
                f"{len(weights)} weights and {len(biases)} biases"
            )
        ws = [np.array(w, dtype=dtype, ndmin=2) for w in weights]
        sizes = [ws[0].shape[1]] + [w.shape[0] for w in ws]
        state = {f"W{idx}": w for idx, w in enumerate(ws)}
        for idx, b in enumerate(biases):
            state[f"b{idx}"] = np.asarray(b, dtype=dtype).reshape(-1, 1)
        network = cls(layer_sizes=sizes, dtype=dtype)
        network.load_state_dict(state)
        return network

    @property
    def num_layers(self) -> int:
        return len(self.layer_sizes)

    def describe(self) -> ModelDescription:
        return ModelDescription(layer_sizes=list(self.layer_sizes))

    def reset(self, seed: int | None) -> None:
        rng = np.random.default_rng(seed)
        sizes = self.layer_sizes
        self.weights = [
            rng.uniform(-1.0, 1.0, size=(out_dim, in_dim)).astype(self.dtype)
            for in_dim, out_dim in zip(sizes[:-1], sizes[1:])
        ]
        self.biases = [
            rng.uniform(-1.0, 1.0, size=(out_dim, 1)).astype(self.dtype)
            for out_dim in sizes[1:]
        ]

    def forward(self, x: Array) -> Array:
        """Return the output activation column for a single input."""

        x = np.asarray(x)
        if x.size != self.layer_sizes[0]:
            raise ContractViolation(
                f"Input has {x.size} values but the input layer has {self.layer_sizes[0]}"
            )
        activation = x.reshape(-1, 1)
        for W, b in zip(self.weights, self.biases):
            activation = sigmoid(W @ activation + b)
        return activation

    def forward_many(self, inputs: Array) -> Array:
        """Evaluate ``(N, n_in)`` rows at once and return ``(N, n_out)`` rows."""

        inputs = np.asarray(inputs)
        if inputs.ndim != 2 or inputs.shape[1] != self.layer_sizes[0]:
            raise ContractViolation(
                f"Expected inputs of shape (N, {self.layer_sizes[0]}), got {inputs.shape}"
            )
        activation = inputs.T
        for W, b in zip(self.weights, self.biases):
            activation = sigmoid(W @ activation + b)
        return activation.T

    def predict(self, x: Array) -> int:
        return int(np.argmax(self.forward(x)))

    def state_dict(self) -> Mapping[str, Array]:
        state = {f"W{idx}": W.copy() for idx, W in enumerate(self.weights)}
        state.update({f"b{idx}": b.copy() for idx, b in enumerate(self.biases)})
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for idx in range(len(self.weights)):
            for key, current in ((f"W{idx}", self.weights), (f"b{idx}", self.biases)):
                if key not in state:
                    raise KeyError(f"Missing parameter {key} in state dict")
                value = np.asarray(state[key], dtype=self.dtype)
                if value.shape != current[idx].shape:
                    raise TopologyError(
                        f"Parameter {key} has shape {value.shape}, "
                        f"expected {current[idx].shape}"
                    )
                current[idx] = value.copy()

    def parameter_count(self) -> int:
        return int(sum(w.size for w in self.weights) + sum(b.size for b in self.biases))


def load_checkpoint(path) -> Network:
    """Rebuild a :class:`Network` from an ``.npz`` checkpoint."""

    with np.load(path) as data:
        state = {key: data[key] for key in data.files}
    count = sum(1 for key in state if key.startswith("W"))
    weights = [state[f"W{idx}"] for idx in range(count)]
    biases = [state[f"b{idx}"] for idx in range(count)]
    return Network.from_parameters(weights, biases, dtype=weights[0].dtype)


__all__ = ["Network", "TopologyError", "load_checkpoint"]
