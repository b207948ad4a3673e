"""Core typing contracts for sgdnet."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, NamedTuple

import numpy as np

Array = np.ndarray


class ContractViolation(AssertionError):
    """Raised when a caller breaks a shape or size precondition of the core."""


@dataclass(frozen=True)
class Example:
    """A single training sample.

    Attributes
    ----------
    x:
        Input column vector of shape ``(n_in, 1)`` with values in ``[0, 1]``.
    y:
        One-hot target column vector of shape ``(n_out, 1)``.
    label:
        Index of the hot entry in ``y``.
    """

    x: Array
    y: Array
    label: int

    @classmethod
    def from_label(cls, x: Array, label: int, num_classes: int) -> "Example":
        label = int(label)
        if not 0 <= label < num_classes:
            raise ValueError(f"label {label} outside [0, {num_classes})")
        column = np.asarray(x).reshape(-1, 1)
        target = np.zeros((num_classes, 1), dtype=column.dtype)
        target[label, 0] = 1.0
        return cls(x=column, y=target, label=label)


class LayerGradient(NamedTuple):
    """Gradient of the cost for one layer transition."""

    weight: Array
    bias: Array


Gradients = List[LayerGradient]


@dataclass(frozen=True)
class ModelDescription:
    """Description of the feed-forward network architecture."""

    layer_sizes: List[int]

    @property
    def parameter_count(self) -> int:
        sizes = self.layer_sizes
        return sum(sizes[i] * sizes[i + 1] + sizes[i + 1] for i in range(len(sizes) - 1))


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :meth:`sgdnet.training.trainer.Trainer.run`."""

    steps: int
    metrics_path: str = ""
    manifest_path: str = ""
    summary_path: str = ""
    checkpoint_path: str = ""
