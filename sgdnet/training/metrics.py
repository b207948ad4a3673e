"""Evaluation helpers for trained networks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

import numpy as np

from ..core.network import Network
from ..core.types import Example
from ..data.utils import stack_inputs


@dataclass(frozen=True)
class Evaluation:
    """Outcome of running a network over a set of examples."""

    loss: float
    accuracy: float
    correct: int
    total: int
    misses: List[int]

    def as_metrics(self) -> Mapping[str, float]:
        return {
            "loss": self.loss,
            "accuracy": self.accuracy,
            "errors": float(self.total - self.correct),
        }


def evaluate(network: Network, examples: Sequence[Example], *, chunk: int = 1024) -> Evaluation:
    """Return mean quadratic cost, accuracy and the indices of misclassified examples.

    The predicted class is the index of the largest output activation.
    """

    if not examples:
        return Evaluation(loss=0.0, accuracy=0.0, correct=0, total=0, misses=[])
    total_cost = 0.0
    misses: List[int] = []
    for start in range(0, len(examples), chunk):
        part = examples[start : start + chunk]
        outputs = network.forward_many(stack_inputs(part))
        targets = np.stack([example.y.reshape(-1) for example in part])
        total_cost += float(0.5 * np.sum((outputs - targets) ** 2))
        predicted = np.argmax(outputs, axis=1)
        labels = np.array([example.label for example in part])
        misses.extend(int(start + i) for i in np.flatnonzero(predicted != labels))
    total = len(examples)
    correct = total - len(misses)
    return Evaluation(
        loss=total_cost / total,
        accuracy=correct / total,
        correct=correct,
        total=total,
        misses=misses,
    )


def confusion_matrix(network: Network, examples: Sequence[Example], num_classes: int) -> np.ndarray:
    """Rows are true labels, columns predicted labels."""

    matrix = np.zeros((num_classes, num_classes), dtype=np.int64)
    if not examples:
        return matrix
    predicted = np.argmax(network.forward_many(stack_inputs(examples)), axis=1)
    for example, guess in zip(examples, predicted):
        matrix[example.label, guess] += 1
    return matrix


def compute_metrics(network: Network, splits: Mapping[str, Sequence[Example]]) -> Dict[str, Mapping[str, float]]:
    return {name: evaluate(network, examples).as_metrics() for name, examples in splits.items()}


__all__ = ["Evaluation", "compute_metrics", "confusion_matrix", "evaluate"]
