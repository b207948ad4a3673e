"""Reusable gradient storage for mini-batches."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..reporting.tracing import NULL_TRACER, Tracer
from .network import Network
from .types import Array, ContractViolation, LayerGradient


@dataclass
class BatchWork:
    """Per-layer gradient sums for batches of exactly ``batch_length`` examples.

    Storage is allocated once by :func:`alloc_batch_work` and zeroed in place
    before every batch; shapes never change afterwards.
    """

    weight_grads: List[Array]
    bias_grads: List[Array]
    batch_length: int

    def reset(self) -> None:
        for grad in self.weight_grads:
            grad.fill(0.0)
        for grad in self.bias_grads:
            grad.fill(0.0)

    def check_batch(self, length: int) -> None:
        if length != self.batch_length:
            raise ContractViolation(
                f"Batch of {length} examples given to a BatchWork sized for "
                f"{self.batch_length}"
            )

    def accumulate(self, gradients: Sequence[LayerGradient]) -> None:
        """Add one example's gradients into the sums, in place."""

        if len(gradients) != len(self.weight_grads):
            raise ContractViolation(
                f"Got gradients for {len(gradients)} layers, expected "
                f"{len(self.weight_grads)}"
            )
        for nw, nb, grad in zip(self.weight_grads, self.bias_grads, gradients):
            np.add(nw, grad.weight, out=nw)
            np.add(nb, grad.bias, out=nb)

    def is_zero(self) -> bool:
        return all(not g.any() for g in self.weight_grads) and all(
            not g.any() for g in self.bias_grads
        )


def alloc_batch_work(
    network: Network, batch_length: int, tracer: Tracer | None = None
) -> BatchWork:
    """Allocate zeroed gradient storage shaped like ``network``."""

    batch_length = int(batch_length)
    if batch_length <= 0:
        raise ValueError(f"batch_length must be positive, got {batch_length}")
    with (tracer or NULL_TRACER).span("alloc"):
        return BatchWork(
            weight_grads=[np.zeros_like(W) for W in network.weights],
            bias_grads=[np.zeros_like(b) for b in network.biases],
            batch_length=batch_length,
        )


def reset(work: BatchWork) -> None:
    work.reset()


__all__ = ["BatchWork", "alloc_batch_work", "reset"]
