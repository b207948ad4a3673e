"""Mini-batch gradient reduction and the SGD update rule."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Sequence

from ..reporting.tracing import NULL_TRACER, Tracer
from .accumulator import BatchWork, alloc_batch_work
from .backprop import backprop
from .network import Network
from .types import Example, Gradients

logger = logging.getLogger(__name__)


def process_mini_batch(
    network: Network,
    work: BatchWork,
    batch: Sequence[Example],
    *,
    executor: Executor | None = None,
    tracer: Tracer | None = None,
) -> BatchWork:
    """Sum the gradients of every example in ``batch`` into ``work``.

    Per-example gradients are computed on ``executor`` when given, and always
    summed on the calling thread once all of them are available. ``network`` is
    not modified.
    """

    tracer = tracer or NULL_TRACER
    work.check_batch(len(batch))
    work.reset()

    def _grads(example: Example) -> Gradients:
        return backprop(network, example.x, example.y, tracer)

    if executor is None:
        results = [_grads(example) for example in batch]
    else:
        results = list(executor.map(_grads, batch))

    with tracer.span("reduce"):
        for gradients in results:
            work.accumulate(gradients)
    return work


def update(network: Network, work: BatchWork, eta: float, tracer: Tracer | None = None) -> None:
    """Apply one gradient-descent step using the sums held in ``work``."""

    if eta < 0:
        raise ValueError(f"Learning rate must be non-negative, got {eta}")
    scale = eta / work.batch_length
    with (tracer or NULL_TRACER).span("update"):
        for b, nb in zip(network.biases, work.bias_grads):
            b -= scale * nb
        for W, nw in zip(network.weights, work.weight_grads):
            W -= scale * nw


class MiniBatchTrainer:
    """Drive ``process_mini_batch`` and ``update`` over a fixed worker pool.

    One :class:`BatchWork` is kept per batch length seen, allocated on first use
    and reused afterwards.
    """

    def __init__(
        self,
        network: Network,
        eta: float,
        *,
        workers: int | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        if eta < 0:
            raise ValueError(f"Learning rate must be non-negative, got {eta}")
        self.network = network
        self.eta = float(eta)
        self.tracer = tracer or NULL_TRACER
        self.workers = int(workers or 1)
        self._executor: ThreadPoolExecutor | None = None
        if self.workers > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="sgdnet-backprop"
            )
        self._work: dict[int, BatchWork] = {}

    def batch_work(self, batch_length: int) -> BatchWork:
        work = self._work.get(batch_length)
        if work is None:
            logger.debug("Allocating gradient storage for batches of %d", batch_length)
            work = alloc_batch_work(self.network, batch_length, self.tracer)
            self._work[batch_length] = work
        return work

    def step(self, batch: Sequence[Example]) -> BatchWork:
        work = self.batch_work(len(batch))
        process_mini_batch(
            self.network, work, batch, executor=self._executor, tracer=self.tracer
        )
        update(self.network, work, self.eta, self.tracer)
        return work

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "MiniBatchTrainer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["MiniBatchTrainer", "process_mini_batch", "update"]
