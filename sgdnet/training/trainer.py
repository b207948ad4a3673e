"""Epoch loop: shuffle, batch, accumulate, update, evaluate."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np
from tqdm import tqdm

from ..core.minibatch import MiniBatchTrainer
from ..core.network import Network
from ..core.types import Example, RunResult
from ..data.utils import partition, seed_everything
from ..reporting.tracing import NULL_TRACER, Tracer
from .metrics import evaluate

logger = logging.getLogger(__name__)

PARTIAL_BATCH_MODES = ("drop", "process")


class Trainer:
    """Run mini-batch SGD over a dataset for a fixed number of epochs.

    ``partial_batches`` controls the trailing batch of an epoch when the
    dataset size is not a multiple of ``batch_size``: ``"drop"`` skips it,
    ``"process"`` trains on it with gradient storage sized for its length.
    """

    def __init__(
        self,
        network: Network,
        *,
        eta: float,
        batch_size: int,
        workers: int | None = None,
        partial_batches: str = "drop",
        callbacks: Sequence[object] | None = None,
        tracer: Tracer | None = None,
        progress: bool = False,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if partial_batches not in PARTIAL_BATCH_MODES:
            raise ValueError(
                f"partial_batches must be one of {PARTIAL_BATCH_MODES}, got {partial_batches!r}"
            )
        self.network = network
        self.eta = float(eta)
        self.batch_size = int(batch_size)
        self.workers = workers
        self.partial_batches = partial_batches
        self.callbacks = list(callbacks or [])
        self.tracer = tracer or NULL_TRACER
        self.progress = progress

    def run(
        self,
        train: Sequence[Example],
        epochs: int,
        *,
        seed: int = 0,
        eval_examples: Sequence[Example] | None = None,
        checkpoint_dir: str | Path | None = None,
    ) -> RunResult:
        rng = seed_everything(seed)
        examples = list(train)
        eval_set = examples if eval_examples is None else eval_examples
        drop_last = self.partial_batches == "drop"
        if len(examples) < self.batch_size and drop_last:
            logger.warning(
                "Only %d examples for batch size %d; no updates will be made",
                len(examples),
                self.batch_size,
            )

        steps = 0
        with MiniBatchTrainer(
            self.network, self.eta, workers=self.workers, tracer=self.tracer
        ) as minibatch:
            minibatch.batch_work(self.batch_size)
            epoch_iter = tqdm(
                range(1, epochs + 1), desc="Training", unit="epoch", disable=not self.progress
            )
            for epoch in epoch_iter:
                order = rng.permutation(len(examples))
                shuffled = [examples[i] for i in order]
                for batch in partition(shuffled, self.batch_size, drop_last=drop_last):
                    minibatch.step(batch)
                    steps += 1
                metrics = evaluate(self.network, eval_set).as_metrics()
                logger.info(
                    "epoch %d/%d loss=%.5f accuracy=%.4f",
                    epoch,
                    epochs,
                    metrics["loss"],
                    metrics["accuracy"],
                )
                if self.progress:
                    epoch_iter.set_postfix(accuracy=f"{metrics['accuracy']:.4f}")
                self._emit_epoch(epoch, metrics)

        checkpoint_path = ""
        if checkpoint_dir is not None:
            checkpoint_path = str(
                self._save_checkpoint(Path(checkpoint_dir) / "last.ckpt", self.network.state_dict())
            )
        return RunResult(steps=steps, checkpoint_path=checkpoint_path)

    # ------------------------------------------------------------------
    # Internal helpers

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    @staticmethod
    def _save_checkpoint(path: Path, state: Mapping[str, np.ndarray]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as handle:
            np.savez_compressed(handle, **state)
        return path


__all__ = ["PARTIAL_BATCH_MODES", "Trainer"]
