"""Utility helpers for dataset loaders and the training driver."""

from __future__ import annotations

import os
import random
from pathlib import Path
from typing import Iterator, List, Sequence, TypeVar

import numpy as np

from ..core.types import Array, Example

T = TypeVar("T")

DEFAULT_DATA_DIR = Path("data")


def resolve_data_dir(data_dir: str | Path | None = None) -> Path:
    """Return the directory holding raw dataset files."""

    return Path(data_dir or os.environ.get("SGDNET_DATA_DIR") or DEFAULT_DATA_DIR)


def seed_everything(seed: int) -> np.random.Generator:
    """Seed Python and NumPy RNGs and return a generator."""

    random.seed(seed)
    np.random.seed(seed % (2**32 - 1))
    return np.random.default_rng(seed)


def one_hot(labels: Array, num_classes: int, dtype=np.float32) -> Array:
    labels = np.asarray(labels, dtype=np.int64).reshape(-1)
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ValueError(f"Labels must lie in [0, {num_classes})")
    return np.eye(num_classes, dtype=dtype)[labels]


def to_examples(inputs: Array, labels: Array, num_classes: int) -> List[Example]:
    """Turn ``(N, d)`` rows and ``N`` integer labels into :class:`Example` records."""

    inputs = np.asarray(inputs)
    labels = np.asarray(labels, dtype=np.int64).reshape(-1)
    if inputs.shape[0] != labels.shape[0]:
        raise ValueError(
            f"Got {inputs.shape[0]} inputs but {labels.shape[0]} labels"
        )
    targets = one_hot(labels, num_classes, dtype=inputs.dtype)
    return [
        Example(x=row.reshape(-1, 1), y=target.reshape(-1, 1), label=int(label))
        for row, target, label in zip(inputs, targets, labels)
    ]


def stack_inputs(examples: Sequence[Example]) -> Array:
    return np.stack([example.x.reshape(-1) for example in examples])


def partition(items: Sequence[T], batch_size: int, *, drop_last: bool = True) -> Iterator[Sequence[T]]:
    """Yield contiguous batches of ``batch_size`` items.

    The trailing batch shorter than ``batch_size`` is skipped when
    ``drop_last`` is set.
    """

    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for start in range(0, len(items), batch_size):
        batch = items[start : start + batch_size]
        if drop_last and len(batch) < batch_size:
            return
        yield batch


_SHADES = ((0.8, "█"), (0.6, "▓"), (0.4, "▒"), (0.2, "░"))


def render_ascii(x: Array, width: int = 28) -> str:
    """Render a flattened grayscale image as shaded text, one row per line."""

    values = np.asarray(x).reshape(-1)
    lines = []
    for start in range(0, values.size, width):
        row = []
        for value in values[start : start + width]:
            row.append(next((ch for cut, ch in _SHADES if value > cut), " "))
        lines.append("".join(row))
    return "\n".join(lines)


__all__ = [
    "one_hot",
    "partition",
    "render_ascii",
    "resolve_data_dir",
    "seed_everything",
    "stack_inputs",
    "to_examples",
]
