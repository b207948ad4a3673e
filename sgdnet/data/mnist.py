"""MNIST digits read from IDX files, with an offline fixture fallback."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from .idx import idx_paths, load_idx_examples
from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import resolve_data_dir, to_examples

logger = logging.getLogger(__name__)

NUM_CLASSES = 10
IMAGE_SIDE = 28


def _fixture_arrays(count: int, offset: int) -> tuple[np.ndarray, np.ndarray]:
    """Build deterministic digit-like images without any randomness.

    Each class lights a different horizontal band of the 28x28 canvas so the
    fixture is learnable, and the pixel values are derived from integer
    sequences only so the arrays are identical across NumPy releases.
    """

    labels = (np.arange(count, dtype=np.int64) + offset) % NUM_CLASSES
    images = np.zeros((count, IMAGE_SIDE, IMAGE_SIDE), dtype=np.float32)
    texture = (np.arange(IMAGE_SIDE * IMAGE_SIDE).reshape(IMAGE_SIDE, IMAGE_SIDE) % 7) / 12.0
    for idx, label in enumerate(labels):
        row = 2 + int(label) * 2
        images[idx, row : row + 3, 4:24] = 1.0
        images[idx] = np.maximum(images[idx], texture * ((idx + offset) % 3 == 0))
    return images.reshape(count, -1), labels


@register_dataset("mnist")
def build_mnist(
    *,
    data_dir: str | Path | None = None,
    train_prefix: str = "train",
    test_prefix: str = "t10k",
    max_items: int | None = None,
    fixture_fallback: bool = True,
    fixture_size: int = 200,
) -> DatasetSpec:
    """Return the MNIST dataset from ``<data_dir>/<prefix>-{images,labels}`` IDX files."""

    root = resolve_data_dir(data_dir)
    try:
        train_images, train_labels = idx_paths(root / train_prefix)
        idx_paths(root / test_prefix)
    except FileNotFoundError:
        if not fixture_fallback:
            raise
        logger.warning("MNIST files not found under %s; using the offline fixture", root)
        n_train = max_items or fixture_size
        n_test = max(1, min(n_train, fixture_size) // 4)
        train_x, train_y = _fixture_arrays(n_train, offset=0)
        test_x, test_y = _fixture_arrays(n_test, offset=3)
        train = to_examples(train_x, train_y, NUM_CLASSES)
        test = to_examples(test_x, test_y, NUM_CLASSES)
        provenance: dict[str, object] = {"mode": "offline-fixture", "data_dir": str(root)}
    else:
        train = load_idx_examples(root / train_prefix, NUM_CLASSES, max_items)
        test = load_idx_examples(root / test_prefix, NUM_CLASSES, max_items)
        provenance = {
            "mode": "idx",
            "data_dir": str(root),
            "train_images": str(train_images),
            "train_labels": str(train_labels),
        }
        logger.info("Loaded %d train / %d test MNIST examples", len(train), len(test))

    provenance.update(
        {"train_prefix": train_prefix, "test_prefix": test_prefix, "max_items": max_items}
    )
    return DatasetSpec(
        name="mnist",
        train=train,
        test=test,
        data_spec=DataSpec(
            d_in=IMAGE_SIDE * IMAGE_SIDE,
            d_out=NUM_CLASSES,
            num_classes=NUM_CLASSES,
            normalization={"inputs": "pixel / 255"},
        ),
        provenance=provenance,
    )


__all__ = ["build_mnist"]
