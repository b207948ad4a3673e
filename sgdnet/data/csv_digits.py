"""Digit images stored one per CSV row (label column plus pixel columns)."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import to_examples


def _load_csv(path: Path, label_col: str, scale: float | None) -> tuple[np.ndarray, np.ndarray, float]:
    df = pd.read_csv(path)
    if label_col not in df.columns:
        raise KeyError(f"Label column {label_col!r} not found in {path}")
    labels = df.pop(label_col).to_numpy(dtype=np.int64)
    X = df.to_numpy(dtype=np.float32)
    if scale is None:
        peak = float(X.max()) if X.size else 1.0
        scale = peak if peak > 1.0 else 1.0
    return X / scale, labels, scale


@register_dataset("csv")
def build_csv_digits(
    *,
    train_path: str | Path,
    test_path: str | Path | None = None,
    label_col: str = "label",
    num_classes: int | None = None,
    scale: float | None = None,
    max_items: int | None = None,
) -> DatasetSpec:
    """Load examples from CSV; pixels are divided by ``scale`` (default: the train maximum)."""

    train_path = Path(train_path)
    X_train, y_train, scale = _load_csv(train_path, label_col, scale)
    if test_path is not None:
        X_test, y_test, _ = _load_csv(Path(test_path), label_col, scale)
    else:
        X_test, y_test = X_train, y_train
    if max_items is not None:
        X_train, y_train = X_train[:max_items], y_train[:max_items]
        X_test, y_test = X_test[:max_items], y_test[:max_items]

    classes = num_classes or int(max(y_train.max(), y_test.max())) + 1
    return DatasetSpec(
        name="csv",
        train=to_examples(X_train, y_train, classes),
        test=to_examples(X_test, y_test, classes),
        data_spec=DataSpec(
            d_in=int(X_train.shape[1]),
            d_out=classes,
            num_classes=classes,
            normalization={"inputs": f"value / {scale:g}"},
        ),
        provenance={
            "train_path": str(train_path),
            "test_path": str(test_path) if test_path is not None else None,
            "label_col": label_col,
            "scale": scale,
        },
    )


__all__ = ["build_csv_digits"]
