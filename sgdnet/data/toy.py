"""Small in-memory classification datasets."""

from __future__ import annotations

import numpy as np
from sklearn.datasets import make_blobs
from sklearn.preprocessing import MinMaxScaler

from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import to_examples

# Two clusters either side of the line x0 + x1 = 1.
_SEPARABLE_POINTS = np.array(
    [
        [0.10, 0.20],
        [0.20, 0.10],
        [0.15, 0.30],
        [0.30, 0.15],
        [0.80, 0.90],
        [0.90, 0.70],
        [0.70, 0.85],
        [0.85, 0.80],
    ],
    dtype=np.float64,
)
_SEPARABLE_LABELS = np.array([0, 0, 0, 0, 1, 1, 1, 1], dtype=np.int64)


@register_dataset("separable")
def build_separable() -> DatasetSpec:
    """Eight linearly separable 2-D points in two classes; train and test coincide."""

    examples = to_examples(_SEPARABLE_POINTS, _SEPARABLE_LABELS, 2)
    return DatasetSpec(
        name="separable",
        train=examples,
        test=examples,
        data_spec=DataSpec(d_in=2, d_out=2, num_classes=2),
        provenance={"type": "fixed", "points": len(examples)},
    )


@register_dataset("blobs")
def build_blobs(
    *,
    n_samples: int = 240,
    n_features: int = 2,
    centers: int = 3,
    cluster_std: float = 0.6,
    test_split: float = 0.25,
    seed: int = 0,
) -> DatasetSpec:
    """Gaussian blobs scaled to ``[0, 1]`` with a deterministic train/test split."""

    if not 0 < test_split < 1:
        raise ValueError("test_split must be in (0, 1)")
    X, y = make_blobs(
        n_samples=n_samples,
        n_features=n_features,
        centers=centers,
        cluster_std=cluster_std,
        random_state=seed,
    )
    X = MinMaxScaler().fit_transform(X)
    order = np.random.default_rng(seed).permutation(n_samples)
    n_test = max(1, int(round(n_samples * test_split)))
    test_idx, train_idx = order[:n_test], order[n_test:]
    return DatasetSpec(
        name="blobs",
        train=to_examples(X[train_idx], y[train_idx], centers),
        test=to_examples(X[test_idx], y[test_idx], centers),
        data_spec=DataSpec(
            d_in=n_features,
            d_out=centers,
            num_classes=centers,
            normalization={"inputs": "min-max"},
        ),
        provenance={
            "type": "sklearn.make_blobs",
            "n_samples": n_samples,
            "cluster_std": cluster_std,
            "seed": seed,
            "test_split": test_split,
        },
    )


__all__ = ["build_blobs", "build_separable"]
