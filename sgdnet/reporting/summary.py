"""Deterministic run summaries computed from JSONL metrics."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Mapping

import numpy as np

_SKIP = {"epoch", "seed"}


def _numeric_series(records: Iterable[Mapping[str, object]]) -> Mapping[str, List[float]]:
    series: dict[str, List[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _SKIP or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append(float(value))
    return series


def summarize(records: List[Mapping[str, object]]) -> Mapping[str, object]:
    metrics: dict[str, Mapping[str, float]] = {}
    for name, values in _numeric_series(records).items():
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "min": float(arr.min()),
            "max": float(arr.max()),
            "mean": float(arr.mean()),
            "last": float(arr[-1]),
        }
    best_epoch = None
    if records and "accuracy" in metrics:
        accuracies = [float(r.get("accuracy", 0.0)) for r in records]
        best_epoch = int(records[int(np.argmax(accuracies))].get("epoch", 0))
    return {
        "version": 1,
        "epochs": len(records),
        "best_accuracy_epoch": best_epoch,
        "metrics": metrics,
    }


def write_summary(metrics_jsonl: str | Path, out_summary_json: str | Path) -> str:
    """Write ``summary.json`` for the records in ``metrics_jsonl``."""

    metrics_path = Path(metrics_jsonl)
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    records: List[Mapping[str, object]] = []
    if metrics_path.exists():
        for line in metrics_path.read_text().splitlines():
            line = line.strip()
            if line:
                records.append(json.loads(line))

    out_path.write_text(json.dumps(summarize(records), sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["summarize", "write_summary"]
