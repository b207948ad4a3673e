import json
from pathlib import Path

import pytest

from sgdnet.core.network import load_checkpoint
from sgdnet.training import pipelines


def test_trainer_pipeline_produces_artifacts(tmp_path):
    config = {
        "data": {"name": "separable", "options": {}},
        "model": {"layers": [2, 3, 2]},
        "train": {
            "epochs": 4,
            "batch_size": 3,
            "seed": 11,
            "eta": 2.0,
            "eval_split": "test",
            "trace": True,
            "run_dir": str(tmp_path / "run"),
            "enable_plots": False,
        },
    }

    result = pipelines.run_pipeline(config)
    run_dir = tmp_path / "run"

    # 8 examples in batches of 3 with the remainder dropped.
    assert result.steps == 4 * 2
    expected = (
        "metrics.jsonl",
        "metrics_test.csv",
        "manifest.json",
        "summary.json",
        "config.json",
        "trace.json",
        "final_metrics.json",
    )
    for name in expected:
        assert (run_dir / name).exists(), name

    records = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert [r["epoch"] for r in records] == [1, 2, 3, 4]
    assert all({"loss", "accuracy", "errors"} <= set(r) for r in records)

    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["model"]["layers"] == [2, 3, 2]
    assert manifest["dataset"]["type"] == "fixed"

    trace = json.loads((run_dir / "trace.json").read_text())
    assert {"alloc", "forward", "backward", "reduce", "update"} <= set(trace)

    network = load_checkpoint(result.checkpoint_path)
    assert network.layer_sizes == [2, 3, 2]


def test_pipeline_rejects_mismatched_layers(tmp_path):
    config = {
        "data": {"name": "separable", "options": {}},
        "model": {"layers": [3, 4, 2]},
        "train": {"epochs": 1, "batch_size": 2, "run_dir": str(tmp_path / "run")},
    }
    with pytest.raises(ValueError):
        pipelines.run_pipeline(config)


def test_pipeline_requires_all_sections():
    with pytest.raises(KeyError):
        pipelines.run_pipeline({"data": {"name": "separable"}})


def test_presets_are_complete():
    available = pipelines.presets()
    assert {"mnist-784-30-10", "separable-toy", "blobs-small", "mnist-fixture-quick"} <= set(available)
    for name in available:
        preset = pipelines.load_preset(name)
        assert {"data", "model", "train"} <= set(preset)
    with pytest.raises(KeyError):
        pipelines.load_preset("nope")
