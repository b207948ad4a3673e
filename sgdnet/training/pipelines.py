"""Pipeline assembly: config -> dataset, network, trainer, artifacts."""

from __future__ import annotations

import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

import yaml

from ..core.network import Network
from ..core.types import Example, RunResult
from ..data import registry
from ..data.mnist import IMAGE_SIDE
from ..data.utils import render_ascii
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from ..reporting.tracing import NULL_TRACER, TimingTracer
from .metrics import compute_metrics, confusion_matrix, evaluate
from .trainer import Trainer

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "mnist-784-30-10": {
        "data": {"name": "mnist", "options": {}},
        "model": {"layers": [784, 30, 10]},
        "train": {
            "epochs": 10,
            "batch_size": 16,
            "eta": 0.15,
            "seed": 0,
            "workers": 4,
            "partial_batches": "drop",
            "eval_split": "test",
            "run_dir": "runs/mnist-784-30-10",
            "enable_plots": False,
        },
    },
    "separable-toy": {
        "data": {"name": "separable", "options": {}},
        "model": {"layers": [2, 4, 2]},
        "train": {
            "epochs": 300,
            "batch_size": 2,
            "eta": 3.0,
            "seed": 7,
            "workers": 1,
            "partial_batches": "drop",
            "eval_split": "train",
            "run_dir": "runs/separable-toy",
            "enable_plots": False,
        },
    },
    "blobs-small": {
        "data": {"name": "blobs", "options": {"n_samples": 240, "centers": 3, "seed": 0}},
        "model": {"layers": [2, 8, 3]},
        "train": {
            "epochs": 40,
            "batch_size": 10,
            "eta": 2.0,
            "seed": 1,
            "workers": 2,
            "partial_batches": "drop",
            "eval_split": "test",
            "run_dir": "runs/blobs-small",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None
_REQUIRED_SECTIONS = {"data", "model", "train"}


def read_config_file(path: str | Path) -> Mapping[str, object]:
    """Decode a JSON or YAML config file into a mapping."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                missing = _REQUIRED_SECTIONS - set(data)
                if missing:
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: "
                        f"{', '.join(sorted(missing))}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Train a network as described by ``config`` and write the run artifacts."""

    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = registry.get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    data_spec = dataset.data_spec

    layers = _build_layers(model_cfg, data_spec.d_in, data_spec.d_out)
    seed = int(train_cfg.get("seed", 0))
    epochs = int(train_cfg.get("epochs", 1))
    batch_size = int(train_cfg.get("batch_size", 1))
    eta = float(train_cfg.get("eta", 0.1))
    workers = train_cfg.get("workers")
    workers = int(workers) if workers is not None else None
    partial_batches = str(train_cfg.get("partial_batches", "drop"))
    eval_split = str(train_cfg.get("eval_split", "test"))
    eval_examples = dataset.split(eval_split)

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    network = Network(layer_sizes=layers, seed=int(model_cfg.get("seed", seed)))

    _print_startup_summary(
        dataset_name=dataset.name,
        splits=dataset.splits,
        layers=layers,
        batch_size=batch_size,
        eta=eta,
        workers=workers,
        partial_batches=partial_batches,
        param_count=network.parameter_count(),
    )

    eval_jsonl = JsonlSink(run_dir / f"metrics_{eval_split}.jsonl", split=eval_split, seed=seed)
    eval_csv = CsvSink(run_dir / f"metrics_{eval_split}.csv", split=eval_split)
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    tracer = TimingTracer() if train_cfg.get("trace") else NULL_TRACER

    trainer = Trainer(
        network,
        eta=eta,
        batch_size=batch_size,
        workers=workers,
        partial_batches=partial_batches,
        callbacks=[eval_jsonl, eval_csv, plots],
        tracer=tracer,
        progress=bool(train_cfg.get("progress", False)),
    )
    started = time.perf_counter()
    result = trainer.run(
        dataset.train,
        epochs,
        seed=seed,
        eval_examples=eval_examples,
        checkpoint_dir=run_dir,
    )
    elapsed = time.perf_counter() - started
    logger.info("Finished %d steps in %.2fs", result.steps, elapsed)
    plots.close()

    if isinstance(tracer, TimingTracer):
        tracer.write(run_dir / "trace.json")

    final = compute_metrics(network, {"train": dataset.train, "test": dataset.test})
    matrix = confusion_matrix(network, eval_examples, data_spec.num_classes)
    (run_dir / "final_metrics.json").write_text(
        json.dumps({"splits": final, "confusion": matrix.tolist()}, indent=2, sort_keys=True)
    )
    for split, values in final.items():
        logger.info("final %s loss=%.5f accuracy=%.4f", split, values["loss"], values["accuracy"])

    show_misses = int(train_cfg.get("show_misses", 0))
    if show_misses > 0:
        _print_misses(network, eval_examples, show_misses, data_spec.d_in)

    safe_config = _safe_config(config, layers)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        model={"layers": layers, "parameters": network.parameter_count()},
    )
    summary_path = write_summary(eval_jsonl.path, run_dir / "summary.json")
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    metrics_alias = run_dir / "metrics.jsonl"
    metrics_alias.write_text(eval_jsonl.path.read_text())

    return RunResult(
        steps=result.steps,
        metrics_path=str(eval_jsonl.path),
        manifest_path=manifest,
        summary_path=summary_path,
        checkpoint_path=result.checkpoint_path,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _build_layers(model_cfg: Mapping[str, object], d_in: int, d_out: int) -> List[int]:
    if "layers" in model_cfg:
        layers = [int(size) for size in model_cfg["layers"]]  # type: ignore[union-attr]
    else:
        hidden = [int(size) for size in model_cfg.get("hidden", [30])]  # type: ignore[union-attr]
        layers = [d_in, *hidden, d_out]
    if len(layers) < 2:
        raise ValueError(f"layers must name at least an input and an output size, got {layers}")
    if layers[0] != d_in:
        raise ValueError(f"Configured input layer {layers[0]} but dataset inputs have {d_in}")
    if layers[-1] != d_out:
        raise ValueError(f"Configured output layer {layers[-1]} but dataset targets have {d_out}")
    return layers


def _safe_config(config: Mapping[str, object], layers: Sequence[int]) -> Mapping[str, object]:
    copied = json.loads(json.dumps(config, default=str))
    copied.setdefault("model", {})["layers"] = list(layers)
    return copied


def _print_misses(
    network: Network, examples: Sequence[Example], limit: int, d_in: int
) -> None:
    misses = evaluate(network, examples).misses
    print(f"{len(misses)} of {len(examples)} examples misclassified")
    width = IMAGE_SIDE if d_in == IMAGE_SIDE * IMAGE_SIDE else d_in
    for index in misses[:limit]:
        example = examples[index]
        print(f"#{index}: expected {example.label}, predicted {network.predict(example.x)}")
        print(render_ascii(example.x, width=width))


def _print_startup_summary(
    *,
    dataset_name: str,
    splits: Mapping[str, int],
    layers: Sequence[int],
    batch_size: int,
    eta: float,
    workers: int | None,
    partial_batches: str,
    param_count: int,
) -> None:
    print("=== sgdnet run ===")
    print(f"Dataset       : {dataset_name} {dict(splits)}")
    print(f"Layers        : {list(layers)}")
    print(f"Batch size    : {batch_size} (partial batches: {partial_batches})")
    print(f"Learning rate : {eta}")
    print(f"Workers       : {workers or 1}")
    print(f"Parameters    : {param_count}")
    print("==================")


__all__ = ["load_preset", "presets", "read_config_file", "run_pipeline"]
