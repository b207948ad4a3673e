"""Command line entry point for sgdnet training runs."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable

from sgdnet.data import available_datasets
from sgdnet.training import pipelines


def _format_result(result) -> str:
    payload = {
        "steps": result.steps,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
    }
    if result.checkpoint_path:
        payload["checkpoint"] = result.checkpoint_path
    return json.dumps(payload, sort_keys=True)


def _layers(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid layer list: {value!r}") from exc


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="separable-toy",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument(
        "--dataset", choices=sorted(available_datasets()), help="Override the dataset"
    )
    parser.add_argument("--data-dir", help="Directory holding IDX files for the mnist dataset")
    parser.add_argument(
        "--layers", type=_layers, help="Comma separated layer sizes, e.g. 784,30,10"
    )
    parser.add_argument("--epochs", type=int, help="Number of epochs")
    parser.add_argument("--batch-size", type=int, help="Mini-batch size")
    parser.add_argument("--eta", type=float, help="Learning rate")
    parser.add_argument("--workers", type=int, help="Backprop worker threads per batch")
    parser.add_argument(
        "--partial-batches",
        choices=["drop", "process"],
        help="What to do with the trailing short batch of each epoch",
    )
    parser.add_argument("--seed", type=int, help="Seed used for initialisation and shuffling")
    parser.add_argument("--run-dir", help="Directory receiving metrics and artifacts")
    parser.add_argument(
        "--show-misses",
        type=int,
        help="Print up to N misclassified evaluation examples after training",
    )
    parser.add_argument(
        "--enable-plots", action="store_true", help="Save loss/accuracy curves"
    )
    parser.add_argument(
        "--trace", action="store_true", help="Record per-phase timings to trace.json"
    )
    parser.add_argument(
        "--progress",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show a progress bar over epochs",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def _apply_flags(config: dict, args: argparse.Namespace) -> dict:
    train = config.setdefault("train", {})
    if args.dataset:
        config["data"] = {"name": args.dataset, "options": {}}
        config.setdefault("model", {}).pop("layers", None)
    if args.data_dir:
        config.setdefault("data", {}).setdefault("options", {})["data_dir"] = args.data_dir
    if args.layers:
        config.setdefault("model", {})["layers"] = args.layers
    for flag, key in (
        ("epochs", "epochs"),
        ("batch_size", "batch_size"),
        ("eta", "eta"),
        ("workers", "workers"),
        ("partial_batches", "partial_batches"),
        ("seed", "seed"),
        ("run_dir", "run_dir"),
        ("progress", "progress"),
        ("show_misses", "show_misses"),
    ):
        value = getattr(args, flag)
        if value is not None:
            train[key] = value
    if args.enable_plots:
        train["enable_plots"] = True
    if args.trace:
        train["trace"] = True
    return config


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = json.loads(json.dumps(pipelines.read_config_file(args.config)))
        if {"data", "model", "train"} <= set(override.keys()):
            config = override
        else:
            config = _merge(config, override)

    config = _apply_flags(config, args)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
