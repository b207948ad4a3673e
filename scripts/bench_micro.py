from __future__ import annotations

import argparse
import csv
import json
import sys
from pathlib import Path
from statistics import mean, pstdev


def _fmt_mu_sigma(vals):
    mu = mean(vals)
    sd = pstdev(vals) if len(vals) > 1 else 0.0
    return f"{mu * 1e3:.3f} ± {sd * 1e3:.3f}"


def main():
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    from sgdnet.core.minibatch import MiniBatchTrainer
    from sgdnet.core.network import Network
    from sgdnet.data import get_dataset
    from sgdnet.data.utils import partition
    from sgdnet.reporting.tracing import TimingTracer

    ap = argparse.ArgumentParser(description="Time one epoch of mini-batch SGD per worker count")
    ap.add_argument("--workers", nargs="+", type=int, default=[1, 2, 4])
    ap.add_argument("--repeats", type=int, default=3)
    ap.add_argument("--layers", type=str, default="784,30,10")
    ap.add_argument("--batch", type=int, default=16)
    ap.add_argument("--eta", type=float, default=0.15)
    ap.add_argument("--items", type=int, default=400)
    ap.add_argument("--data-dir", type=str, default=None)
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args()

    layers = [int(size) for size in args.layers.split(",")]
    data = get_dataset("mnist", data_dir=args.data_dir, max_items=args.items, fixture_size=args.items)
    batches = list(partition(list(data.train), args.batch))

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    runs = []
    for workers in args.workers:
        for repeat in range(args.repeats):
            tracer = TimingTracer()
            network = Network(layers, seed=repeat)
            with MiniBatchTrainer(network, args.eta, workers=workers, tracer=tracer) as trainer:
                for batch in batches:
                    trainer.step(batch)
            phases = tracer.summary()
            runs.append(
                {
                    "workers": workers,
                    "repeat": repeat,
                    "batches": len(batches),
                    **{f"{name}_s": stats["total_s"] for name, stats in phases.items()},
                }
            )
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    columns = ["forward_s", "backward_s", "reduce_s", "update_s"]
    csv_path = out / "bench_micro.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["workers", "repeats", "batches", *[f"{c}_mu" for c in columns]])
        for workers in args.workers:
            rows = [r for r in runs if r["workers"] == workers]
            w.writerow(
                [workers, len(rows), len(batches)]
                + [f"{mean(r.get(c, 0.0) for r in rows):.6f}" for c in columns]
            )

    md_path = out / "bench_micro.md"
    lines = [
        "### Micro-benchmark: mini-batch SGD phase timings",
        "",
        f"- Layers: `{layers}`; Batch: `{args.batch}`; Batches per epoch: `{len(batches)}`",
        "",
        "| Workers | Forward ms (μ±σ) | Backward ms (μ±σ) | Reduce ms (μ±σ) | Update ms (μ±σ) |",
        "|---:|---:|---:|---:|---:|",
    ]
    for workers in args.workers:
        rows = [r for r in runs if r["workers"] == workers]
        cells = [_fmt_mu_sigma([r.get(c, 0.0) for r in rows]) for c in columns]
        lines.append(f"| {workers} | " + " | ".join(cells) + " |")
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()
