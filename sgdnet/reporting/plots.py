"""Headless-safe training curve plots."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Tuple


class PlotAdapter:
    """Collect per-epoch loss and accuracy and optionally save a matplotlib figure."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        self._history.append(
            (epoch, float(metrics.get("loss", 0.0)), float(metrics.get("accuracy", 0.0)))
        )

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs, losses, accuracies = zip(*self._history)
        fig, (ax_loss, ax_acc) = plt.subplots(1, 2, figsize=(9, 3.5))
        ax_loss.plot(epochs, losses)
        ax_loss.set_xlabel("Epoch")
        ax_loss.set_ylabel("Quadratic cost")
        ax_acc.plot(epochs, accuracies)
        ax_acc.set_xlabel("Epoch")
        ax_acc.set_ylabel("Accuracy")
        ax_acc.set_ylim(0.0, 1.0)
        fig.suptitle("Training curve")
        fig.tight_layout()
        plot_path = self.run_dir / "curves.png"
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path

    __call__ = on_epoch
