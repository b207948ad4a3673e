"""sgdnet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.accumulator import BatchWork, alloc_batch_work, reset
from .core.backprop import backprop, quadratic_cost
from .core.minibatch import MiniBatchTrainer, process_mini_batch, update
from .core.network import Network, TopologyError, load_checkpoint
from .core.types import ContractViolation, Example, LayerGradient
from .training.metrics import evaluate
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__version__ = "0.1.0"

__all__ = [
    "BatchWork",
    "ContractViolation",
    "Example",
    "LayerGradient",
    "MiniBatchTrainer",
    "Network",
    "TopologyError",
    "Trainer",
    "activations",
    "alloc_batch_work",
    "backprop",
    "evaluate",
    "load_checkpoint",
    "load_preset",
    "presets",
    "process_mini_batch",
    "quadratic_cost",
    "reset",
    "run_pipeline",
    "types",
    "update",
]
