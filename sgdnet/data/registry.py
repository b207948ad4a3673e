"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Sequence

from ..core.types import Example


@dataclass(frozen=True)
class DataSpec:
    """Structural information about a dataset.

    Attributes
    ----------
    d_in:
        Length of every input column; must equal the network's input layer.
    d_out:
        Length of every one-hot target; must equal the network's output layer.
    num_classes:
        Number of discrete classes (equal to ``d_out`` for one-hot targets).
    normalization:
        Metadata describing the scaling applied to the inputs.
    """

    d_in: int
    d_out: int
    num_classes: int
    normalization: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DatasetSpec:
    """Examples and provenance of a dataset registered in the system."""

    name: str
    train: Sequence[Example]
    test: Sequence[Example]
    data_spec: DataSpec
    provenance: Dict[str, Any]

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": len(self.train), "test": len(self.test)}

    def split(self, name: str) -> Sequence[Example]:
        if name == "train":
            return self.train
        if name == "test":
            return self.test
        raise ValueError(f"Unknown split: {name}")


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("mnist")
        def build_mnist(**kwargs):
            ...

    or directly::

        register_dataset("mnist", build_mnist)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str, /, **options: Any) -> DatasetSpec:
    """Build and validate the :class:`DatasetSpec` registered as ``dataset``."""

    if dataset not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset {dataset!r}. Available datasets: {available}")
    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    data_spec = spec.data_spec
    if data_spec.d_out != data_spec.num_classes:
        raise ValueError(
            f"Dataset {spec.name!r} has d_out={data_spec.d_out} but "
            f"{data_spec.num_classes} classes"
        )
    for split in ("train", "test"):
        for idx, example in enumerate(spec.split(split)):
            if example.x.shape != (data_spec.d_in, 1) or example.y.shape != (data_spec.d_out, 1):
                raise ValueError(
                    f"{spec.name}/{split}[{idx}] has x{example.x.shape} y{example.y.shape}, "
                    f"expected x({data_spec.d_in}, 1) y({data_spec.d_out}, 1)"
                )


__all__ = [
    "DataSpec",
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
