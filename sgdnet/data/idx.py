"""Reader for the IDX binary format used by the MNIST distribution.

An IDX file starts with a big-endian magic number ``0x0000TTNN`` where ``TT``
is the element type (only ``0x08``, unsigned byte, is supported) and ``NN`` the
number of dimensions, followed by one big-endian ``int32`` per dimension and
the raw payload. Label files have magic 2049 (one dimension) and image files
2051 (three dimensions).
"""

from __future__ import annotations

import gzip
from pathlib import Path
from typing import List, Tuple

import numpy as np

from ..core.types import Example
from .utils import to_examples

LABELS_MAGIC = 2049
IMAGES_MAGIC = 2051
_UBYTE = 0x08


class IdxFormatError(ValueError):
    """Raised when a file does not follow the IDX layout."""


def _read_bytes(path: Path) -> bytes:
    if path.suffix == ".gz":
        with gzip.open(path, "rb") as handle:
            return handle.read()
    return path.read_bytes()


def parse_idx(raw: bytes) -> np.ndarray:
    """Decode IDX bytes into a ``uint8`` array shaped by the header."""

    if len(raw) < 4:
        raise IdxFormatError("File too short for an IDX header")
    zero_a, zero_b, dtype_code, ndim = raw[0], raw[1], raw[2], raw[3]
    if zero_a or zero_b:
        raise IdxFormatError(f"Bad IDX magic number {int.from_bytes(raw[:4], 'big')}")
    if dtype_code != _UBYTE:
        raise IdxFormatError(f"Unsupported IDX element type 0x{dtype_code:02x}")
    header = 4 + 4 * ndim
    if len(raw) < header:
        raise IdxFormatError("Truncated IDX dimension header")
    dims = tuple(int(d) for d in np.frombuffer(raw, dtype=">i4", count=ndim, offset=4))
    expected = int(np.prod(dims)) if dims else 0
    payload = np.frombuffer(raw, dtype=np.uint8, offset=header)
    if payload.size != expected:
        raise IdxFormatError(
            f"IDX header announces {expected} values but payload holds {payload.size}"
        )
    return payload.reshape(dims)


def read_idx(path: str | Path, *, expect_magic: int | None = None) -> np.ndarray:
    path = Path(path)
    raw = _read_bytes(path)
    if expect_magic is not None and raw[:4] != expect_magic.to_bytes(4, "big"):
        raise IdxFormatError(
            f"{path.name}: magic {int.from_bytes(raw[:4], 'big')}, expected {expect_magic}"
        )
    return parse_idx(raw)


def write_idx(path: str | Path, array: np.ndarray) -> Path:
    """Write a ``uint8`` array as IDX; used to build fixtures."""

    path = Path(path)
    array = np.ascontiguousarray(array, dtype=np.uint8)
    header = bytes([0, 0, _UBYTE, array.ndim])
    header += np.asarray(array.shape, dtype=">i4").tobytes()
    payload = header + array.tobytes()
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".gz":
        with gzip.open(path, "wb") as handle:
            handle.write(payload)
    else:
        path.write_bytes(payload)
    return path


def _locate(base: Path) -> Path:
    if base.exists():
        return base
    gz = base.with_name(base.name + ".gz")
    if gz.exists():
        return gz
    raise FileNotFoundError(f"Neither {base} nor {gz} exists")


def idx_paths(prefix: str | Path) -> Tuple[Path, Path]:
    """Return the ``(images, labels)`` paths for a dataset prefix such as ``data/train``."""

    prefix = Path(prefix)
    images = _locate(prefix.with_name(f"{prefix.name}-images.idx3-ubyte"))
    labels = _locate(prefix.with_name(f"{prefix.name}-labels.idx1-ubyte"))
    return images, labels


def load_idx_arrays(prefix: str | Path) -> Tuple[np.ndarray, np.ndarray]:
    """Return flattened images scaled to ``[0, 1]`` and integer labels."""

    images_path, labels_path = idx_paths(prefix)
    images = read_idx(images_path, expect_magic=IMAGES_MAGIC)
    labels = read_idx(labels_path, expect_magic=LABELS_MAGIC)
    if images.shape[0] != labels.shape[0]:
        raise IdxFormatError(
            f"{images.shape[0]} images but {labels.shape[0]} labels under {prefix}"
        )
    pixels = images.reshape(images.shape[0], -1).astype(np.float32) / 255.0
    return pixels, labels.astype(np.int64)


def load_idx_examples(
    prefix: str | Path, num_classes: int = 10, max_items: int | None = None
) -> List[Example]:
    pixels, labels = load_idx_arrays(prefix)
    if max_items is not None:
        pixels, labels = pixels[:max_items], labels[:max_items]
    return to_examples(pixels, labels, num_classes)


__all__ = [
    "IMAGES_MAGIC",
    "LABELS_MAGIC",
    "IdxFormatError",
    "idx_paths",
    "load_idx_arrays",
    "load_idx_examples",
    "parse_idx",
    "read_idx",
    "write_idx",
]
