"""Optional phase tracing around the training hot path.

The core never measures time itself. Callers inject a tracer and the core opens
a span around each phase: ``alloc``, ``forward``, ``backward`` (once per layer
transition, tagged with ``layer``), ``reduce`` and ``update``.
"""

from __future__ import annotations

import json
import threading
import time
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import ContextManager, Dict, Iterator, List, Mapping, Protocol


class Tracer(Protocol):
    """Protocol implemented by span recorders."""

    def span(self, phase: str, **attrs: object) -> ContextManager[None]:
        """Return a context manager measuring ``phase``."""


class NullTracer:
    """Tracer that records nothing."""

    def span(self, phase: str, **attrs: object) -> ContextManager[None]:
        return nullcontext()


NULL_TRACER = NullTracer()


class TimingTracer:
    """Aggregate wall-clock durations per phase.

    Spans may be opened concurrently from worker threads; updates to the
    aggregate are serialised with a lock.
    """

    def __init__(self, *, per_layer: bool = False) -> None:
        self.per_layer = per_layer
        self._lock = threading.Lock()
        self._durations: Dict[str, List[float]] = {}

    @contextmanager
    def span(self, phase: str, **attrs: object) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            key = phase
            if self.per_layer and "layer" in attrs:
                key = f"{phase}[{attrs['layer']}]"
            with self._lock:
                self._durations.setdefault(key, []).append(elapsed)

    def phases(self) -> List[str]:
        with self._lock:
            return sorted(self._durations)

    def summary(self) -> Mapping[str, Mapping[str, float]]:
        with self._lock:
            snapshot = {k: list(v) for k, v in self._durations.items()}
        result: Dict[str, Mapping[str, float]] = {}
        for phase, values in sorted(snapshot.items()):
            total = float(sum(values))
            result[phase] = {
                "count": len(values),
                "total_s": total,
                "mean_s": total / len(values),
            }
        return result

    def write(self, path: str | Path) -> str:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.summary(), indent=2, sort_keys=True))
        return str(path)


__all__ = ["Tracer", "NullTracer", "NULL_TRACER", "TimingTracer"]
