"""Reporting utilities for sgdnet."""

from .artifacts import write_manifest
from .metrics import CsvSink, JsonlSink
from .plots import PlotAdapter
from .summary import write_summary
from .tracing import NullTracer, TimingTracer

__all__ = [
    "CsvSink",
    "JsonlSink",
    "NullTracer",
    "PlotAdapter",
    "TimingTracer",
    "write_manifest",
    "write_summary",
]
