"""Reporting utilities for digitnet."""

from .artifacts import write_confusion_matrix, write_manifest
from .metrics import CsvSink, JsonlSink, MetricsCapture
from .plots import PlotAdapter
from .summary import write_summary

__all__ = [
    "CsvSink",
    "JsonlSink",
    "MetricsCapture",
    "PlotAdapter",
    "write_confusion_matrix",
    "write_manifest",
    "write_summary",
]
