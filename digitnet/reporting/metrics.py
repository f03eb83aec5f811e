"""Per-epoch metric sinks for training runs."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Mapping

from .artifacts import git_sha

CSV_FIELDS = ("epoch", "accuracy", "cost", "learning_rate")


def _numeric(metrics: Mapping[str, object]) -> Dict[str, float]:
    return {
        name: float(value)  # type: ignore[arg-type]
        for name, value in metrics.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    }


def _fresh_file(path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text("")
    return target


class JsonlSink:
    """One JSON object per epoch, tagged with the run seed and git revision."""

    def __init__(self, path: str | Path, *, seed: int | None = None, sha: str | None = None):
        self.path = _fresh_file(path)
        self.tags = {"seed": seed, "sha": sha or git_sha()}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        record: Dict[str, object] = {"epoch": int(epoch), **self.tags, **_numeric(metrics)}
        with self.path.open("a", encoding="utf-8") as stream:
            print(json.dumps(record, sort_keys=True), file=stream)

    __call__ = on_epoch


class CsvSink:
    """Spreadsheet-friendly copy of the epoch metrics.

    Columns are fixed to :data:`CSV_FIELDS`; a metric the trainer did not
    emit (``cost`` with tracking disabled) is left blank.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = _fresh_file(path)
        with self.path.open("w", encoding="utf-8", newline="") as stream:
            csv.writer(stream).writerow(CSV_FIELDS)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        values = _numeric(metrics)
        values["epoch"] = int(epoch)
        with self.path.open("a", encoding="utf-8", newline="") as stream:
            csv.writer(stream).writerow([values.get(name, "") for name in CSV_FIELDS])

    __call__ = on_epoch


class MetricsCapture:
    """In-memory epoch history, handy for tests and notebooks."""

    def __init__(self) -> None:
        self.history: list[tuple[int, Mapping[str, float]]] = []

    @property
    def last(self) -> Mapping[str, float]:
        return self.history[-1][1] if self.history else {}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self.history.append((int(epoch), _numeric(metrics)))


__all__ = ["CSV_FIELDS", "CsvSink", "JsonlSink", "MetricsCapture"]
