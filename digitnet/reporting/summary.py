"""Condense a run's ``metrics.jsonl`` into a small, stable JSON summary."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np

_TAGS = frozenset({"epoch", "seed", "sha"})


def read_records(metrics_jsonl: str | Path) -> list[Mapping[str, object]]:
    path = Path(metrics_jsonl)
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def build_summary(
    records: Sequence[Mapping[str, object]], *, final_accuracy: float | None = None
) -> Mapping[str, object]:
    """Per-metric min/max/mean/last plus the epoch of peak accuracy."""

    names = sorted({k for record in records for k in record if k not in _TAGS})
    stats: dict[str, Mapping[str, float]] = {}
    for name in names:
        values = [r[name] for r in records if isinstance(r.get(name), (int, float))]
        series = np.asarray(values, dtype=np.float64)
        if series.size == 0:
            continue
        stats[name] = {
            "min": float(series.min()),
            "max": float(series.max()),
            "mean": float(series.mean()),
            "last": float(series[-1]),
        }

    summary: dict[str, object] = {"version": 1, "epochs": len(records), "metrics": stats}
    scored = [r for r in records if "accuracy" in r]
    if scored:
        # argmax keeps the earliest epoch on ties.
        best = int(np.argmax([float(r["accuracy"]) for r in scored]))  # type: ignore[arg-type]
        summary["best_epoch"] = int(scored[best]["epoch"])  # type: ignore[arg-type]
    if final_accuracy is not None:
        summary["final_accuracy"] = float(final_accuracy)
    return summary


def write_summary(
    metrics_jsonl: str | Path,
    out_summary_json: str | Path,
    *,
    final_accuracy: float | None = None,
) -> str:
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summary = build_summary(read_records(metrics_jsonl), final_accuracy=final_accuracy)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["build_summary", "read_records", "write_summary"]
