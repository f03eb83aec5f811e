"""Run artifact helpers."""

from __future__ import annotations

import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping, Sequence

import numpy as np


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    layer_sizes: Sequence[int],
) -> str:
    """Write a manifest JSON file capturing reproducibility metadata.

    Only metadata is recorded; trained parameters are never written.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "dataset": dict(dataset_provenance),
        "network": {"layer_sizes": [int(s) for s in layer_sizes]},
        "environment": {
            "python": platform.python_version(),
            "numpy": np.__version__,
        },
    }
    path.write_text(json.dumps(manifest, indent=2))
    return str(path)


def write_confusion_matrix(path: str | Path, matrix: np.ndarray) -> str:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "rows": "true class",
        "columns": "predicted class",
        "matrix": np.asarray(matrix).astype(int).tolist(),
    }
    path.write_text(json.dumps(payload, indent=2))
    return str(path)


__all__ = ["git_sha", "write_confusion_matrix", "write_manifest"]
