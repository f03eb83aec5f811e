"""Evaluation helpers for trained networks."""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from sklearn.metrics import confusion_matrix as _sk_confusion_matrix

from ..core.network import Network, index_of_max
from ..core.types import Array, Sample


def target_label(sample: Sample) -> int:
    """The class a sample should be classified as.

    Falls back to the largest expected output when no label was recorded.
    """

    if sample.label is not None:
        return int(sample.label)
    return index_of_max(sample.expected_output)


def accuracy(network: Network, samples: Sequence[Sample]) -> float:
    if not samples:
        raise ValueError("Cannot evaluate accuracy on an empty sample set")
    correct = 0
    for sample in samples:
        if network.classify(sample.inputs) == target_label(sample):
            correct += 1
    return correct / len(samples)


def confusion_matrix(
    network: Network, samples: Sequence[Sample], num_classes: int | None = None
) -> Array:
    """Rows are true classes, columns are predictions."""

    num_classes = num_classes or network.output_size
    y_true = [target_label(sample) for sample in samples]
    y_pred = [network.classify(sample.inputs) for sample in samples]
    return _sk_confusion_matrix(y_true, y_pred, labels=list(range(num_classes)))


def top_k(outputs: Array, k: int = 5) -> List[Tuple[int, float]]:
    """Rank raw activations, highest first; equal values keep index order."""

    values = np.asarray(outputs, dtype=np.float64).reshape(-1)
    order = np.argsort(-values, kind="stable")[: max(0, k)]
    return [(int(idx), float(values[idx])) for idx in order]


__all__ = ["accuracy", "confusion_matrix", "target_label", "top_k"]
