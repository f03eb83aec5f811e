"""EMNIST CSV loader (``label,p0,...,p783`` per row)."""

from __future__ import annotations

from pathlib import Path
from typing import List

import numpy as np
import pandas as pd

from ..core.errors import DataLoadError
from ..core.types import Sample
from .registry import DatasetSpec, register_dataset
from .utils import IMAGE_SIZE, normalize_pixels, reorient_emnist, split_train_test

DEFAULT_TRAIN_FILE = "dataset/archive/emnist-mnist-train.csv"
DEFAULT_TEST_FILE = "dataset/archive/emnist-mnist-test.csv"


def load_emnist_csv(
    path: str | Path,
    *,
    max_samples: int = 0,
    num_classes: int = 10,
    image_size: int = IMAGE_SIZE,
) -> List[Sample]:
    """Parse ``path`` into upright, normalised samples.

    ``max_samples <= 0`` reads the whole file. Any I/O or parse problem is
    raised as :class:`DataLoadError`.
    """

    path = Path(path)
    n_pixels = image_size * image_size
    try:
        frame = pd.read_csv(
            path,
            header=None,
            nrows=max_samples if max_samples > 0 else None,
        )
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise DataLoadError(f"Could not read EMNIST CSV {path}: {exc}") from exc

    if frame.shape[1] != n_pixels + 1:
        raise DataLoadError(
            f"{path} has {frame.shape[1]} columns, expected {n_pixels + 1} (label + pixels)"
        )
    try:
        values = frame.to_numpy(dtype=np.int64)
    except (TypeError, ValueError) as exc:
        raise DataLoadError(f"{path} contains non-integer values: {exc}") from exc

    labels = values[:, 0]
    bad = np.flatnonzero((labels < 0) | (labels >= num_classes))
    if bad.size:
        raise DataLoadError(
            f"{path} row {int(bad[0])} has label {int(labels[bad[0]])}, "
            f"expected 0..{num_classes - 1}"
        )
    pixels = values[:, 1:]
    if pixels.min(initial=0) < 0 or pixels.max(initial=0) > 255:
        raise DataLoadError(f"{path} has pixel values outside 0..255")

    images = reorient_emnist(pixels, image_size)
    return [
        Sample.from_label(normalize_pixels(image).reshape(-1), int(label), num_classes)
        for image, label in zip(images, labels)
    ]


@register_dataset("emnist_csv")
def build_emnist_csv(
    *,
    train_path: str | Path = DEFAULT_TRAIN_FILE,
    test_path: str | Path | None = DEFAULT_TEST_FILE,
    max_train: int = 0,
    max_test: int = 0,
    num_classes: int = 10,
    training_ratio: float = 0.9,
) -> DatasetSpec:
    """Create a :class:`DatasetSpec` from EMNIST CSV files.

    With ``test_path=None`` the training file is split contiguously using
    ``training_ratio``.
    """

    train = load_emnist_csv(train_path, max_samples=max_train, num_classes=num_classes)
    if test_path is None:
        train, test = split_train_test(train, training_ratio)
    else:
        test = load_emnist_csv(test_path, max_samples=max_test, num_classes=num_classes)
    if not train or not test:
        raise DataLoadError(
            f"{train_path} yields {len(train)} training and {len(test)} evaluation rows; "
            "both splits need at least one sample"
        )

    provenance = {
        "type": "emnist_csv",
        "train_path": str(train_path),
        "test_path": str(test_path) if test_path is not None else None,
        "max_train": max_train,
        "max_test": max_test,
        "training_ratio": training_ratio if test_path is None else None,
    }
    return DatasetSpec(
        name="emnist_csv",
        train=tuple(train),
        test=tuple(test),
        num_classes=num_classes,
        input_size=IMAGE_SIZE * IMAGE_SIZE,
        provenance=provenance,
    )


__all__ = ["build_emnist_csv", "load_emnist_csv"]
