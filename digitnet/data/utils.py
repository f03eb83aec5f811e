"""Utility helpers for dataset loaders."""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from ..core.types import Array, Sample

IMAGE_SIZE = 28


def reorient_emnist(flat_pixels: Array, size: int = IMAGE_SIZE) -> Array:
    """Turn raw EMNIST rows into upright images.

    The CSV stores each image transposed; accepts a single row of
    ``size * size`` values or a 2-D block of rows.
    """

    pixels = np.asarray(flat_pixels)
    if pixels.ndim == 1:
        return pixels.reshape(size, size).T
    return pixels.reshape(pixels.shape[0], size, size).transpose(0, 2, 1)


def normalize_pixels(pixels: Array) -> Array:
    """Scale 0..255 intensities into ``[0, 1]``."""

    return np.asarray(pixels, dtype=np.float64) / 255.0


def split_train_test(
    samples: Sequence[Sample], training_ratio: float
) -> Tuple[List[Sample], List[Sample]]:
    """Contiguous split: the first ``training_ratio`` share becomes training data."""

    if not 0 < training_ratio < 1:
        raise ValueError("training_ratio must be in (0, 1)")
    cut = int(len(samples) * training_ratio)
    return list(samples[:cut]), list(samples[cut:])


__all__ = [
    "IMAGE_SIZE",
    "normalize_pixels",
    "reorient_emnist",
    "split_train_test",
]
