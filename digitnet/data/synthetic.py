"""Deterministic digit-like fixture that needs no files."""

from __future__ import annotations

from typing import List

import numpy as np

from ..core.types import Sample
from .registry import DatasetSpec, register_dataset


def _prototypes(num_classes: int, image_size: int, rng: np.random.Generator) -> np.ndarray:
    return (rng.random((num_classes, image_size, image_size)) > 0.5).astype(np.float64) * 255.0


def make_samples(
    n: int,
    *,
    num_classes: int,
    image_size: int,
    noise: float,
    prototypes: np.ndarray,
    rng: np.random.Generator,
) -> List[Sample]:
    labels = rng.permutation(np.arange(n) % num_classes)
    samples: List[Sample] = []
    for label in labels:
        jitter = rng.normal(0.0, noise * 255.0, size=(image_size, image_size))
        pixels = np.clip(prototypes[label] + jitter, 0.0, 255.0)
        samples.append(Sample.from_pixels(pixels, int(label), num_classes))
    return samples


def _factory(
    *,
    n_train: int = 200,
    n_test: int = 50,
    num_classes: int = 10,
    image_size: int = 8,
    noise: float = 0.25,
    seed: int = 0,
) -> DatasetSpec:
    if n_train <= 0 or n_test <= 0:
        raise ValueError("n_train and n_test must be positive")
    rng = np.random.default_rng(seed)
    prototypes = _prototypes(num_classes, image_size, rng)
    common = dict(
        num_classes=num_classes,
        image_size=image_size,
        noise=noise,
        prototypes=prototypes,
        rng=rng,
    )
    train = make_samples(n_train, **common)
    test = make_samples(n_test, **common)

    provenance = {
        "type": "synthetic",
        "n_train": n_train,
        "n_test": n_test,
        "image_size": image_size,
        "noise": noise,
        "seed": seed,
    }
    return DatasetSpec(
        name="synthetic",
        train=tuple(train),
        test=tuple(test),
        num_classes=num_classes,
        input_size=image_size * image_size,
        provenance=provenance,
    )


register_dataset("synthetic", _factory)
