"""Core typing contracts for digitnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

from .errors import ShapeMismatch

Array = np.ndarray


def _frozen_vector(values: Sequence[float] | Array) -> Array:
    vector = np.array(values, dtype=np.float64).reshape(-1)
    vector.setflags(write=False)
    return vector


@dataclass(frozen=True)
class Sample:
    """An input vector paired with the output the network should produce."""

    inputs: Array
    expected_output: Array
    label: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", _frozen_vector(self.inputs))
        object.__setattr__(self, "expected_output", _frozen_vector(self.expected_output))

    @classmethod
    def from_label(
        cls, inputs: Sequence[float] | Array, label: int, num_classes: int
    ) -> "Sample":
        if not 0 <= label < num_classes:
            raise ShapeMismatch(f"Label {label} outside of [0, {num_classes})")
        expected = np.zeros(num_classes, dtype=np.float64)
        expected[label] = 1.0
        return cls(inputs=inputs, expected_output=expected, label=int(label))

    @classmethod
    def from_pixels(cls, pixels: Array, label: int, num_classes: int) -> "Sample":
        """Flatten a grid of 0..255 intensities row-major and scale into [0, 1]."""

        grid = np.asarray(pixels, dtype=np.float64)
        return cls.from_label(grid.reshape(-1) / 255.0, label, num_classes)


def samples_from_pixel_arrays(
    grids: Sequence[Array], labels: Sequence[int], num_classes: int
) -> List[Sample]:
    if len(grids) != len(labels):
        raise ShapeMismatch(f"Got {len(grids)} images but {len(labels)} labels")
    return [Sample.from_pixels(g, int(y), num_classes) for g, y in zip(grids, labels)]


@dataclass(frozen=True)
class ForwardContext:
    """Values captured by one dense-layer forward pass."""

    inputs: Array
    weighted_sum: Array
    activation: Array


@dataclass(frozen=True)
class LayerParameters:
    weights: Array
    biases: Array


@dataclass(frozen=True)
class TrainerConfig:
    """Hyperparameters for :class:`digitnet.training.trainer.Trainer`.

    Every field is required; there are no implicit defaults.
    """

    initial_learning_rate: float
    min_learning_rate: float
    decay_factor: float
    batch_size: int
    max_epochs: int
    target_accuracy: float
    patience: int
    accuracy_thresholds: tuple[float, ...]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "accuracy_thresholds", tuple(float(t) for t in self.accuracy_thresholds)
        )
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.max_epochs <= 0:
            raise ValueError("max_epochs must be positive")
        if self.patience <= 0:
            raise ValueError("patience must be positive")
        if not 0 < self.decay_factor <= 1:
            raise ValueError("decay_factor must be in (0, 1]")
        if self.min_learning_rate > self.initial_learning_rate:
            raise ValueError("min_learning_rate must not exceed initial_learning_rate")
        if list(self.accuracy_thresholds) != sorted(self.accuracy_thresholds):
            raise ValueError("accuracy_thresholds must be ascending")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "TrainerConfig":
        required = {
            "initial_learning_rate",
            "min_learning_rate",
            "decay_factor",
            "batch_size",
            "max_epochs",
            "target_accuracy",
            "patience",
            "accuracy_thresholds",
        }
        missing = required - set(config)
        if missing:
            raise KeyError(f"Trainer config is missing: {', '.join(sorted(missing))}")
        return cls(
            initial_learning_rate=float(config["initial_learning_rate"]),
            min_learning_rate=float(config["min_learning_rate"]),
            decay_factor=float(config["decay_factor"]),
            batch_size=int(config["batch_size"]),
            max_epochs=int(config["max_epochs"]),
            target_accuracy=float(config["target_accuracy"]),
            patience=int(config["patience"]),
            accuracy_thresholds=tuple(config["accuracy_thresholds"]),
        )


@dataclass(frozen=True)
class TrainResult:
    """Outcome of a :meth:`Trainer.train` call."""

    final_accuracy: float
    best_accuracy: float
    epochs: int
    stop_reason: str
    accuracy_history: List[float] = field(default_factory=list)
    learning_rate_history: List[float] = field(default_factory=list)


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`digitnet.training.pipelines.run_pipeline`."""

    accuracy: float
    epochs: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""


Metrics = Dict[str, float]
