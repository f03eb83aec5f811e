"""digitnet public API."""

from .core import activations  # noqa: F401
from .core import types  # noqa: F401
from .core.errors import DataLoadError, ShapeMismatch, StatePrecondition, TrainingCancelled
from .core.layer import DenseLayer
from .core.network import Network, NetworkSnapshot
from .core.types import Sample, TrainerConfig
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer, train

__all__ = [
    "DataLoadError",
    "DenseLayer",
    "Network",
    "NetworkSnapshot",
    "Sample",
    "ShapeMismatch",
    "StatePrecondition",
    "Trainer",
    "TrainerConfig",
    "TrainingCancelled",
    "activations",
    "load_preset",
    "presets",
    "run_pipeline",
    "train",
    "types",
]
