"""Training loop, evaluation and pipeline assembly."""

from .background import BackgroundTraining, ProgressEvent
from .trainer import EarlyStopping, LearningRateSchedule, Trainer, train

__all__ = [
    "BackgroundTraining",
    "EarlyStopping",
    "LearningRateSchedule",
    "ProgressEvent",
    "Trainer",
    "train",
]
