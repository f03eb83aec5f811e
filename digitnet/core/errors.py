"""Exceptions raised by the digitnet core and its collaborators."""

from __future__ import annotations


class ShapeMismatch(ValueError):
    """A vector length does not match the declared layer size."""


class StatePrecondition(RuntimeError):
    """A backward-pass step ran without a matching forward pass."""


class DataLoadError(OSError):
    """A dataset could not be read or parsed."""


class TrainingCancelled(RuntimeError):
    """Training stopped because cancellation was requested."""

    def __init__(self, best_accuracy: float, epochs_completed: int) -> None:
        super().__init__(
            f"Training cancelled after {epochs_completed} epoch(s); "
            f"best accuracy {best_accuracy:.4f}"
        )
        self.best_accuracy = best_accuracy
        self.epochs_completed = epochs_completed


__all__ = ["DataLoadError", "ShapeMismatch", "StatePrecondition", "TrainingCancelled"]
