"""Epoch/batch training loop with learning-rate decay and early stopping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from loguru import logger

from ..core.errors import ShapeMismatch, TrainingCancelled
from ..core.network import Network
from ..core.types import Metrics, Sample, TrainerConfig, TrainResult
from .metrics import accuracy as evaluate_accuracy

PLATEAU_DECAY_EPOCHS = 5


class CancelToken(Protocol):
    def is_set(self) -> bool: ...


class LearningRateSchedule:
    """Current learning rate plus the two decay triggers.

    Accuracy thresholds are consumed in order, at most once each. A plateau
    decay fires every :data:`PLATEAU_DECAY_EPOCHS` consecutive epochs
    without a new best accuracy. Both clamp at ``min_learning_rate``.
    """

    def __init__(self, config: TrainerConfig) -> None:
        self.rate = config.initial_learning_rate
        self.min_rate = config.min_learning_rate
        self.decay_factor = config.decay_factor
        self.thresholds = config.accuracy_thresholds
        self.next_threshold = 0

    def _decay(self) -> None:
        self.rate = max(self.rate * self.decay_factor, self.min_rate)

    def on_accuracy(self, accuracy: float) -> float | None:
        """Decay on the next unconsumed threshold; return it if it fired."""

        if self.next_threshold >= len(self.thresholds):
            return None
        threshold = self.thresholds[self.next_threshold]
        if accuracy < threshold:
            return None
        self._decay()
        self.next_threshold += 1
        return threshold

    def on_plateau(self, epochs_without_improvement: int) -> bool:
        if epochs_without_improvement <= 0:
            return False
        if epochs_without_improvement % PLATEAU_DECAY_EPOCHS != 0:
            return False
        if self.rate <= self.min_rate:
            return False
        self._decay()
        return True


@dataclass
class EarlyStopping:
    patience: int
    best_accuracy: float = 0.0
    epochs_without_improvement: int = 0

    def update(self, accuracy: float) -> bool:
        """Record ``accuracy``; return True if it is a new best."""

        if accuracy > self.best_accuracy:
            self.best_accuracy = accuracy
            self.epochs_without_improvement = 0
            return True
        self.epochs_without_improvement += 1
        return False

    @property
    def exhausted(self) -> bool:
        return self.epochs_without_improvement >= self.patience


def _notify_start(hook: object | None, epoch: int, total: int) -> None:
    if hook is None:
        return
    if hasattr(hook, "on_epoch_start"):
        hook.on_epoch_start(epoch, total)  # type: ignore[attr-defined]
    elif callable(hook):
        hook(epoch, total)


def _notify_end(hook: object | None, epoch: int, total: int, accuracy: float) -> None:
    if hook is None:
        return
    if hasattr(hook, "on_epoch_end"):
        hook.on_epoch_end(epoch, total, accuracy)  # type: ignore[attr-defined]
    elif callable(hook):
        hook(epoch, total, accuracy)


class Trainer:
    """Drive a :class:`Network` over mini-batches until a stop condition."""

    def __init__(
        self,
        network: Network,
        callbacks: Sequence[object] | None = None,
        *,
        track_cost: bool = True,
    ) -> None:
        self.network = network
        self.callbacks = list(callbacks or [])
        self.track_cost = track_cost
        self.last_result: TrainResult | None = None

    def train(
        self,
        train_set: Sequence[Sample],
        test_set: Sequence[Sample],
        config: TrainerConfig,
        progress_hook: object | None = None,
        cancel: CancelToken | None = None,
    ) -> float:
        """Train and return the final accuracy in ``[0, 1]``.

        Returns the current accuracy when ``target_accuracy`` is reached, and
        the best accuracy seen when patience or ``max_epochs`` runs out.
        """

        self._validate(train_set, "training")
        self._validate(test_set, "evaluation")

        schedule = LearningRateSchedule(config)
        stopper = EarlyStopping(patience=config.patience)
        accuracy_history: list[float] = []
        rate_history: list[float] = []
        total = config.max_epochs

        for epoch in range(1, total + 1):
            self._check_cancel(cancel, stopper, epoch - 1)
            _notify_start(progress_hook, epoch, total)
            logger.info(f"Epoch {epoch}/{total} (learning rate: {schedule.rate:.5f})")
            rate_history.append(schedule.rate)

            epoch_cost = self._run_epoch(
                train_set, config.batch_size, schedule.rate, cancel, stopper, epoch
            )

            acc = evaluate_accuracy(self.network, test_set)
            accuracy_history.append(acc)
            logger.info(f"  Test accuracy: {acc * 100:.2f}%")

            threshold = schedule.on_accuracy(acc)
            if threshold is not None:
                logger.info(
                    f"  Reached {threshold * 100:.1f}% accuracy - "
                    f"reducing learning rate to {schedule.rate:.5f}"
                )

            if not stopper.update(acc):
                if schedule.on_plateau(stopper.epochs_without_improvement):
                    logger.info(
                        f"  No improvement for {stopper.epochs_without_improvement} epochs - "
                        f"reducing learning rate to {schedule.rate:.5f}"
                    )

            metrics: Metrics = {"accuracy": acc, "learning_rate": rate_history[-1]}
            if epoch_cost is not None:
                metrics["cost"] = epoch_cost
            self._emit_epoch(epoch, metrics)
            _notify_end(progress_hook, epoch, total, acc)

            if acc >= config.target_accuracy:
                logger.info("Reached target accuracy; stopping training")
                return self._finish(
                    acc, stopper, epoch, "target_reached", accuracy_history, rate_history
                )
            if stopper.exhausted:
                logger.info(f"No improvement for {config.patience} epochs; stopping training")
                return self._finish(
                    stopper.best_accuracy,
                    stopper,
                    epoch,
                    "patience",
                    accuracy_history,
                    rate_history,
                )

        return self._finish(
            stopper.best_accuracy, stopper, total, "max_epochs", accuracy_history, rate_history
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _run_epoch(
        self,
        train_set: Sequence[Sample],
        batch_size: int,
        rate: float,
        cancel: CancelToken | None,
        stopper: EarlyStopping,
        epoch: int,
    ) -> float | None:
        n = len(train_set)
        num_batches = (n + batch_size - 1) // batch_size
        total_cost = 0.0
        for batch_idx, start in enumerate(range(0, n, batch_size)):
            self._check_cancel(cancel, stopper, epoch - 1)
            batch = train_set[start : start + batch_size]
            self.network.learn(batch, rate)
            if not self.track_cost:
                continue
            batch_cost = self.network.cost(batch)
            total_cost += batch_cost * len(batch)
            if batch_idx % 10 == 0:
                logger.debug(f"  Batch {batch_idx + 1}/{num_batches}, cost: {batch_cost:.4f}")
        if not self.track_cost:
            return None
        avg_cost = total_cost / n
        logger.info(f"  Average cost: {avg_cost:.4f}")
        return avg_cost

    def _validate(self, samples: Sequence[Sample], name: str) -> None:
        if not samples:
            raise ValueError(f"The {name} set is empty")
        for idx, sample in enumerate(samples):
            try:
                self.network.check_sample(sample)
            except ShapeMismatch as exc:
                raise ShapeMismatch(f"{name} sample {idx}: {exc}") from exc

    @staticmethod
    def _check_cancel(
        cancel: CancelToken | None, stopper: EarlyStopping, epochs_completed: int
    ) -> None:
        if cancel is not None and cancel.is_set():
            raise TrainingCancelled(stopper.best_accuracy, epochs_completed)

    def _emit_epoch(self, epoch: int, metrics: Metrics) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    def _finish(
        self,
        value: float,
        stopper: EarlyStopping,
        epochs: int,
        reason: str,
        accuracy_history: list[float],
        rate_history: list[float],
    ) -> float:
        self.last_result = TrainResult(
            final_accuracy=value,
            best_accuracy=stopper.best_accuracy,
            epochs=epochs,
            stop_reason=reason,
            accuracy_history=list(accuracy_history),
            learning_rate_history=list(rate_history),
        )
        return value


def train(
    network: Network,
    train_set: Sequence[Sample],
    test_set: Sequence[Sample],
    config: TrainerConfig,
    progress_hook: object | None = None,
) -> float:
    """Functional shorthand for ``Trainer(network).train(...)``."""

    return Trainer(network).train(train_set, test_set, config, progress_hook)


__all__ = ["EarlyStopping", "LearningRateSchedule", "Trainer", "train"]
