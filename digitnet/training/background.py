"""Run training on a worker thread and publish progress as events."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Iterator, Sequence

from loguru import logger

from ..core.errors import TrainingCancelled
from ..core.types import Sample, TrainerConfig
from .trainer import Trainer

EVENT_KINDS = ("epoch_start", "epoch_end", "finished", "cancelled", "failed")


@dataclass(frozen=True)
class ProgressEvent:
    kind: str
    epoch: int = 0
    total_epochs: int = 0
    accuracy: float | None = None
    message: str = ""

    @property
    def terminal(self) -> bool:
        return self.kind in {"finished", "cancelled", "failed"}


class _QueueHook:
    def __init__(self, events: "queue.Queue[ProgressEvent]") -> None:
        self._events = events

    def on_epoch_start(self, epoch: int, total: int) -> None:
        self._events.put(ProgressEvent("epoch_start", epoch, total))

    def on_epoch_end(self, epoch: int, total: int, accuracy: float) -> None:
        self._events.put(ProgressEvent("epoch_end", epoch, total, accuracy))


class BackgroundTraining:
    """Asynchronous wrapper around :meth:`Trainer.train`.

    Progress is delivered through :meth:`events`. Readers that need the
    network's parameters while training runs must go through
    :meth:`digitnet.core.network.Network.snapshot`.
    """

    def __init__(
        self,
        trainer: Trainer,
        train_set: Sequence[Sample],
        test_set: Sequence[Sample],
        config: TrainerConfig,
    ) -> None:
        self.trainer = trainer
        self.train_set = train_set
        self.test_set = test_set
        self.config = config
        self._events: "queue.Queue[ProgressEvent]" = queue.Queue()
        self._cancel = threading.Event()
        self._thread: threading.Thread | None = None
        self._result: float | None = None
        self._error: BaseException | None = None

    @property
    def network(self):
        return self.trainer.network

    def start(self) -> "BackgroundTraining":
        if self._thread is not None:
            raise RuntimeError("Background training already started")
        self._thread = threading.Thread(target=self._run, name="digitnet-train", daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        hook = _QueueHook(self._events)
        try:
            self._result = self.trainer.train(
                self.train_set, self.test_set, self.config, hook, cancel=self._cancel
            )
        except TrainingCancelled as exc:
            self._error = exc
            self._events.put(
                ProgressEvent(
                    "cancelled",
                    exc.epochs_completed,
                    self.config.max_epochs,
                    exc.best_accuracy,
                    str(exc),
                )
            )
        except Exception as exc:
            logger.exception("Background training failed")
            self._error = exc
            self._events.put(ProgressEvent("failed", message=str(exc)))
        else:
            result = self.trainer.last_result
            epochs = result.epochs if result is not None else 0
            self._events.put(
                ProgressEvent("finished", epochs, self.config.max_epochs, self._result)
            )

    def cancel(self) -> None:
        self._cancel.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker; return True once it has stopped."""

        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def result(self, timeout: float | None = None) -> float:
        """Final accuracy; re-raises whatever stopped the worker."""

        if not self.join(timeout):
            raise TimeoutError("Background training still running")
        if self._error is not None:
            raise self._error
        if self._result is None:
            raise RuntimeError("Background training was never started")
        return self._result

    def events(self, timeout: float | None = None) -> Iterator[ProgressEvent]:
        """Yield events until a terminal one arrives."""

        while True:
            try:
                event = self._events.get(timeout=timeout)
            except queue.Empty:
                return
            yield event
            if event.terminal:
                return


__all__ = ["BackgroundTraining", "EVENT_KINDS", "ProgressEvent"]
