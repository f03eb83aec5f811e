"""Periodic inference over a user-supplied pixel grid."""

from __future__ import annotations

import threading
from typing import Callable, List, Tuple

import numpy as np
from loguru import logger

from ..core.network import Network
from ..core.types import Array
from ..data.utils import normalize_pixels
from ..training.metrics import top_k

Prediction = List[Tuple[int, float]]

DEFAULT_INTERVAL = 0.1
DEFAULT_TOP_K = 5


def grid_to_inputs(pixels: Array) -> Array:
    """Flatten a 0..255 grid row-major into a [0, 1] input vector."""

    return normalize_pixels(pixels).reshape(-1)


class LivePreview:
    """Classify the latest drawing at a fixed interval.

    Each refresh reads ``grid_source()``, skips blank grids (the sink then
    receives an empty ranking) and otherwise ranks the activations of a
    fresh :class:`NetworkSnapshot`. Live parameters are never read, so the
    preview may lag training by at most one optimizer step. A failed
    refresh is logged and counted in ``failures``; the loop keeps running.
    """

    def __init__(
        self,
        network: Network,
        grid_source: Callable[[], Array],
        sink: Callable[[Prediction], None],
        *,
        interval: float = DEFAULT_INTERVAL,
        k: int = DEFAULT_TOP_K,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.network = network
        self.grid_source = grid_source
        self.sink = sink
        self.interval = interval
        self.k = k
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_version: int | None = None
        self.last_error: Exception | None = None
        self.failures = 0

    def refresh_once(self) -> Prediction:
        pixels = np.asarray(self.grid_source())
        if not np.any(pixels > 0):
            ranking: Prediction = []
        else:
            snapshot = self.network.snapshot()
            self.last_version = snapshot.version
            ranking = top_k(snapshot.forward(grid_to_inputs(pixels)), self.k)
        self.sink(ranking)
        return ranking

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.refresh_once()
            except Exception as exc:
                # A stale preview is acceptable; retry on the next tick.
                logger.exception("Live preview refresh failed")
                self.last_error = exc
                self.failures += 1

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "LivePreview":
        if self.running:
            raise RuntimeError("Live preview already running")
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="digitnet-preview", daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)


__all__ = ["LivePreview", "grid_to_inputs"]
