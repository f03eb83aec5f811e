"""Chained dense layers with batched gradient-descent updates."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Sequence

import numpy as np

from .activations import node_cost, sigmoid
from .errors import ShapeMismatch
from .layer import DenseLayer
from .types import Array, ForwardContext, LayerParameters, Sample


def index_of_max(values: Array) -> int:
    """Index of the largest entry; ties resolve to the lowest index."""

    vector = np.asarray(values).reshape(-1)
    if vector.size == 0:
        raise ShapeMismatch("Cannot take the maximum of an empty vector")
    best = 0
    best_value = vector[0]
    for idx in range(1, vector.size):
        if vector[idx] > best_value:
            best_value = vector[idx]
            best = idx
    return best


@dataclass(frozen=True)
class NetworkSnapshot:
    """Read-only copy of every layer's parameters at a given version.

    Used by inference running alongside training: it never observes a
    partially applied optimizer step.
    """

    version: int
    layers: tuple[LayerParameters, ...]

    @property
    def input_size(self) -> int:
        return int(self.layers[0].weights.shape[0])

    @property
    def output_size(self) -> int:
        return int(self.layers[-1].weights.shape[1])

    def forward(self, inputs: Array) -> Array:
        x = np.asarray(inputs, dtype=np.float64).reshape(-1)
        if x.shape[0] != self.input_size:
            raise ShapeMismatch(
                f"Network input has length {x.shape[0]}, expected {self.input_size}"
            )
        for params in self.layers:
            x = sigmoid(params.biases + x @ params.weights)
        return x

    def classify(self, inputs: Array) -> int:
        return index_of_max(self.forward(inputs))


class Network:
    """Ordered chain of :class:`DenseLayer` objects.

    ``Network([784, 256, 10])`` builds two layers, 784->256 and 256->10.
    The architecture is fixed once constructed.
    """

    def __init__(
        self,
        layer_sizes: Sequence[int],
        *,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        sizes = [int(s) for s in layer_sizes]
        if len(sizes) < 2:
            raise ValueError("A network needs at least an input and an output size")
        if any(s <= 0 for s in sizes):
            raise ValueError(f"Layer sizes must be positive: {sizes}")
        if rng is None:
            rng = np.random.default_rng(seed)
        self._layers: tuple[DenseLayer, ...] = tuple(
            DenseLayer(n_in, n_out, rng) for n_in, n_out in zip(sizes[:-1], sizes[1:])
        )
        self._lock = threading.Lock()
        self._version = 0

    @property
    def layers(self) -> tuple[DenseLayer, ...]:
        return self._layers

    @property
    def layer_sizes(self) -> List[int]:
        return [self._layers[0].n_in] + [layer.n_out for layer in self._layers]

    @property
    def input_size(self) -> int:
        return self._layers[0].n_in

    @property
    def output_size(self) -> int:
        return self._layers[-1].n_out

    @property
    def version(self) -> int:
        """Number of optimizer steps applied so far."""

        return self._version

    def parameter_count(self) -> int:
        return int(sum(layer.parameter_count() for layer in self._layers))

    # ------------------------------------------------------------------
    # Inference

    def _check_inputs(self, inputs: Array) -> Array:
        x = np.asarray(inputs, dtype=np.float64).reshape(-1)
        if x.shape[0] != self.input_size:
            raise ShapeMismatch(
                f"Network input has length {x.shape[0]}, expected {self.input_size}"
            )
        return x

    def check_sample(self, sample: Sample) -> None:
        self._check_inputs(sample.inputs)
        if sample.expected_output.shape[0] != self.output_size:
            raise ShapeMismatch(
                f"Expected output has length {sample.expected_output.shape[0]}, "
                f"expected {self.output_size}"
            )

    def forward_contexts(self, inputs: Array) -> List[ForwardContext]:
        """Call-local forward pass returning every layer's context."""

        x = self._check_inputs(inputs)
        contexts: List[ForwardContext] = []
        for layer in self._layers:
            ctx = layer.evaluate(x)
            contexts.append(ctx)
            x = ctx.activation
        return contexts

    def forward(self, inputs: Array) -> Array:
        return self.forward_contexts(inputs)[-1].activation

    def classify(self, inputs: Array) -> int:
        return index_of_max(self.forward(inputs))

    def cost(self, data: Sample | Sequence[Sample]) -> float:
        """Summed squared error of one sample, or its mean over a batch."""

        if isinstance(data, Sample):
            self.check_sample(data)
            outputs = self.forward(data.inputs)
            return float(np.sum(node_cost(outputs, data.expected_output)))
        batch = list(data)
        if not batch:
            raise ValueError("Cannot compute the cost of an empty batch")
        return float(sum(self.cost(sample) for sample in batch) / len(batch))

    # ------------------------------------------------------------------
    # Training

    def learn(self, batch: Iterable[Sample], learn_rate: float) -> None:
        """Apply one gradient-descent step using the mean gradient of ``batch``."""

        samples = list(batch)
        if not samples:
            raise ValueError("Cannot learn from an empty batch")
        for sample in samples:
            self.check_sample(sample)

        for sample in samples:
            self._update_gradients(sample)

        step = learn_rate / len(samples)
        with self._lock:
            for layer in self._layers:
                layer.apply_gradients(step)
            self._version += 1

        for layer in self._layers:
            layer.clear_gradients()

    def _update_gradients(self, sample: Sample) -> None:
        contexts = self.forward_contexts(sample.inputs)

        output_layer = self._layers[-1]
        node_values = output_layer.output_node_values(sample.expected_output, contexts[-1])
        output_layer.accumulate_gradients(node_values, contexts[-1])

        for idx in range(len(self._layers) - 2, -1, -1):
            hidden = self._layers[idx]
            node_values = hidden.hidden_node_values(
                self._layers[idx + 1], node_values, contexts[idx]
            )
            hidden.accumulate_gradients(node_values, contexts[idx])

    # ------------------------------------------------------------------
    # Parameter access

    def snapshot(self) -> NetworkSnapshot:
        with self._lock:
            return NetworkSnapshot(
                version=self._version,
                layers=tuple(layer.parameters() for layer in self._layers),
            )

    def state_dict(self) -> Mapping[str, Array]:
        state = {}
        with self._lock:
            for idx, layer in enumerate(self._layers):
                state[f"W{idx}"] = layer.weights.copy()
                state[f"b{idx}"] = layer.biases.copy()
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        """Replace every layer's parameters, or none of them on error."""

        staged = []
        for idx, layer in enumerate(self._layers):
            for key in (f"W{idx}", f"b{idx}"):
                if key not in state:
                    raise KeyError(f"Missing parameter {key} in state dict")
            weights = np.array(state[f"W{idx}"], dtype=np.float64)
            biases = np.array(state[f"b{idx}"], dtype=np.float64).reshape(-1)
            if weights.shape != layer.weights.shape or biases.shape != layer.biases.shape:
                raise ShapeMismatch(
                    f"Layer {idx} expects weights {layer.weights.shape} and biases "
                    f"{layer.biases.shape}, got {weights.shape} and {biases.shape}"
                )
            staged.append((weights, biases))

        with self._lock:
            for layer, (weights, biases) in zip(self._layers, staged):
                layer.set_parameters(weights, biases)
            self._version += 1

    def __repr__(self) -> str:
        return f"Network(layer_sizes={self.layer_sizes})"


__all__ = ["Network", "NetworkSnapshot", "index_of_max"]
