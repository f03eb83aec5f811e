"""Fully-connected sigmoid layer with hand-written backpropagation."""

from __future__ import annotations

import numpy as np

from .activations import node_cost_deriv, sigmoid, sigmoid_deriv
from .errors import ShapeMismatch, StatePrecondition
from .types import Array, ForwardContext, LayerParameters


def _as_vector(values: Array, size: int, what: str) -> Array:
    vector = np.asarray(values, dtype=np.float64).reshape(-1)
    if vector.shape[0] != size:
        raise ShapeMismatch(f"{what} has length {vector.shape[0]}, expected {size}")
    return vector


class DenseLayer:
    """One dense transformation ``sigmoid(bias + inputs @ weights)``.

    ``weights[i][j]`` connects input node ``i`` to output node ``j``.
    Gradients are accumulated across calls to :meth:`accumulate_gradients`
    and only reset by :meth:`clear_gradients`.

    The forward cache written by :meth:`forward` is single-writer state: it
    is consumed by the next :meth:`accumulate_gradients` call. Callers that
    need reentrancy should use :meth:`evaluate` and pass the returned
    :class:`ForwardContext` to the backward methods explicitly.
    """

    def __init__(self, n_in: int, n_out: int, rng: np.random.Generator) -> None:
        if n_in <= 0 or n_out <= 0:
            raise ValueError(f"Layer sizes must be positive, got {n_in}->{n_out}")
        self.weights = rng.uniform(-1.0, 1.0, size=(n_in, n_out)) / np.sqrt(n_in)
        self.biases = np.zeros(n_out, dtype=np.float64)
        self.grad_w = np.zeros((n_in, n_out), dtype=np.float64)
        self.grad_b = np.zeros(n_out, dtype=np.float64)
        self._cache: ForwardContext | None = None

    @property
    def n_in(self) -> int:
        return int(self.weights.shape[0])

    @property
    def n_out(self) -> int:
        return int(self.weights.shape[1])

    def parameter_count(self) -> int:
        return int(self.weights.size + self.biases.size)

    def set_parameters(self, weights: Array, biases: Array) -> None:
        weights = np.array(weights, dtype=np.float64)
        biases = np.array(biases, dtype=np.float64).reshape(-1)
        if weights.shape != self.weights.shape:
            raise ShapeMismatch(f"weights shape {weights.shape} != {self.weights.shape}")
        if biases.shape != self.biases.shape:
            raise ShapeMismatch(f"biases shape {biases.shape} != {self.biases.shape}")
        self.weights = weights
        self.biases = biases
        self._cache = None

    def parameters(self) -> LayerParameters:
        weights = self.weights.copy()
        biases = self.biases.copy()
        weights.setflags(write=False)
        biases.setflags(write=False)
        return LayerParameters(weights=weights, biases=biases)

    # ------------------------------------------------------------------
    # Forward pass

    def evaluate(self, inputs: Array) -> ForwardContext:
        """Run the layer without touching instance state."""

        x = _as_vector(inputs, self.n_in, "Layer input")
        weighted_sum = self.biases + x @ self.weights
        return ForwardContext(
            inputs=x, weighted_sum=weighted_sum, activation=sigmoid(weighted_sum)
        )

    def forward(self, inputs: Array) -> Array:
        context = self.evaluate(inputs)
        self._cache = context
        return context.activation

    def _context(self, context: ForwardContext | None, step: str) -> ForwardContext:
        if context is not None:
            return context
        if self._cache is None:
            raise StatePrecondition(f"{step} called before forward on this layer")
        return self._cache

    # ------------------------------------------------------------------
    # Backward pass

    def output_node_values(
        self, expected: Array, context: ForwardContext | None = None
    ) -> Array:
        """Seed error signal for the output layer."""

        ctx = self._context(context, "output_node_values")
        target = _as_vector(expected, self.n_out, "Expected output")
        cost_deriv = node_cost_deriv(ctx.activation, target)
        return sigmoid_deriv(ctx.weighted_sum) * cost_deriv

    def hidden_node_values(
        self,
        next_layer: "DenseLayer",
        next_node_values: Array,
        context: ForwardContext | None = None,
    ) -> Array:
        """Propagate ``next_node_values`` back through ``next_layer``'s weights."""

        ctx = self._context(context, "hidden_node_values")
        if next_layer.n_in != self.n_out:
            raise ShapeMismatch(
                f"Next layer expects {next_layer.n_in} inputs, this layer has {self.n_out} outputs"
            )
        values = _as_vector(next_node_values, next_layer.n_out, "Next node values")
        raw = next_layer.weights @ values
        return raw * sigmoid_deriv(ctx.weighted_sum)

    def accumulate_gradients(
        self, node_values: Array, context: ForwardContext | None = None
    ) -> None:
        if context is None:
            ctx = self._context(None, "accumulate_gradients")
            self._cache = None
        else:
            ctx = context
        values = _as_vector(node_values, self.n_out, "Node values")
        self.grad_w += np.outer(ctx.inputs, values)
        self.grad_b += values

    def apply_gradients(self, rate: float) -> None:
        """Take one descent step; ``rate`` is expected to be pre-divided by batch size."""

        self.weights -= rate * self.grad_w
        self.biases -= rate * self.grad_b

    def clear_gradients(self) -> None:
        self.grad_w.fill(0.0)
        self.grad_b.fill(0.0)

    def __repr__(self) -> str:
        return f"DenseLayer(n_in={self.n_in}, n_out={self.n_out})"


__all__ = ["DenseLayer"]
