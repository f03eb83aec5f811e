"""Activation and cost utilities for digitnet."""

from __future__ import annotations

import numpy as np

from .types import Array


def sigmoid(x: Array) -> Array:
    """Return the logistic activation ``1 / (1 + e^-x)``."""

    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def sigmoid_deriv(x: Array) -> Array:
    """Derivative of :func:`sigmoid` with respect to its input."""

    s = sigmoid(x)
    return s * (1.0 - s)


def node_cost(output: Array, expected: Array) -> Array:
    """Squared error per output node."""

    error = output - expected
    return error * error


def node_cost_deriv(output: Array, expected: Array) -> Array:
    return 2.0 * (output - expected)
