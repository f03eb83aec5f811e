"""Core numerical primitives for digitnet."""

from . import activations, errors, types
from .layer import DenseLayer
from .network import Network, NetworkSnapshot

__all__ = ["DenseLayer", "Network", "NetworkSnapshot", "activations", "errors", "types"]
