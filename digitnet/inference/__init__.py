"""Inference-only helpers that run alongside training."""

from .preview import LivePreview, grid_to_inputs

__all__ = ["LivePreview", "grid_to_inputs"]
