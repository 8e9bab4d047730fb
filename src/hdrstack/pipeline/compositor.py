"""
Pixel-wise comparison of the current image against a reference image.

Blending happens in linear space, before tonemapping, so exposure and gamma
act on the comparison result the same way they act on a plain image.
"""
import enum
from typing import Optional

import numpy as np

from hdrstack import math_ops
from hdrstack.config import normalize_blend_name


class BlendMode(enum.IntEnum):
    """Closed set of blend operators. Values are the kernel codes."""
    CURRENT = math_ops.BLEND_CURRENT
    REFERENCE = math_ops.BLEND_REFERENCE
    DIFFERENCE = math_ops.BLEND_DIFFERENCE
    ABSOLUTE_DIFFERENCE = math_ops.BLEND_ABSOLUTE_DIFFERENCE
    RELATIVE_DIFFERENCE = math_ops.BLEND_RELATIVE_DIFFERENCE
    DIVIDE = math_ops.BLEND_DIVIDE
    AVERAGE = math_ops.BLEND_AVERAGE
    MULTIPLY = math_ops.BLEND_MULTIPLY

    @property
    def label(self) -> str:
        return BLEND_MODE_LABELS[self]

    def cycle(self, step: int = 1) -> 'BlendMode':
        modes = list(BlendMode)
        return modes[(modes.index(self) + step) % len(modes)]

    @classmethod
    def from_name(cls, name: str) -> 'BlendMode':
        key = normalize_blend_name(name).upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown blend mode: {name}") from None


BLEND_MODE_LABELS = {
    BlendMode.CURRENT: 'Current',
    BlendMode.REFERENCE: 'Reference',
    BlendMode.DIFFERENCE: 'Difference',
    BlendMode.ABSOLUTE_DIFFERENCE: 'Absolute difference',
    BlendMode.RELATIVE_DIFFERENCE: 'Relative difference',
    BlendMode.DIVIDE: 'Divide',
    BlendMode.AVERAGE: 'Average',
    BlendMode.MULTIPLY: 'Multiply',
}

RELATIVE_EPSILON = math_ops.RELATIVE_EPSILON


def composite(current: float, reference: Optional[float], mode: BlendMode) -> float:
    """
    Blend one current sample with one reference sample.

    Without a reference this is the identity. Division by zero follows IEEE
    rules (inf / nan); the tonemapper maps those to fixed bytes later.
    """
    if reference is None:
        return current
    return float(math_ops.blend_value(float(current), float(reference), int(mode)))


def composite_array(
    current: np.ndarray,
    reference: Optional[np.ndarray],
    mode: BlendMode,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Blend two equally shaped 2-D blocks into a float64 block."""
    current = np.asarray(current)
    if out is None:
        out = np.empty(current.shape, dtype=np.float64)
    if reference is None:
        out[...] = current
        return out
    reference = np.asarray(reference)
    if current.shape != reference.shape or current.ndim != 2:
        raise ValueError(f"Blend shape mismatch: {current.shape} vs {reference.shape}")
    math_ops.blend_block(current, reference, out, int(mode))
    return out
