"""
Tonemapping: float samples -> display bytes.

exposure (2**ev) -> signed gamma -> optional clamp -> optional dither -> round.
The scalar and array entry points share the same numba kernels, so a pixel
tonemapped on its own and the same pixel inside a viewport come out equal.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from hdrstack import math_ops
from hdrstack.model.image import NormalizationStats


@dataclass(frozen=True)
class TonemapOptions:
    normalize: bool = False
    dither: bool = False
    clamp_to_ldr: bool = True


def _stats_range(stats: Optional[NormalizationStats], opts: TonemapOptions) -> Tuple[float, float]:
    if stats is None:
        if opts.normalize:
            raise ValueError("Normalization needs the group's NormalizationStats")
        return 0.0, 0.0
    return float(stats.minimum), float(stats.maximum)


def tonemap_value(
    sample: float,
    ev: float,
    gamma: float,
    stats: Optional[NormalizationStats] = None,
    opts: TonemapOptions = TonemapOptions(),
) -> float:
    """
    Float stage of the pipeline (no dither, no quantization).

    With ``clamp_to_ldr`` off, values outside [0, 1] are returned as-is so the
    caller can mark them.
    """
    vmin, vmax = _stats_range(stats, opts)
    return float(math_ops.tonemap_value(
        float(sample), float(ev), float(gamma), vmin, vmax,
        bool(opts.normalize), bool(opts.clamp_to_ldr)
    ))


def tonemap(
    sample: float,
    ev: float,
    gamma: float,
    stats: Optional[NormalizationStats] = None,
    opts: TonemapOptions = TonemapOptions(),
    x: int = 0,
    y: int = 0,
    seed: int = 0,
) -> int:
    """
    Tonemap one sample to a byte in [0, 255].

    Args:
        sample: linear sample value (any float, NaN/inf included)
        ev: exposure in stops
        gamma: display gamma, must be > 0 (validated by the image model)
        stats: normalization range, required when ``opts.normalize``
        opts: normalize / dither / clamp flags
        x, y: pixel coordinate, seeds the dither pattern
        seed: extra integer folded into the dither hash

    Returns:
        int: display byte
    """
    vmin, vmax = _stats_range(stats, opts)
    return int(math_ops.tonemap_byte(
        float(sample), float(ev), float(gamma), vmin, vmax,
        bool(opts.normalize), bool(opts.dither), bool(opts.clamp_to_ldr),
        int(x), int(y), int(seed)
    ))


def tonemap_array(
    values: np.ndarray,
    ev: float,
    gamma: float,
    stats: Optional[NormalizationStats] = None,
    opts: TonemapOptions = TonemapOptions(),
    origin: Tuple[int, int] = (0, 0),
    seed: int = 0,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Tonemap a 2-D block whose top-left pixel sits at ``origin`` (x, y)."""
    values = np.asarray(values)
    if values.ndim != 2:
        raise ValueError(f"Expected a 2-D block, got shape {values.shape}")
    if values.dtype not in (np.float32, np.float64):
        values = values.astype(np.float32)
    if out is None:
        out = np.empty(values.shape, dtype=np.uint8)
    vmin, vmax = _stats_range(stats, opts)
    math_ops.tonemap_block(
        values, out, float(ev), float(gamma), vmin, vmax,
        bool(opts.normalize), bool(opts.dither), bool(opts.clamp_to_ldr),
        int(origin[0]), int(origin[1]), int(seed)
    )
    return out


def quantize_alpha(values: np.ndarray) -> np.ndarray:
    """Alpha is shown linearly: clamp to [0, 1], round to bytes, NaN -> 0."""
    a = np.nan_to_num(np.asarray(values, dtype=np.float64), nan=0.0, posinf=1.0, neginf=0.0)
    return np.floor(np.clip(a, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
