from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from hdrstack.model.image import NormalizationStats
from hdrstack.pipeline.compositor import BlendMode
from hdrstack.pipeline.tonemap import TonemapOptions


@dataclass(frozen=True)
class ViewRect:
    """Pixel rectangle in display (flipped) image coordinates"""
    x: int
    y: int
    width: int
    height: int

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"ViewRect size must be non-negative, got {self.width}x{self.height}")


@dataclass(frozen=True)
class RenderSnapshot:
    """
    Immutable input of one redraw.

    Planes are read-only views taken at snapshot time. Later edits create new
    planes or flip other views, so a snapshot in flight is never affected.
    """
    image_id: int
    width: int
    height: int
    planes: Tuple[np.ndarray, ...]
    ev: float
    gamma: float
    options: TonemapOptions
    stats: Optional[NormalizationStats] = None
    reference_id: Optional[int] = None
    reference_planes: Optional[Tuple[np.ndarray, ...]] = None
    blend_mode: BlendMode = BlendMode.CURRENT
    dither_seed: int = 0

    @property
    def full_rect(self) -> ViewRect:
        return ViewRect(0, 0, self.width, self.height)


@dataclass(frozen=True)
class RenderRequest:
    """Immutable render request. A newer request id supersedes older ones."""
    snapshot: RenderSnapshot
    rect: ViewRect
    request_id: int
