import functools
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from hdrstack.errors import InvalidParameter
from hdrstack.model.channels import ChannelGroup, ChannelRole, group_channels

FLIP_AXES = ('horizontal', 'vertical')


@functools.lru_cache(maxsize=None)
def get_luminance_coeffs(colourspace_name: str = 'ITU-R BT.709') -> Tuple[float, float, float]:
    """RGB -> Y weights, i.e. the second row of the colourspace's RGB_to_XYZ matrix"""
    import colour

    colourspace = colour.RGB_COLOURSPACES[colourspace_name]
    row = colourspace.matrix_RGB_to_XYZ[1, :]
    return float(row[0]), float(row[1]), float(row[2])


def default_channel_names(count: int) -> List[str]:
    if count == 1:
        return ['Y']
    if count == 3:
        return ['R', 'G', 'B']
    if count == 4:
        return ['R', 'G', 'B', 'A']
    return [f"C{i}" for i in range(count)]


@dataclass
class ImageDescriptor:
    """
    What a decoder hands over: named float planes plus optional groups.

    ``suggested_groups`` index into the order of ``channels``; when absent the
    groups are derived from the channel names.
    """
    name: str
    width: int
    height: int
    channels: Dict[str, np.ndarray]
    suggested_groups: Optional[List[ChannelGroup]] = None

    @classmethod
    def from_array(
        cls,
        name: str,
        array: np.ndarray,
        channel_names: Optional[Sequence[str]] = None,
    ) -> 'ImageDescriptor':
        """Build a descriptor from an (h, w) or (h, w, c) array."""
        array = np.asarray(array)
        if array.ndim == 2:
            array = array[:, :, np.newaxis]
        if array.ndim != 3:
            raise InvalidParameter(f"Expected (h, w) or (h, w, c) pixels, got shape {array.shape}")
        h, w, c = array.shape
        names = list(channel_names) if channel_names is not None else default_channel_names(c)
        if len(names) != c:
            raise InvalidParameter(f"{len(names)} channel names for {c} channels")
        planes = {n: array[:, :, i] for i, n in enumerate(names)}
        return cls(name=name, width=w, height=h, channels=planes)


@dataclass(frozen=True)
class NormalizationStats:
    minimum: float
    maximum: float
    average: float = 0.0


def compute_stats(planes: Sequence[np.ndarray], role: ChannelRole) -> NormalizationStats:
    """
    Min/max over the finite values of the planes, plus an average:
    mean luminance for colour groups, mean value otherwise.
    """
    if role == ChannelRole.COLOR and len(planes) == 4:
        planes = planes[:3]  # alpha is not part of the colour range

    lo, hi = math.inf, -math.inf
    for plane in planes:
        finite = plane[np.isfinite(plane)]
        if finite.size:
            lo = min(lo, float(finite.min()))
            hi = max(hi, float(finite.max()))
    if lo > hi:
        return NormalizationStats(0.0, 0.0, 0.0)

    if role == ChannelRole.COLOR and len(planes) == 3:
        wr, wg, wb = get_luminance_coeffs()
        r, g, b = (p.astype(np.float64) for p in planes)
        values = r * wr + g * wg + b * wb
    else:
        values = np.mean([p.astype(np.float64) for p in planes], axis=0)
    finite = values[np.isfinite(values)]
    average = float(finite.mean()) if finite.size else 0.0
    return NormalizationStats(lo, hi, average)


class HDRImage:
    """
    One loaded image: float planes, channel groups and view state.

    Flips are view flags applied when sampling (numpy views with negative
    strides), never a rewrite of the pixel planes. Pixel planes are read-only
    once owned; new data replaces a plane instead of mutating it, so render
    snapshots taken earlier stay valid.
    """

    def __init__(
        self,
        name: str,
        channels: Dict[str, np.ndarray],
        groups: Optional[Sequence[ChannelGroup]] = None,
    ):
        if not channels:
            raise InvalidParameter(f"Image '{name}' has no channels")

        self.id: Optional[int] = None
        self.name = name
        self._planes: Dict[str, np.ndarray] = {}
        shape = None
        for ch_name, data in channels.items():
            plane = self._own_plane(data)
            if shape is None:
                shape = plane.shape
            elif plane.shape != shape:
                raise InvalidParameter(
                    f"Channel '{ch_name}' of '{name}' has shape {plane.shape}, expected {shape}"
                )
            self._planes[ch_name] = plane
        self.height, self.width = shape

        names = self.channel_names
        self.groups: List[ChannelGroup] = list(groups) if groups else group_channels(names)
        for group in self.groups:
            group.validate(len(names))

        self.selected_group_index = 0
        self.exposure_ev = 0.0
        self.gamma_override: Optional[float] = None
        self.flip_horizontal = False
        self.flip_vertical = False

        self._stats: Optional[NormalizationStats] = None
        self._stats_dirty = True

    @classmethod
    def from_descriptor(cls, descriptor: ImageDescriptor) -> 'HDRImage':
        image = cls(descriptor.name, descriptor.channels, descriptor.suggested_groups)
        if (image.width, image.height) != (descriptor.width, descriptor.height):
            raise InvalidParameter(
                f"Descriptor for '{descriptor.name}' says {descriptor.width}x{descriptor.height}, "
                f"pixels are {image.width}x{image.height}"
            )
        logger.debug(f"[Image] Loaded '{image.name}' {image.width}x{image.height}, "
                     f"groups: {[g.name for g in image.groups]}")
        return image

    @staticmethod
    def _own_plane(data) -> np.ndarray:
        plane = np.array(data, dtype=np.float32)  # always a private copy
        if plane.ndim != 2:
            raise InvalidParameter(f"Channel planes must be 2-D, got shape {plane.shape}")
        plane.flags.writeable = False
        return plane

    def __repr__(self):
        return f"HDRImage(id={self.id}, name={self.name!r}, {self.width}x{self.height})"

    # ------------------------------------------------------------------
    # Channels / groups
    # ------------------------------------------------------------------
    @property
    def channel_names(self) -> List[str]:
        return list(self._planes)

    @property
    def selected_group(self) -> ChannelGroup:
        return self.groups[self.selected_group_index]

    def plane(self, name: str) -> np.ndarray:
        return self._planes[name]

    def select_group(self, index: int):
        if not 0 <= index < len(self.groups):
            raise InvalidParameter(
                f"Group index {index} out of range for '{self.name}' ({len(self.groups)} groups)"
            )
        self.selected_group_index = index
        self.invalidate_stats()

    def group_index(self, name: str) -> int:
        for i, group in enumerate(self.groups):
            if group.name == name:
                return i
        raise InvalidParameter(f"'{self.name}' has no channel group named '{name}'")

    def replace_channel(self, name: str, data):
        if name not in self._planes:
            raise InvalidParameter(f"'{self.name}' has no channel '{name}'")
        plane = self._own_plane(data)
        if plane.shape != (self.height, self.width):
            raise InvalidParameter(
                f"Replacement for '{name}' has shape {plane.shape}, expected {(self.height, self.width)}"
            )
        self._planes[name] = plane
        self.invalidate_stats()

    # ------------------------------------------------------------------
    # Display parameters
    # ------------------------------------------------------------------
    def set_exposure(self, ev: float):
        ev = float(ev)
        if not math.isfinite(ev):
            raise InvalidParameter(f"Exposure must be finite, got {ev}")
        self.exposure_ev = ev

    def set_gamma(self, gamma: Optional[float]):
        """None clears the override (the viewer default applies)."""
        if gamma is not None:
            gamma = float(gamma)
            if not (math.isfinite(gamma) and gamma > 0):
                raise InvalidParameter(f"Gamma must be a positive number, got {gamma}")
        self.gamma_override = gamma

    def flip(self, axis: str):
        if axis == 'horizontal':
            self.flip_horizontal = not self.flip_horizontal
        elif axis == 'vertical':
            self.flip_vertical = not self.flip_vertical
        else:
            raise InvalidParameter(f"Unknown flip axis '{axis}', expected one of {FLIP_AXES}")
        self.invalidate_stats()

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------
    def _oriented(self, plane: np.ndarray) -> np.ndarray:
        if self.flip_vertical:
            plane = plane[::-1, :]
        if self.flip_horizontal:
            plane = plane[:, ::-1]
        return plane

    def group_planes(self, group: Optional[ChannelGroup] = None) -> Tuple[np.ndarray, ...]:
        """Read-only (h, w) views of the group's channels, flips applied."""
        group = group or self.selected_group
        names = self.channel_names
        return tuple(self._oriented(self._planes[names[i]]) for i in group.channel_indices)

    def group_data(self, group: Optional[ChannelGroup] = None) -> np.ndarray:
        """(h, w, arity) float32 copy of the group, flips applied"""
        return np.stack(self.group_planes(group), axis=-1)

    def sample(self, x: int, y: int) -> Tuple[float, ...]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise InvalidParameter(f"Pixel ({x}, {y}) outside {self.width}x{self.height} image")
        return tuple(float(p[y, x]) for p in self.group_planes())

    # ------------------------------------------------------------------
    # Cached statistics
    # ------------------------------------------------------------------
    def invalidate_stats(self):
        self._stats_dirty = True

    @property
    def stats_dirty(self) -> bool:
        return self._stats_dirty

    def stats(self) -> NormalizationStats:
        if self._stats_dirty or self._stats is None:
            self._stats = compute_stats(self.group_planes(), self.selected_group.role)
            self._stats_dirty = False
            logger.debug(f"[Image] Stats for '{self.name}' [{self.selected_group.name}]: {self._stats}")
        return self._stats

    def view_state(self) -> tuple:
        """Everything an edit can change; used to compare states."""
        return (
            self.id, self.selected_group_index, self.exposure_ev, self.gamma_override,
            self.flip_horizontal, self.flip_vertical,
        )
