"""
Channel groups: named, displayable subsets of an image's channels.

Groups are derived once from the channel names (EXR-style ``layer.channel``)
and never change afterwards.
"""
import enum
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from hdrstack.errors import InvalidParameter

VALID_ARITIES = (1, 3, 4)


class ChannelRole(enum.Enum):
    COLOR = 'color'
    ALPHA = 'alpha'
    DEPTH = 'depth'
    GENERIC = 'generic'


@dataclass(frozen=True)
class ChannelGroup:
    name: str
    channel_indices: Tuple[int, ...]
    role: ChannelRole = ChannelRole.GENERIC

    def __post_init__(self):
        object.__setattr__(self, 'channel_indices', tuple(int(i) for i in self.channel_indices))
        if len(self.channel_indices) not in VALID_ARITIES:
            raise InvalidParameter(
                f"Channel group '{self.name}' must have 1, 3 or 4 channels, "
                f"got {len(self.channel_indices)}"
            )

    @property
    def arity(self) -> int:
        return len(self.channel_indices)

    def validate(self, num_channels: int):
        for idx in self.channel_indices:
            if not 0 <= idx < num_channels:
                raise InvalidParameter(
                    f"Channel group '{self.name}' references channel {idx}, "
                    f"image has {num_channels}"
                )


def split_layer(name: str) -> Tuple[str, str]:
    """'diffuse.R' -> ('diffuse', 'R'); 'R' -> ('', 'R')"""
    layer, sep, channel = name.rpartition('.')
    return (layer, channel) if sep else ('', name)


def _prefixed(layer: str, label: str) -> str:
    return f"{layer}.{label}" if layer else label


def group_channels(names: Sequence[str]) -> List[ChannelGroup]:
    """
    Derive the default channel groups from channel names.

    Per layer, in first-seen order: RGB (colour), XYZ (colour, only when all
    three are present), A (alpha), Z / depth (depth), then every remaining
    channel as its own generic group.
    """
    layers: Dict[str, Dict[str, int]] = {}
    for idx, name in enumerate(names):
        layer, channel = split_layer(name)
        layers.setdefault(layer, {})[channel] = idx

    groups: List[ChannelGroup] = []
    for layer, channels in layers.items():
        used = set()
        upper = {c.upper(): c for c in channels}

        if all(c in upper for c in 'RGB'):
            keys = [upper[c] for c in 'RGB']
            groups.append(ChannelGroup(_prefixed(layer, 'RGB'), [channels[k] for k in keys], ChannelRole.COLOR))
            used.update(keys)

        if all(c in upper for c in 'XYZ'):
            keys = [upper[c] for c in 'XYZ']
            groups.append(ChannelGroup(_prefixed(layer, 'XYZ'), [channels[k] for k in keys], ChannelRole.COLOR))
            used.update(keys)

        if 'A' in upper:
            key = upper['A']
            groups.append(ChannelGroup(_prefixed(layer, key), [channels[key]], ChannelRole.ALPHA))
            used.add(key)

        for depth_name in ('Z', 'DEPTH'):
            key = upper.get(depth_name)
            if key is not None and key not in used:
                groups.append(ChannelGroup(_prefixed(layer, key), [channels[key]], ChannelRole.DEPTH))
                used.add(key)

        for channel, idx in channels.items():
            if channel not in used:
                groups.append(ChannelGroup(_prefixed(layer, channel), [idx], ChannelRole.GENERIC))

    return groups
