import os
import json
from dataclasses import dataclass, asdict, fields
from typing import Optional
from loguru import logger

CONFIG_DIR = os.path.expanduser('~/.hdrstack')
CONFIG_FILE = os.path.join(CONFIG_DIR, 'config.json')

# Formats the file_io adapter knows how to hand to tifffile / Pillow
SUPPORTED_HDR_EXTENSIONS = ['.tif', '.tiff']
SUPPORTED_LDR_EXTENSIONS = ['.png', '.jpg', '.jpeg', '.bmp', '.webp']

# BlendMode names in kernel code order
BLEND_MODE_NAMES = (
    'current', 'reference', 'difference', 'absolute_difference',
    'relative_difference', 'divide', 'average', 'multiply',
)


def normalize_blend_name(name) -> str:
    """'Absolute difference' / 'absolute-difference' -> 'absolute_difference'"""
    return str(name).strip().lower().replace('-', '_').replace(' ', '_')


@dataclass
class ViewerSettings:
    """Viewer-wide defaults. Per-image exposure/gamma live on the image."""
    default_gamma: float = 2.2
    exposure_step: float = 0.25
    gamma_step: float = 0.1
    normalize: bool = False
    dither: bool = True
    clamp_to_ldr: bool = True
    history_limit: Optional[int] = None
    render_workers: int = 4
    block_rows: int = 64
    blend_mode: str = 'difference'

    def __post_init__(self):
        if not self.default_gamma > 0:
            raise ValueError(f"default_gamma must be positive, got {self.default_gamma}")
        if self.history_limit is not None and self.history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {self.history_limit}")
        if normalize_blend_name(self.blend_mode) not in BLEND_MODE_NAMES:
            raise ValueError(f"Unknown blend mode: {self.blend_mode}")
        self.render_workers = max(1, int(self.render_workers))
        self.block_rows = max(1, int(self.block_rows))

    @classmethod
    def from_dict(cls, data: dict) -> 'ViewerSettings':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"[Config] Ignoring unknown keys: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})


def load_settings(path: Optional[str] = None) -> ViewerSettings:
    """Load settings from JSON, falling back to defaults on any problem."""
    path = path or CONFIG_FILE
    try:
        if os.path.exists(path):
            with open(path, 'r', encoding='utf-8') as f:
                settings = ViewerSettings.from_dict(json.load(f))
            logger.debug(f"[Config] Loaded settings from {path}")
            return settings
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Failed to load viewer config {path}: {e}")
    return ViewerSettings()


def save_settings(settings: ViewerSettings, path: Optional[str] = None):
    """Persist settings as JSON"""
    path = path or CONFIG_FILE
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(asdict(settings), f, indent=2)
    except OSError as e:
        logger.error(f"Failed to save viewer config {path}: {e}")
