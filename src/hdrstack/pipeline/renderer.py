"""
Viewport rendering: composite (optional) + tonemap into RGBA8.

Rows are split into blocks; with more than one worker the blocks run on a
thread pool. The numba kernels release the GIL, and each block writes a
disjoint slice of the output.
"""
import concurrent.futures
from typing import List, Optional, Tuple

import numpy as np
from loguru import logger

from hdrstack.pipeline.compositor import BlendMode, composite_array
from hdrstack.pipeline.request import RenderSnapshot, ViewRect
from hdrstack.pipeline.tonemap import quantize_alpha, tonemap_array


def _intersect(rect: ViewRect, width: int, height: int) -> Optional[Tuple[int, int, int, int]]:
    x0, y0 = max(rect.x, 0), max(rect.y, 0)
    x1, y1 = min(rect.x + rect.width, width), min(rect.y + rect.height, height)
    if x0 >= x1 or y0 >= y1:
        return None
    return x0, y0, x1, y1


def _blend_channel(
    snapshot: RenderSnapshot,
    channel: int,
    block: np.ndarray,
    x0: int, y0: int, x1: int, y1: int,
) -> np.ndarray:
    """Blend one channel block against the reference where the two overlap."""
    ref_planes = snapshot.reference_planes
    ref = ref_planes[min(channel, len(ref_planes) - 1)]
    rh, rw = ref.shape
    ox1, oy1 = min(x1, rw), min(y1, rh)
    if ox1 <= x0 or oy1 <= y0:
        # no overlap: the current image shows through
        return block

    result = block.astype(np.float64)
    composite_array(
        block[:oy1 - y0, :ox1 - x0],
        ref[y0:oy1, x0:ox1],
        snapshot.blend_mode,
        out=result[:oy1 - y0, :ox1 - x0],
    )
    return result


def _render_block(snapshot: RenderSnapshot, out: np.ndarray, x0: int, y0: int, x1: int, y1: int):
    planes = snapshot.planes
    arity = len(planes)
    color_planes = planes[:3] if arity >= 3 else planes[:1]
    blending = snapshot.reference_planes is not None and snapshot.blend_mode != BlendMode.CURRENT

    tonemapped = []
    for ch, plane in enumerate(color_planes):
        block = plane[y0:y1, x0:x1]
        if blending:
            block = _blend_channel(snapshot, ch, block, x0, y0, x1, y1)
        tonemapped.append(tonemap_array(
            block, snapshot.ev, snapshot.gamma, snapshot.stats, snapshot.options,
            origin=(x0, y0), seed=snapshot.dither_seed,
        ))

    if len(tonemapped) == 1:
        tonemapped = tonemapped * 3
    for ch in range(3):
        out[:, :, ch] = tonemapped[ch]

    if arity == 4:
        out[:, :, 3] = quantize_alpha(planes[3][y0:y1, x0:x1])
    else:
        out[:, :, 3] = 255


def render_viewport(
    snapshot: RenderSnapshot,
    rect: Optional[ViewRect] = None,
    workers: int = 1,
    block_rows: int = 64,
    executor: Optional[concurrent.futures.Executor] = None,
) -> np.ndarray:
    """
    Render ``rect`` of the snapshot to an (h, w, 4) uint8 array.

    Pixels of the rect that fall outside the image stay transparent black.
    """
    rect = rect or snapshot.full_rect
    out = np.zeros((rect.height, rect.width, 4), dtype=np.uint8)

    area = _intersect(rect, snapshot.width, snapshot.height)
    if area is None:
        return out
    x0, y0, x1, y1 = area

    blocks: List[Tuple[int, int]] = [
        (r, min(r + block_rows, y1)) for r in range(y0, y1, max(1, block_rows))
    ]

    def run(block):
        r0, r1 = block
        target = out[r0 - rect.y:r1 - rect.y, x0 - rect.x:x1 - rect.x]
        _render_block(snapshot, target, x0, r0, x1, r1)

    if executor is not None:
        list(executor.map(run, blocks))
    elif workers > 1 and len(blocks) > 1:
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
            list(pool.map(run, blocks))
    else:
        for block in blocks:
            run(block)

    logger.debug(f"[Render] #{snapshot.image_id} {rect.width}x{rect.height} in {len(blocks)} blocks")
    return out
