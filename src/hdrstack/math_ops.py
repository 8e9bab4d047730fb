from numba import njit
import numpy as np

# =========================================================
# Numba JIT kernels (nogil, numpy error model)
# =========================================================

# error_model='numpy' keeps x/0 -> inf and 0/0 -> nan instead of raising
_JIT = dict(cache=True, nogil=True, error_model='numpy')

# Blend mode codes, kept in sync with compositor.BlendMode
BLEND_CURRENT = 0
BLEND_REFERENCE = 1
BLEND_DIFFERENCE = 2
BLEND_ABSOLUTE_DIFFERENCE = 3
BLEND_RELATIVE_DIFFERENCE = 4
BLEND_DIVIDE = 5
BLEND_AVERAGE = 6
BLEND_MULTIPLY = 7

RELATIVE_EPSILON = 1e-2


@njit(**_JIT)
def dither_offset(x, y, seed):
    """Deterministic offset in [-0.5/255, 0.5/255) for a pixel coordinate."""
    h = (np.int64(x) * 73856093) ^ (np.int64(y) * 19349663) ^ (np.int64(seed) * 83492791)
    h &= 0xFFFFFFFF
    # lowbias32 finalizer, masked back to 32 bits after every multiply
    h ^= h >> 16
    h = (h * 0x7FEB352D) & 0xFFFFFFFF
    h ^= h >> 15
    h = (h * 0x846CA68B) & 0xFFFFFFFF
    h ^= h >> 16
    return (h / 4294967296.0 - 0.5) / 255.0


@njit(**_JIT)
def tonemap_value(sample, ev, gamma, vmin, vmax, normalize, clamp):
    v = sample
    if normalize:
        if vmax == vmin:
            v = 0.0
        else:
            v = (v - vmin) / (vmax - vmin)

    v = v * 2.0 ** ev

    # signed power: residual channels keep their sign through gamma
    if v > 0.0:
        v = v ** (1.0 / gamma)
    elif v < 0.0:
        v = -((-v) ** (1.0 / gamma))

    if clamp:
        if v < 0.0:
            v = 0.0
        elif v > 1.0:
            v = 1.0
    return v


@njit(**_JIT)
def quantize(v):
    # NaN -> 0, -inf -> 0, +inf -> 255, ties round up
    if v != v:
        return 0
    scaled = v * 255.0 + 0.5
    if scaled <= 0.0:
        return 0
    if scaled >= 255.0:
        return 255
    return int(np.floor(scaled))


@njit(**_JIT)
def tonemap_byte(sample, ev, gamma, vmin, vmax, normalize, dither, clamp, x, y, seed):
    v = tonemap_value(sample, ev, gamma, vmin, vmax, normalize, clamp)
    if dither and v == v:
        v += dither_offset(x, y, seed)
    return quantize(v)


@njit(**_JIT)
def tonemap_block(values, out, ev, gamma, vmin, vmax, normalize, dither, clamp, x0, y0, seed):
    rows, cols = values.shape
    for r in range(rows):
        for c in range(cols):
            out[r, c] = tonemap_byte(
                values[r, c], ev, gamma, vmin, vmax,
                normalize, dither, clamp, x0 + c, y0 + r, seed
            )


@njit(**_JIT)
def blend_value(c, r, mode):
    if mode == BLEND_CURRENT:
        return c
    elif mode == BLEND_REFERENCE:
        return r
    elif mode == BLEND_DIFFERENCE:
        return c - r
    elif mode == BLEND_ABSOLUTE_DIFFERENCE:
        return abs(c - r)
    elif mode == BLEND_RELATIVE_DIFFERENCE:
        return (c - r) / (r + RELATIVE_EPSILON)
    elif mode == BLEND_DIVIDE:
        return c / r
    elif mode == BLEND_AVERAGE:
        return 0.5 * (c + r)
    elif mode == BLEND_MULTIPLY:
        return c * r
    return c


@njit(**_JIT)
def blend_block(current, reference, out, mode):
    rows, cols = current.shape
    for r in range(rows):
        for c in range(cols):
            out[r, c] = blend_value(np.float64(current[r, c]), np.float64(reference[r, c]), mode)


def warmup():
    """Compile the kernels once so the first redraw does not stall."""
    values = np.zeros((2, 2), dtype=np.float32)
    out8 = np.zeros((2, 2), dtype=np.uint8)
    tonemap_block(values, out8, 0.0, 2.2, 0.0, 1.0, True, True, True, 0, 0, 0)
    tonemap_block(values[::-1, ::-1], out8, 0.0, 2.2, 0.0, 1.0, False, False, False, 0, 0, 0)
    blended = np.zeros((2, 2), dtype=np.float64)
    blend_block(values, values, blended, BLEND_DIFFERENCE)
    tonemap_block(blended, out8, 0.0, 2.2, 0.0, 1.0, False, False, True, 0, 0, 0)
