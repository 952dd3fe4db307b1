"""Chroma key: color-distance alpha keying in RGB space."""

from __future__ import annotations

import math

import numpy as np

MAX_DISTANCE = math.sqrt(3 * 255**2)


def apply_chroma_key(
    pixels: np.ndarray,
    key_color: tuple[int, int, int],
    tolerance_percent: float,
    edge_softness_px: float,
) -> np.ndarray:
    """Return a copy of RGBA *pixels* with the key color keyed out.

    Pixels whose RGB distance to *key_color* is within the tolerance become
    transparent. With a nonzero edge softness the outer band of the
    tolerance (``softness_distance`` wide) fades linearly from transparent
    to fully opaque. Pixels outside the tolerance keep their alpha.

    Args:
        pixels: (H, W, 4) uint8 RGBA array. Not modified.
        key_color: (r, g, b) color to remove.
        tolerance_percent: 0-100, share of the maximum RGB distance.
        edge_softness_px: 0-20, width of the feathered band.
    """
    out = pixels.copy()
    if out.size == 0:
        return out

    rgb = pixels[..., :3].astype(np.float32)
    key = np.asarray(key_color, dtype=np.float32)
    distance = np.sqrt(np.sum((rgb - key) ** 2, axis=-1))

    tolerance_distance = (tolerance_percent / 100.0) * MAX_DISTANCE
    softness_distance = (edge_softness_px / 20.0) * MAX_DISTANCE * 0.5

    inside = distance <= tolerance_distance
    alpha = out[..., 3]
    if softness_distance > 0:
        inner_edge = tolerance_distance - softness_distance
        feather = inside & (distance > inner_edge)
        ratio = (distance[feather] - inner_edge) / softness_distance
        alpha[feather] = np.rint(ratio * 255.0).astype(np.uint8)
        alpha[inside & ~feather] = 0
    else:
        alpha[inside] = 0
    return out
