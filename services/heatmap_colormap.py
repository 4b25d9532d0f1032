"""Gradient bleu -> cyan -> jaune -> orange -> rouge pour l'affichage des heatmaps."""

from __future__ import annotations

from typing import Optional

import numpy as np
from cmap import Colormap as cmap_colormap

from config.constants import DEFAULT_HEATMAP_OPACITY, HEATMAP_GRADIENT_STOPS, HEATMAP_LUT_SIZE

_STOP_POSITIONS = np.array([pos for pos, _ in HEATMAP_GRADIENT_STOPS], dtype=np.float64)
_STOP_COLORS = np.array([color for _, color in HEATMAP_GRADIENT_STOPS], dtype=np.float64) / 255.0


def heat_to_rgb(values) -> np.ndarray:
    """
    Map normalized heat values to RGB floats in [0, 1].

    Each quarter segment interpolates every channel linearly between its
    start and end colors with u = (t - segment_start) / 0.25. Values outside
    [0, 1] are clamped.

    Returns:
        Array shaped values.shape + (3,).
    """
    t = np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0)
    channels = [np.interp(t, _STOP_POSITIONS, _STOP_COLORS[:, c]) for c in range(3)]
    return np.stack(channels, axis=-1)


def build_heatmap_lut(size: int = HEATMAP_LUT_SIZE) -> np.ndarray:
    """LUT (size, 3) uint8 RGB sampled uniformly over [0, 1]."""
    samples = np.linspace(0.0, 1.0, int(size))
    return np.rint(heat_to_rgb(samples) * 255.0).astype(np.uint8)


def heatmap_colormap(size: int = HEATMAP_LUT_SIZE) -> cmap_colormap:
    """Colormap object for the volume/slice views (alpha 0 at zero heat)."""
    rgb = heat_to_rgb(np.linspace(0.0, 1.0, int(size)))
    alpha = np.ones((rgb.shape[0], 1))
    alpha[0] = 0.0
    return cmap_colormap(np.hstack([rgb, alpha]), name="Mask Heatmap")


def colorize_slice(heat_slice: np.ndarray, opacity: Optional[float] = None) -> np.ndarray:
    """
    Convert a 2D heat slice into a BGRA uint8 overlay (OpenCV channel order).

    Voxels with zero heat are fully transparent; others use `opacity`.
    """
    heat = np.asarray(heat_slice, dtype=np.float32)
    if heat.ndim != 2:
        raise ValueError(f"Expected a 2D heat slice, got shape {heat.shape}.")
    alpha_value = DEFAULT_HEATMAP_OPACITY if opacity is None else float(np.clip(opacity, 0.0, 1.0))

    rgb = np.rint(heat_to_rgb(heat) * 255.0).astype(np.uint8)
    bgra = np.zeros(heat.shape + (4,), dtype=np.uint8)
    bgra[..., 0] = rgb[..., 2]
    bgra[..., 1] = rgb[..., 1]
    bgra[..., 2] = rgb[..., 0]
    bgra[..., 3] = np.where(heat > 0.0, int(round(alpha_value * 255)), 0).astype(np.uint8)
    return bgra
