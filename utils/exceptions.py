"""Exceptions levées par le moteur de heatmap."""


class HeatmapError(Exception):
    """Base class for heatmap engine errors."""


class MaskReadError(HeatmapError):
    """A single mask could not be read or is malformed; the mask is skipped."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class SamplingInvariantError(HeatmapError):
    """Vote buffer, mapping or bounds table sized inconsistently with the target grid."""
