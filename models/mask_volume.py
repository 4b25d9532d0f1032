from __future__ import annotations

from typing import Callable, Iterator, Optional, Protocol, Tuple

import numpy as np

from utils.exceptions import MaskReadError


class VolumeLike(Protocol):
    """Interface expected from a source mask by the sampling services."""

    source: str

    def dimensions(self) -> Tuple[int, int, int]:
        ...

    def as_array(self) -> np.ndarray:
        ...


class MaskVolume:
    """
    Label volume used as a heatmap source.

    The array is stored (Z, Y, X), like the annotation masks, so the C-order
    linear traversal is X fastest, then Y, then Z. Only presence matters:
    any nonzero value counts as labeled.
    """

    def __init__(self, array: np.ndarray, source: str = "<memory>") -> None:
        arr = np.asarray(array)
        if arr.ndim != 3:
            raise MaskReadError(source, f"mask volume must be 3D (Z,Y,X), got {arr.ndim}D")
        self._array = arr
        self.source = str(source)

    def dimensions(self) -> Tuple[int, int, int]:
        """Return (x, y, z) sizes."""
        depth, height, width = self._array.shape
        return int(width), int(height), int(depth)

    def as_array(self) -> np.ndarray:
        return self._array

    def iter_values(self) -> Iterator[int]:
        """Yield voxel values in linear order (X fastest)."""
        for value in self._array.ravel(order="C"):
            yield int(value)

    def is_present(self, x: int, y: int, z: int) -> bool:
        return bool(self._array[int(z), int(y), int(x)] != 0)

    def count_present(self) -> int:
        return int(np.count_nonzero(self._array))

    def __repr__(self) -> str:
        return f"MaskVolume(source={self.source!r}, dims={self.dimensions()})"


class LazyMaskVolume:
    """Mask read from disk on first access; read errors surface as MaskReadError."""

    def __init__(
        self,
        source: str,
        reader: Callable[[str], np.ndarray],
        dimension_reader: Optional[Callable[[str], Tuple[int, int, int]]] = None,
    ) -> None:
        self.source = str(source)
        self._reader = reader
        self._dimension_reader = dimension_reader
        self._dimensions: Optional[Tuple[int, int, int]] = None
        self._volume: Optional[MaskVolume] = None

    def _load(self) -> MaskVolume:
        if self._volume is None:
            self._volume = MaskVolume(self._reader(self.source), source=self.source)
            self._dimensions = self._volume.dimensions()
        return self._volume

    def dimensions(self) -> Tuple[int, int, int]:
        if self._dimensions is None:
            if self._volume is None and self._dimension_reader is not None:
                self._dimensions = tuple(self._dimension_reader(self.source))
            else:
                return self._load().dimensions()
        return self._dimensions

    def as_array(self) -> np.ndarray:
        return self._load().as_array()

    def iter_values(self) -> Iterator[int]:
        return self._load().iter_values()

    def is_present(self, x: int, y: int, z: int) -> bool:
        return self._load().is_present(x, y, z)

    @property
    def is_loaded(self) -> bool:
        return self._volume is not None

    def release(self) -> None:
        """Drop the cached array; the next access reads the file again."""
        self._volume = None
