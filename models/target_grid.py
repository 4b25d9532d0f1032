from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple


@dataclass(frozen=True)
class TargetGrid:
    """Canonical grid (x, y, z) every mask is resampled onto."""

    x: int
    y: int
    z: int

    @classmethod
    def from_dims(cls, dims: "TargetGrid | Sequence[int]") -> "TargetGrid":
        if isinstance(dims, TargetGrid):
            return dims
        x, y, z = dims
        return cls(int(x), int(y), int(z))

    @property
    def is_degenerate(self) -> bool:
        return self.x <= 0 or self.y <= 0 or self.z <= 0

    @property
    def voxel_count(self) -> int:
        if self.is_degenerate:
            return 0
        return self.x * self.y * self.z

    @property
    def shape_zyx(self) -> Tuple[int, int, int]:
        return (self.z, self.y, self.x)

    def linear_index(self, x: int, y: int, z: int) -> int:
        return int(x) + self.x * (int(y) + self.y * int(z))

    def contains(self, x: int, y: int, z: int) -> bool:
        return 0 <= x < self.x and 0 <= y < self.y and 0 <= z < self.z
