"""Service minimal pour charger des volumes de masques NPZ/NPY (Z,H,W)."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Tuple

import numpy as np

from models.mask_volume import LazyMaskVolume, MaskVolume
from utils.exceptions import MaskReadError


class MaskLoader:
    """Charge des fichiers NPZ/NPY et renvoie des volumes de masques (Z,H,W)."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    def read_array(self, path: str) -> np.ndarray:
        """Lit le tableau 3D complet d'un fichier masque."""
        file_path = Path(path)
        if not file_path.exists():
            raise MaskReadError(str(file_path), "fichier introuvable")

        try:
            data = np.load(file_path, allow_pickle=False)
            if isinstance(data, np.lib.npyio.NpzFile):
                with data:
                    keys = list(data.keys())
                    if not keys:
                        raise MaskReadError(str(file_path), "NPZ sans données utilisables")
                    arr = data[keys[0]]
            else:
                arr = data
        except MaskReadError:
            raise
        except (OSError, ValueError, EOFError, zipfile.BadZipFile) as exc:
            raise MaskReadError(str(file_path), f"lecture impossible: {exc}") from exc

        if getattr(arr, "ndim", 0) != 3:
            raise MaskReadError(str(file_path), f"masque attendu 3D, reçu {arr.ndim}D")
        self.logger.debug("Mask loaded: %s shape=%s dtype=%s", file_path, arr.shape, arr.dtype)
        return arr

    def read_dimensions(self, path: str) -> Tuple[int, int, int]:
        """Retourne (x, y, z) sans charger les voxels quand le format le permet (.npy mmap)."""
        file_path = Path(path)
        if file_path.suffix.lower() == ".npy" and file_path.exists():
            try:
                arr = np.load(file_path, mmap_mode="r", allow_pickle=False)
            except (OSError, ValueError, EOFError) as exc:
                raise MaskReadError(str(file_path), f"en-tête illisible: {exc}") from exc
            if arr.ndim != 3:
                raise MaskReadError(str(file_path), f"masque attendu 3D, reçu {arr.ndim}D")
            depth, height, width = arr.shape
            return int(width), int(height), int(depth)
        return MaskVolume(self.read_array(path), source=str(path)).dimensions()

    def load(self, path: str) -> MaskVolume:
        return MaskVolume(self.read_array(path), source=str(path))

    def lazy(self, path: str) -> LazyMaskVolume:
        """
        Volume lu au premier accès (dans le worker).

        Pour un .npy, les dimensions viennent de l'en-tête sans charger les voxels.
        """
        dimension_reader = self.read_dimensions if Path(path).suffix.lower() == ".npy" else None
        return LazyMaskVolume(str(path), self.read_array, dimension_reader=dimension_reader)
