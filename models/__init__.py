"""
Modèles de la heatmap de masques.

- MaskVolume / LazyMaskVolume : masques sources (Z,Y,X), présence = valeur non nulle
- TargetGrid : grille canonique (x, y, z) de rééchantillonnage
- HeatmapResult / HeatmapStatus : instantané immuable publié en fin de calcul
- RunState : état partagé worker / appelant (annulation, progression)
- HeatmapModel : heatmap actuellement affichée (pas de Qt)
"""

from .mask_volume import LazyMaskVolume, MaskVolume
from .target_grid import TargetGrid
from .heatmap_result import HeatmapResult, HeatmapStatus, SkippedMask
from .run_state import CancellationToken, RunState
from .heatmap_model import HeatmapModel

__all__ = [
    'LazyMaskVolume',
    'MaskVolume',
    'TargetGrid',
    'HeatmapResult',
    'HeatmapStatus',
    'SkippedMask',
    'CancellationToken',
    'RunState',
    'HeatmapModel',
]
