from PyQt6.QtCore import QCoreApplication
import logging
import sys

from config.logging_config import configure_logging
from controllers.heatmap_controller import HeatmapController
from models.heatmap_result import HeatmapResult, HeatmapStatus
from models.target_grid import TargetGrid
from services.mask_loader import MaskLoader
from utils.exceptions import MaskReadError


def main(argv: list[str]) -> int:
    """Build a heatmap from the masks given on the command line (first mask sets the grid)."""
    configure_logging('INFO')
    logger = logging.getLogger("heatmap")

    paths = argv[1:]
    if not paths:
        logger.error("Usage: main.py MASK.npy [MASK.npy ...]")
        return 2

    app = QCoreApplication(argv)
    loader = MaskLoader()

    try:
        grid = TargetGrid.from_dims(loader.read_dimensions(paths[0]))
    except MaskReadError as exc:
        logger.error("Reference mask unreadable: %s", exc)
        return 1

    masks = [loader.lazy(path) for path in paths]
    controller = HeatmapController()
    outcome = {"status": HeatmapStatus.IDLE}

    def on_ready(result: HeatmapResult) -> None:
        outcome["status"] = result.status
        if result.status == HeatmapStatus.COMPLETED:
            heat = result.heat
            logger.info(
                "Grid %s, %d masks used, %d skipped, max heat %.3f, covered voxels %d",
                (grid.x, grid.y, grid.z),
                result.mask_count,
                result.skipped_count,
                float(heat.max()) if heat.size else 0.0,
                int((heat > 0).sum()),
            )
        app.quit()

    controller.progress_changed.connect(lambda pct, status: logger.info("Progress %d%% (%s)", pct, status))
    controller.status_message.connect(logger.info)
    controller.heatmap_ready.connect(on_ready)
    controller.build_heatmap(masks, grid)

    app.exec()
    controller.shutdown()
    return 0 if outcome["status"] == HeatmapStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv))
