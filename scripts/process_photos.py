#!/usr/bin/env python3
"""
Process car photos into showroom composites from the command line.

Usage:
    python scripts/process_photos.py car1.jpg car2.jpg --output-dir out/ \
        --background studio-white --owner dealer-42 --car-scale 80
"""

import sys
import argparse
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from autostudio.core.config import settings
from autostudio.core.logging import LogContext, get_logger, setup_logging
from autostudio.core.metrics import get_metrics
from autostudio.engines.studio.schemas import UserPreferences
from autostudio.pipeline.assets import LocalAssetStore
from autostudio.pipeline.removal import get_background_remover
from autostudio.pipeline.stages import BatchItem, process_batch

logger = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Composite car photos onto a showroom background")
    parser.add_argument("images", nargs="+", help="Input photos")
    parser.add_argument("--output-dir", default="./output", help="Where to write the JPEGs")
    parser.add_argument("--background", default=None, help="Template id or user:<owner>/<path>")
    parser.add_argument("--owner", default=None, help="Owner id for user backgrounds and logo")
    parser.add_argument("--car-scale", type=int, default=None, help="Car width, percent of frame (60-95)")
    parser.add_argument("--logo-scale", type=int, default=None, help="Logo width, percent of frame (5-20)")
    parser.add_argument("--shadow", type=int, default=None, help="Shadow intensity 0-100")
    parser.add_argument("--workers", type=int, default=settings.MAX_CONCURRENT_JOBS)
    parser.add_argument("--metrics-file", default=None, help="Write Prometheus metrics here after the run")
    args = parser.parse_args()

    setup_logging(settings.LOG_LEVEL, json_format=settings.LOG_FORMAT_JSON)

    store = LocalAssetStore()
    background, logo = store.load_for_job(args.background, args.owner, settings.DEFAULT_BACKGROUND)
    preferences = UserPreferences(
        car_scale=args.car_scale,
        logo_scale=args.logo_scale,
        shadow_intensity=args.shadow,
    )

    paths = [Path(image) for image in args.images]
    items = [
        BatchItem(
            upload_bytes=path.read_bytes(),
            preferences=preferences,
            background=background,
            logo=logo,
        )
        for path in paths
    ]

    outcomes = process_batch(items, get_background_remover(settings), max_workers=args.workers)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    failures = 0
    for path, outcome in zip(paths, outcomes):
        with LogContext(job_id=outcome.job_id):
            if outcome.ok:
                target = output_dir / f"{path.stem}.jpg"
                target.write_bytes(outcome.result.image)
                logger.info("photo_written", source=str(path), output=str(target), mode=outcome.result.mode.value)
            else:
                failures += 1
                logger.error("photo_failed", source=str(path), **outcome.error.to_dict())

    if args.metrics_file:
        Path(args.metrics_file).write_bytes(get_metrics())

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
