"""Command line entry point: detect and label fish in one photo."""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .config.settings import Config, load_config
from .core.entities import DetectionReport
from .core.exceptions import ApplicationError
from .core.logging_config import configure_logging_from_config
from .services.inference_pipeline import InferencePipeline
from .utils.geometry import ensure_dirs
from .utils.image_utils import annotate_image, save_image

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fishfinder",
        description="Detect fish in a photo and label each one by species.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("image", nargs="?", help="Path of the photo to analyse")
    source.add_argument("--sample", action="store_true",
                        help="Use the configured sample photo")
    parser.add_argument("--config", default="config.json", help="Configuration file (JSON)")
    parser.add_argument("--output", help="Write the annotated photo to this path")
    parser.add_argument("--threshold", type=float,
                        help="Detection score threshold, overrides the configuration")
    parser.add_argument("--json", action="store_true", dest="as_json",
                        help="Print the report as JSON")
    return parser


def print_progress(value: float) -> None:
    print(f"\rLoading models... {value * 100:5.1f}%", end="", file=sys.stderr, flush=True)
    if value >= 1.0:
        print(file=sys.stderr)


def format_report(report: DetectionReport) -> str:
    if report.is_empty:
        return "No fish found."
    lines = [f"Found {len(report.regions)} region(s) in {report.latency_ms} ms:"]
    for region in report.regions:
        x, y, width, height = region.box.to_pixel_rect()
        lines.append(f"  {region.label:<10} {region.display_score}%  "
                     f"at x={x} y={y} w={width} h={height}")
    return "\n".join(lines)


async def run(args: argparse.Namespace, config: Config) -> int:
    pipeline = InferencePipeline.from_config(config)
    try:
        await pipeline.load_models(progress_callback=print_progress)
        await pipeline.warm_up()

        if args.sample:
            image = pipeline.load_sample_image()
        else:
            image = pipeline.prepare_image(args.image)

        report = await pipeline.run_detection()

        if args.as_json:
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print(format_report(report))

        if args.output:
            save_image(annotate_image(image.pixels, report.regions), args.output)
            logger.info(f"Annotated image written to {args.output}")
        return 0
    except ApplicationError as e:
        logger.error(f"Detection failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        pipeline.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
        if args.threshold is not None:
            config.detection_score_threshold = args.threshold
            config.validate()
    except ApplicationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging_from_config(config)
    ensure_dirs(config.models_dir)

    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
