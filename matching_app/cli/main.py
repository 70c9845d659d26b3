"""
Command-line interface for the pairwise matching pipeline.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from matching_app.pipeline.compute_matches import run_pipeline
from matching_app.pipeline.config import GeometricModel, MatchingConfig
from matching_app.pipeline.errors import ExitCode, MatchingError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compute-matches",
        description=(
            "Compute geometrically verified pairwise matches for an image collection"
        ),
    )
    parser.add_argument(
        "-i",
        "--imadir",
        type=str,
        required=True,
        help="Path to the directory holding the images",
    )
    parser.add_argument(
        "-o",
        "--outdir",
        type=str,
        required=True,
        help="Output directory; must contain lists.txt and receives all artifacts",
    )
    parser.add_argument(
        "-r",
        "--distratio",
        type=float,
        default=0.6,
        help="Nearest-neighbor distance ratio for putative matches (default: 0.6)",
    )
    parser.add_argument(
        "-g",
        "--geometric-model",
        type=str,
        default="f",
        help="Geometric model: f (fundamental), e (essential) or h (homography) "
        "(default: f)",
    )
    parser.add_argument(
        "-v",
        "--video-mode-matching",
        type=int,
        default=None,
        help="Sequence matching: match each image with the next X images",
    )
    parser.add_argument(
        "-l",
        "--pair-list",
        type=str,
        default=None,
        help="File listing the image pairs to match",
    )
    parser.add_argument(
        "--descriptor",
        type=str,
        default="sift",
        choices=["sift", "orb"],
        help="Feature descriptor to extract (default: sift)",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> MatchingConfig:
    config = MatchingConfig(
        output_dir=args.outdir,
        image_dir=args.imadir,
        distance_ratio=args.distratio,
        geometric_model=GeometricModel.parse(args.geometric_model),
        video_mode_overlap=args.video_mode_matching,
        pair_list=args.pair_list,
        descriptor=args.descriptor,
    )
    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point for pairwise matching.

    Usage:
        compute-matches --imadir images/ --outdir out/ \\
                        --geometric-model e --video-mode-matching 3

    Returns:
        Process exit code (see ExitCode).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)

        print(" You called : ")
        print(f"--imadir {config.image_dir}")
        print(f"--outdir {config.output_dir}")
        print(f"--distratio {config.distance_ratio}")
        print(f"--geometric-model {config.geometric_model.name.lower()}")
        print(f"--video-mode-matching {config.video_mode_overlap}")
        if config.pair_list:
            print(f"--pair-list {config.pair_list}")

        result = run_pipeline(config)
    except MatchingError as e:
        sys.stderr.write(parser.format_usage())
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return int(e.exit_code)

    total = sum(result.timings.values())
    print(
        f"Matching completed: {len(result.geometric_matches)} verified pairs "
        f"in {total:.3f}s"
    )
    return int(ExitCode.SUCCESS)


if __name__ == "__main__":
    sys.exit(main())
