"""Model and dataset-loading options, with command-line argument wiring."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from typing import Optional


@dataclass
class ModelConfig:
    """Options for the splat model."""

    sh_degree: int = 3


@dataclass
class LoadDatasetConfig:
    """Options controlling how a dataset is loaded."""

    max_frames: Optional[int] = None
    max_resolution: int = 1920
    eval_split_every: Optional[int] = None
    subsample_frames: Optional[int] = None
    subsample_points: Optional[int] = None


def _non_negative(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer {text!r}") from None
    if value < 0:
        raise argparse.ArgumentTypeError(f"value must not be negative, got {value}")
    return value


def add_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Add the model and dataset options to ``parser`` and return it."""
    model = parser.add_argument_group("Model Options")
    model.add_argument(
        "--sh-degree", type=_non_negative, default=3, help="SH degree of splats."
    )

    data = parser.add_argument_group("Dataset Options")
    data.add_argument(
        "--max-frames", type=_non_negative, default=None,
        help="Max nr. of frames of dataset to load",
    )
    data.add_argument(
        "--max-resolution", type=_non_negative, default=1920,
        help="Max resolution of images to load.",
    )
    data.add_argument(
        "--eval-split-every", type=_non_negative, default=None,
        help="Create an eval dataset by selecting every nth image",
    )
    data.add_argument(
        "--subsample-frames", type=_non_negative, default=None,
        help="Load only every nth frame",
    )
    data.add_argument(
        "--subsample-points", type=_non_negative, default=None,
        help="Load only every nth point from the initial sfm data",
    )
    return parser


def configs_from_args(
    namespace: argparse.Namespace,
) -> tuple[ModelConfig, LoadDatasetConfig]:
    """Build the configs from parsed arguments."""
    model = ModelConfig(sh_degree=namespace.sh_degree)
    load = LoadDatasetConfig(
        max_frames=namespace.max_frames,
        max_resolution=namespace.max_resolution,
        eval_split_every=namespace.eval_split_every,
        subsample_frames=namespace.subsample_frames,
        subsample_points=namespace.subsample_points,
    )
    return model, load