"""Compression options and the per-tier policy table."""

from __future__ import annotations

import dataclasses
import math
from typing import Literal

TierName = Literal["low", "medium", "high"]

TIERS: tuple[TierName, ...] = ("low", "medium", "high")
TARGET_RESOLUTIONS = (72, 96, 150)
MIN_IMAGE_DIMENSION = 32
MIN_RATIO_PERCENT = 5

# Resampling factor keyed by (target resolution, tier).
SCALE_FACTORS: dict[int, dict[TierName, float]] = {
    72: {"low": 0.7, "medium": 0.5, "high": 0.3},
    96: {"low": 0.8, "medium": 0.6, "high": 0.4},
    150: {"low": 0.9, "medium": 0.8, "high": 0.6},
}


@dataclasses.dataclass(frozen=True, slots=True)
class CompressionOptions:
    """Caller supplied settings for a single :func:`~pdfcompressx.compress` call."""

    tier: TierName = "medium"
    target_image_resolution: int = 150
    strip_metadata: bool = True
    strip_annotations: bool = False
    strip_outlines: bool = False
    recode_images_as_jpeg: bool = True
    jpeg_quality: int = 75
    ignore_encryption: bool = False
    ascii_encode_streams: bool = False
    merge_duplicates: bool | None = None

    def __post_init__(self) -> None:
        if self.tier not in TIERS:
            raise ValueError(f"Unknown compression tier: {self.tier}")
        if self.target_image_resolution not in TARGET_RESOLUTIONS:
            raise ValueError(
                f"Unsupported target image resolution: {self.target_image_resolution}"
            )
        if not 10 <= self.jpeg_quality <= 100:
            raise ValueError(f"JPEG quality must be between 10 and 100, got {self.jpeg_quality}")


@dataclasses.dataclass(frozen=True, slots=True)
class TierPolicy:
    """Effective decisions for one call, derived once from the options."""

    name: TierName
    strip_annotations: bool
    strip_outlines: bool
    strip_structure: bool
    strip_font_descriptors: bool
    strip_soft_masks: bool
    image_quality: int
    flate_level: int
    merge_duplicates: bool


@dataclasses.dataclass(frozen=True, slots=True)
class _TierDefaults:
    strip_annotations: bool
    strip_outlines: bool
    strip_structure: bool
    image_quality: int
    flate_level: int


_TIER_DEFAULTS: dict[TierName, _TierDefaults] = {
    "low": _TierDefaults(False, False, False, image_quality=95, flate_level=6),
    "medium": _TierDefaults(False, True, False, image_quality=80, flate_level=9),
    "high": _TierDefaults(True, True, True, image_quality=65, flate_level=9),
}


def resolve_policy(options: CompressionOptions) -> TierPolicy:
    """Combine the tier table with the explicit flags in *options*."""

    defaults = _TIER_DEFAULTS[options.tier]
    high = options.tier == "high"
    merge = options.merge_duplicates if options.merge_duplicates is not None else high
    return TierPolicy(
        name=options.tier,
        strip_annotations=options.strip_annotations or defaults.strip_annotations,
        strip_outlines=options.strip_outlines or defaults.strip_outlines,
        strip_structure=defaults.strip_structure,
        strip_font_descriptors=high,
        strip_soft_masks=high,
        image_quality=defaults.image_quality,
        flate_level=defaults.flate_level,
        merge_duplicates=merge,
    )


def scale_factor(target_image_resolution: int, tier: TierName) -> float:
    return SCALE_FACTORS[target_image_resolution][tier]


def bits_per_component(tier: TierName, jpeg_quality: int) -> int:
    """Bit depth recorded on recoded images."""

    if tier == "high":
        return max(1, jpeg_quality // 25)
    if tier == "medium":
        return max(4, jpeg_quality // 20)
    return 8


def scaled_dimension(value: int, factor: float) -> int:
    # epsilon keeps products such as 3000 * 0.3 from flooring to 899
    return max(MIN_IMAGE_DIMENSION, math.floor(value * factor + 1e-9))


__all__ = [
    "CompressionOptions",
    "MIN_IMAGE_DIMENSION",
    "MIN_RATIO_PERCENT",
    "SCALE_FACTORS",
    "TierName",
    "TierPolicy",
    "bits_per_component",
    "resolve_policy",
    "scale_factor",
    "scaled_dimension",
]
