"""Pixel-level analyzers for two equal-size raw RGB screenshots.

This module provides:
- Whole-image similarity scoring (mean absolute byte difference)
- Grid-based layout divergence with coarse region labels and alignment hints
- Sampled color-palette divergence
- Block-contrast typography divergence

All functions are pure: they read two immutable buffers and return new
result objects. Buffers are row-major R,G,B bytes (3 per pixel). Grid and
block partitions truncate: pixels beyond ``grid_size * cell`` or the last
whole block are never scanned. Pixels missing from a short buffer are
skipped rather than raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .pixels import CHANNELS

logger = logging.getLogger(__name__)

MAX_CHANNEL = 255

GRID_SIZE = 20
LAYOUT_CELL_THRESHOLD = 0.3
MAJOR_DIFFERENCE_LIMIT = 5

COLOR_SAMPLE_SIZE = 1000
COLOR_DISTANCE_THRESHOLD = 30
COLOR_EXAMPLE_LIMIT = 10
MAJOR_COLOR_COUNT = 50
MODERATE_COLOR_COUNT = 10

BLOCK_SIZE = 50
TEXT_CONTRAST_THRESHOLD = 0.3
TYPOGRAPHY_DELTA_THRESHOLD = 0.1

CENTER_LEFT_ALIGNMENT = "Content appears centered in source but left-aligned in target"
CENTER_RIGHT_ALIGNMENT = "Content appears centered in source but right-aligned in target"

Buffer = bytes | bytearray | memoryview
RGB = tuple[int, int, int]


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True)
class SimilarityResult:
    similarity: float
    total_diff_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {"similarity": self.similarity, "totalDiffBytes": self.total_diff_bytes}


@dataclass(frozen=True)
class GridCell:
    row: int
    col: int

    def to_dict(self) -> dict[str, int]:
        return {"row": self.row, "col": self.col}


@dataclass(frozen=True)
class LayoutDifference:
    """A grid cell whose normalized difference exceeds the layout threshold."""

    region: str
    difference: float
    coordinates: GridCell

    def to_dict(self) -> dict[str, Any]:
        return {
            "region": self.region,
            "difference": self.difference,
            "coordinates": self.coordinates.to_dict(),
        }


@dataclass
class LayoutResult:
    region_count: int
    major_differences: list[LayoutDifference] = field(default_factory=list)
    alignment: list[str] = field(default_factory=list)

    @property
    def grid_analysis(self) -> str:
        return f"{self.region_count} regions with significant layout differences"

    def to_dict(self) -> dict[str, Any]:
        return {
            "gridAnalysis": self.grid_analysis,
            "regionCount": self.region_count,
            "majorDifferences": [d.to_dict() for d in self.major_differences],
            "alignment": list(self.alignment),
        }


def format_rgb(color: RGB) -> str:
    r, g, b = color
    return f"rgb({r}, {g}, {b})"


@dataclass(frozen=True)
class ColorDifference:
    source: RGB
    target: RGB
    difference: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": format_rgb(self.source),
            "target": format_rgb(self.target),
            "difference": self.difference,
        }


@dataclass
class ColorResult:
    significant_differences: int
    examples: list[ColorDifference] = field(default_factory=list)
    sample_size: int = COLOR_SAMPLE_SIZE

    @property
    def summary(self) -> str:
        if self.significant_differences > MAJOR_COLOR_COUNT:
            return "Major color palette differences detected"
        if self.significant_differences > MODERATE_COLOR_COUNT:
            return "Moderate color differences detected"
        return "Minor or no color differences detected"

    def to_dict(self) -> dict[str, Any]:
        return {
            "significantDifferences": self.significant_differences,
            "examples": [e.to_dict() for e in self.examples],
            "summary": self.summary,
            "sampleSize": self.sample_size,
        }


@dataclass(frozen=True)
class TextRegion:
    x: int
    y: int
    contrast_a: float
    contrast_b: float
    has_significant_difference: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "contrastA": self.contrast_a,
            "contrastB": self.contrast_b,
            "hasSignificantDifference": self.has_significant_difference,
        }


@dataclass
class TypographyResult:
    regions: list[TextRegion] = field(default_factory=list)

    @property
    def text_regions_analyzed(self) -> int:
        return len(self.regions)

    @property
    def differences(self) -> list[TextRegion]:
        return [r for r in self.regions if r.has_significant_difference]

    @property
    def summary(self) -> str:
        if not self.regions:
            return "No clear text regions detected for typography analysis"
        return (
            f"Analyzed {len(self.regions)} text regions, "
            f"{len(self.differences)} show typography differences"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "textRegionsAnalyzed": self.text_regions_analyzed,
            "differences": [r.to_dict() for r in self.differences],
            "summary": self.summary,
        }


# =============================================================================
# Buffer helpers
# =============================================================================


def _pixel_grid(
    buffer_a: Buffer, buffer_b: Buffer, width: int, height: int
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Shape both buffers as (height, width, 3) int16 plus a validity mask.

    A pixel is valid only if all three of its bytes exist in both buffers.
    Missing pixels are zero-filled and masked out.
    """
    pixel_count = width * height
    usable = min(len(buffer_a) // CHANNELS, len(buffer_b) // CHANNELS, pixel_count)

    a = np.zeros(pixel_count * CHANNELS, dtype=np.int16)
    b = np.zeros(pixel_count * CHANNELS, dtype=np.int16)
    if usable:
        n = usable * CHANNELS
        a[:n] = np.frombuffer(buffer_a, dtype=np.uint8, count=n)
        b[:n] = np.frombuffer(buffer_b, dtype=np.uint8, count=n)
    valid = np.zeros(pixel_count, dtype=bool)
    valid[:usable] = True

    return (
        a.reshape(height, width, CHANNELS),
        b.reshape(height, width, CHANNELS),
        valid.reshape(height, width),
    )


# =============================================================================
# Similarity
# =============================================================================


def compute_similarity(
    buffer_a: Buffer, buffer_b: Buffer, width: int, height: int
) -> SimilarityResult:
    """Score two buffers by normalized mean absolute byte difference.

    ``similarity = 1 - sum(|A[i] - B[i]|) / (width * height * 3 * 255)``,
    clamped to [0, 1]. Empty input scores 1.0.
    """
    length = min(len(buffer_a), len(buffer_b))
    denominator = width * height * CHANNELS * MAX_CHANNEL
    if length == 0 or denominator <= 0:
        return SimilarityResult(similarity=1.0, total_diff_bytes=0)

    arr_a = np.frombuffer(buffer_a, dtype=np.uint8, count=length).astype(np.int16)
    arr_b = np.frombuffer(buffer_b, dtype=np.uint8, count=length).astype(np.int16)
    total_diff = int(np.abs(arr_a - arr_b).sum(dtype=np.int64))

    similarity = 1.0 - total_diff / denominator
    similarity = min(1.0, max(0.0, similarity))
    return SimilarityResult(similarity=similarity, total_diff_bytes=total_diff)


def is_similar(similarity: float, threshold: float) -> bool:
    """Whether a similarity passes the allowed difference ratio."""
    return similarity >= 1.0 - threshold


# =============================================================================
# Layout
# =============================================================================


def _band(index: int, grid_size: int, low: str, high: str) -> str:
    if index < grid_size / 3:
        return low
    if index > 2 * grid_size / 3:
        return high
    return "center"


def cell_region(row: int, col: int, grid_size: int = GRID_SIZE) -> str:
    """Label a cell as '<top|center|bottom>-<left|center|right>'."""
    vertical = _band(row, grid_size, "top", "bottom")
    horizontal = _band(col, grid_size, "left", "right")
    return f"{vertical}-{horizontal}"


def cell_differences(
    buffer_a: Buffer,
    buffer_b: Buffer,
    width: int,
    height: int,
    grid_size: int = GRID_SIZE,
) -> np.ndarray:
    """Normalized per-cell difference as a (grid_size, grid_size) array.

    Each value is the summed per-channel absolute difference of the cell's
    valid pixels divided by ``valid_pixels * 3 * 255``. Cells with no valid
    pixels score 0.
    """
    diffs = np.zeros((grid_size, grid_size), dtype=np.float64)
    cell_width = width // grid_size
    cell_height = height // grid_size
    if cell_width == 0 or cell_height == 0:
        return diffs

    a, b, valid = _pixel_grid(buffer_a, buffer_b, width, height)
    span_h = cell_height * grid_size
    span_w = cell_width * grid_size

    mask = valid[:span_h, :span_w]
    delta = np.abs(a[:span_h, :span_w] - b[:span_h, :span_w]).sum(axis=2, dtype=np.int64)
    delta[~mask] = 0

    shape = (grid_size, cell_height, grid_size, cell_width)
    totals = delta.reshape(shape).sum(axis=(1, 3))
    capacity = mask.reshape(shape).sum(axis=(1, 3)) * CHANNELS * MAX_CHANNEL
    np.divide(totals, capacity, out=diffs, where=capacity > 0)
    return diffs


def detect_alignment_differences(differences: list[LayoutDifference]) -> list[str]:
    """Derive alignment hints from flagged regions.

    Only two shifts are recognised: centered content that moved left, and
    centered content that moved right. Vertical shifts are not inferred.
    """
    regions = {d.region for d in differences}
    issues: list[str] = []
    if "center-left" in regions and "center-center" in regions:
        issues.append(CENTER_LEFT_ALIGNMENT)
    if "center-right" in regions and "center-center" in regions:
        issues.append(CENTER_RIGHT_ALIGNMENT)
    return issues


def analyze_layout(
    buffer_a: Buffer,
    buffer_b: Buffer,
    width: int,
    height: int,
    grid_size: int = GRID_SIZE,
) -> LayoutResult:
    """Locate where two renderings diverge on a fixed grid.

    Args:
        buffer_a: Source RGB buffer.
        buffer_b: Target RGB buffer.
        width: Shared image width in pixels.
        height: Shared image height in pixels.
        grid_size: Number of rows and columns in the partition.

    Returns:
        LayoutResult with the total flagged cell count, the first five flagged
        cells in row-major order, and any alignment hints.
    """
    diffs = cell_differences(buffer_a, buffer_b, width, height, grid_size)

    flagged: list[LayoutDifference] = []
    # argwhere yields row-major order
    for row, col in np.argwhere(diffs > LAYOUT_CELL_THRESHOLD):
        flagged.append(
            LayoutDifference(
                region=cell_region(int(row), int(col), grid_size),
                difference=float(diffs[row, col]),
                coordinates=GridCell(row=int(row), col=int(col)),
            )
        )

    result = LayoutResult(
        region_count=len(flagged),
        major_differences=flagged[:MAJOR_DIFFERENCE_LIMIT],
        alignment=detect_alignment_differences(flagged),
    )
    logger.debug("Layout: %s", result.grid_analysis)
    return result


# =============================================================================
# Colors
# =============================================================================


def analyze_colors(
    buffer_a: Buffer,
    buffer_b: Buffer,
    sample_size: int = COLOR_SAMPLE_SIZE,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
) -> ColorResult:
    """Sample pixel pairs and count significant RGB distances.

    Pixel indices are drawn uniformly with replacement. Without ``rng`` or
    ``seed`` the draw is unseeded, so repeated runs on the same input may
    differ.

    Args:
        buffer_a: Source RGB buffer.
        buffer_b: Target RGB buffer.
        sample_size: Number of pixel draws.
        rng: Generator to draw from. Takes precedence over ``seed``.
        seed: Seed for a fresh generator when ``rng`` is not given.
    """
    pixel_count = min(len(buffer_a), len(buffer_b)) // CHANNELS
    if pixel_count == 0 or sample_size <= 0:
        return ColorResult(significant_differences=0, sample_size=max(sample_size, 0))

    if rng is None:
        rng = np.random.default_rng(seed)

    n = pixel_count * CHANNELS
    pixels_a = np.frombuffer(buffer_a, dtype=np.uint8, count=n).reshape(-1, CHANNELS)
    pixels_b = np.frombuffer(buffer_b, dtype=np.uint8, count=n).reshape(-1, CHANNELS)

    indices = rng.integers(0, pixel_count, size=sample_size)
    sampled_a = pixels_a[indices].astype(np.int32)
    sampled_b = pixels_b[indices].astype(np.int32)
    distances = np.sqrt(((sampled_a - sampled_b) ** 2).sum(axis=1))

    significant = np.flatnonzero(distances > COLOR_DISTANCE_THRESHOLD)
    examples = [
        ColorDifference(
            source=tuple(int(v) for v in sampled_a[i]),  # type: ignore[arg-type]
            target=tuple(int(v) for v in sampled_b[i]),  # type: ignore[arg-type]
            difference=int(round(float(distances[i]))),
        )
        for i in significant[:COLOR_EXAMPLE_LIMIT]
    ]

    result = ColorResult(
        significant_differences=int(significant.size),
        examples=examples,
        sample_size=sample_size,
    )
    logger.debug(
        "Colors: %d/%d significant samples", result.significant_differences, sample_size
    )
    return result


# =============================================================================
# Typography
# =============================================================================


def _block_contrast(
    pixels: np.ndarray, valid: np.ndarray, rows: int, cols: int, block_size: int
) -> np.ndarray:
    """(max - min) / 255 of mean RGB brightness per block; 0 for empty blocks."""
    span_h = rows * block_size
    span_w = cols * block_size
    brightness = pixels[:span_h, :span_w].sum(axis=2) / CHANNELS
    mask = valid[:span_h, :span_w]

    shape = (rows, block_size, cols, block_size)
    highest = np.where(mask, brightness, -np.inf).reshape(shape).max(axis=(1, 3))
    lowest = np.where(mask, brightness, np.inf).reshape(shape).min(axis=(1, 3))
    has_pixels = np.isfinite(highest)
    return np.where(has_pixels, (highest - np.where(has_pixels, lowest, 0)) / MAX_CHANNEL, 0.0)


def detect_text_regions(
    buffer_a: Buffer,
    buffer_b: Buffer,
    width: int,
    height: int,
    block_size: int = BLOCK_SIZE,
) -> list[TextRegion]:
    """Find high-contrast blocks in either image, in row-major order.

    A block that ends exactly on the right or bottom edge is scanned, so a
    100x100 image yields 4 blocks rather than stopping one block short.
    """
    rows = height // block_size
    cols = width // block_size
    if rows == 0 or cols == 0:
        return []

    a, b, valid = _pixel_grid(buffer_a, buffer_b, width, height)
    contrast_a = _block_contrast(a, valid, rows, cols, block_size)
    contrast_b = _block_contrast(b, valid, rows, cols, block_size)

    regions: list[TextRegion] = []
    for row in range(rows):
        for col in range(cols):
            ca = float(contrast_a[row, col])
            cb = float(contrast_b[row, col])
            if ca > TEXT_CONTRAST_THRESHOLD or cb > TEXT_CONTRAST_THRESHOLD:
                regions.append(
                    TextRegion(
                        x=col * block_size,
                        y=row * block_size,
                        contrast_a=ca,
                        contrast_b=cb,
                        has_significant_difference=abs(ca - cb)
                        > TYPOGRAPHY_DELTA_THRESHOLD,
                    )
                )
    return regions


def analyze_typography(
    buffer_a: Buffer,
    buffer_b: Buffer,
    width: int,
    height: int,
    block_size: int = BLOCK_SIZE,
) -> TypographyResult:
    """Compare block contrast as a proxy for text rendering differences."""
    result = TypographyResult(
        regions=detect_text_regions(buffer_a, buffer_b, width, height, block_size)
    )
    logger.debug("Typography: %s", result.summary)
    return result
