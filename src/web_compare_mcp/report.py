"""Comparison orchestration and human-readable report rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import numpy as np
from PIL import Image

from .analysis import (
    ColorResult,
    LayoutResult,
    TypographyResult,
    analyze_colors,
    analyze_layout,
    analyze_typography,
    compute_similarity,
    is_similar,
)
from .capture import ContentComparison, PageSummary
from .pixels import ImageMetadata, prepare_buffers

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.1
COLOR_EXAMPLES_SHOWN = 3


@dataclass
class CompareOptions:
    """Which analyses to run and how strict the pass/fail verdict is.

    ``threshold`` is the allowed difference ratio: a comparison passes when
    ``similarity >= 1 - threshold``. ``seed`` makes color sampling
    reproducible.
    """

    threshold: float = DEFAULT_THRESHOLD
    analyze_layout: bool = True
    analyze_colors: bool = True
    analyze_typography: bool = True
    seed: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be between 0 and 1, got {self.threshold}")

    @classmethod
    def from_arguments(cls, arguments: dict[str, Any]) -> CompareOptions:
        """Build options from camelCase tool arguments."""
        seed = arguments.get("seed")
        return cls(
            threshold=float(arguments.get("threshold", DEFAULT_THRESHOLD)),
            analyze_layout=bool(arguments.get("analyzeLayout", True)),
            analyze_colors=bool(arguments.get("analyzeColors", True)),
            analyze_typography=bool(arguments.get("analyzeTypography", True)),
            seed=int(seed) if seed is not None else None,
        )


@dataclass
class ComparisonAnalysis:
    source: ImageMetadata
    target: ImageMetadata
    similarity: float
    similar: bool
    layout: LayoutResult | None = None
    colors: ColorResult | None = None
    typography: TypographyResult | None = None

    @property
    def dimensions_match(self) -> bool:
        return self.source == self.target

    def to_dict(self) -> dict[str, Any]:
        return {
            "dimensions": {
                "source": self.source.to_dict(),
                "target": self.target.to_dict(),
                "match": self.dimensions_match,
            },
            "layout": self.layout.to_dict() if self.layout else None,
            "colors": self.colors.to_dict() if self.colors else None,
            "typography": self.typography.to_dict() if self.typography else None,
            "similarity": self.similarity,
            "similar": self.similar,
        }


def compare(
    image_a: bytes | Image.Image,
    image_b: bytes | Image.Image,
    options: CompareOptions | None = None,
) -> ComparisonAnalysis:
    """Run the requested analyses over two screenshots.

    Args:
        image_a: Source image as encoded bytes or a Pillow image.
        image_b: Target image as encoded bytes or a Pillow image.
        options: Analyses to run and the pass threshold.

    Raises:
        DecodeError: If either image cannot be decoded. No partial result is
            produced.
    """
    options = options or CompareOptions()
    prepared = prepare_buffers(image_a, image_b)
    a, b = prepared.buffer_a, prepared.buffer_b
    width, height = prepared.width, prepared.height

    layout = analyze_layout(a, b, width, height) if options.analyze_layout else None
    colors = (
        analyze_colors(a, b, rng=np.random.default_rng(options.seed))
        if options.analyze_colors
        else None
    )
    typography = (
        analyze_typography(a, b, width, height) if options.analyze_typography else None
    )
    scored = compute_similarity(a, b, width, height)

    analysis = ComparisonAnalysis(
        source=prepared.meta_a,
        target=prepared.meta_b,
        similarity=scored.similarity,
        similar=is_similar(scored.similarity, options.threshold),
        layout=layout,
        colors=colors,
        typography=typography,
    )
    logger.info(
        "Compared %dx%d buffers: similarity %.3f (%s)",
        width,
        height,
        analysis.similarity,
        "pass" if analysis.similar else "fail",
    )
    return analysis


# =============================================================================
# Formatting
# =============================================================================


def _mark(ok: bool) -> str:
    return "yes" if ok else "no"


def format_percent(value: float) -> str:
    return f"{value * 100:.1f}%"


def format_analysis(analysis: ComparisonAnalysis) -> str:
    """Render an analysis as text.

    Sections appear in a fixed order (dimensions, overall similarity, layout,
    colors, typography); analyses that were not run are left out.
    """
    verdict = "PASS" if analysis.similar else "FAIL"
    lines = [
        "## Dimensions",
        f"- Source: {analysis.source.width}x{analysis.source.height}",
        f"- Target: {analysis.target.width}x{analysis.target.height}",
        f"- Match: {_mark(analysis.dimensions_match)}",
        "",
        f"## Overall Similarity: {format_percent(analysis.similarity)} {verdict}",
        "",
    ]

    if analysis.layout is not None:
        lines.append("## Layout Analysis")
        lines.append(f"- {analysis.layout.grid_analysis}")
        if analysis.layout.alignment:
            lines.append(f"- Alignment issues: {', '.join(analysis.layout.alignment)}")
        lines.append("")

    if analysis.colors is not None:
        lines.append("## Color Analysis")
        lines.append(f"- {analysis.colors.summary}")
        if analysis.colors.examples:
            lines.append("- Example differences:")
            for diff in analysis.colors.examples[:COLOR_EXAMPLES_SHOWN]:
                d = diff.to_dict()
                lines.append(
                    f"  - {d['source']} -> {d['target']} (diff: {d['difference']})"
                )
        lines.append("")

    if analysis.typography is not None:
        lines.append("## Typography Analysis")
        lines.append(f"- {analysis.typography.summary}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def format_content_comparison(content: ContentComparison) -> str:
    """Render title, element count and structural comparison of two pages."""
    labels = {
        "headings": "Headings",
        "paragraphs": "Paragraphs",
        "buttons": "Buttons",
        "tables": "Tables",
        "tableRows": "Table Rows",
    }
    lines = [
        "## Content Analysis",
        f'- Source Title: "{content.source.title}"',
        f'- Target Title: "{content.target.title}"',
        f"- Titles Match: {_mark(content.titles_match)}",
        "",
        "## Element Counts",
        f"- Source Elements: {content.source.visible_elements}",
        f"- Target Elements: {content.target.visible_elements}",
        f"- Difference: {content.element_difference} elements",
        "",
        "## Structural Comparison",
    ]
    for name, counts in content.structural().items():
        lines.append(f"- {labels[name]}: {counts['source']} -> {counts['target']}")
    return "\n".join(lines) + "\n"


def format_page_summary(url: str, summary: PageSummary, path: str | None = None) -> str:
    """Render a single captured page's summary."""
    lines = [f"Screenshot captured from {url}", ""]
    if path:
        lines += [f"Screenshot saved to: {path}", ""]
    lines += [
        "## Page Analysis",
        f"- Title: {summary.title}",
        f"- Has Content: {_mark(summary.has_content)}",
        f"- Visible Elements: {summary.visible_elements}",
        "",
        "## Content Elements",
    ]
    for name, count in summary.main_elements.items():
        lines.append(f"- {name}: {count}")
    if summary.body_text:
        lines += ["", "## Page Content Preview", summary.body_text]
    return "\n".join(lines) + "\n"
