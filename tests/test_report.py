"""Tests for compare() orchestration and report formatting."""

from __future__ import annotations

import io

import pytest  # type: ignore[import-not-found]
from PIL import Image, ImageDraw

from web_compare_mcp.capture import PageSummary, compare_content
from web_compare_mcp.pixels import DecodeError
from web_compare_mcp.report import (
    CompareOptions,
    compare,
    format_analysis,
    format_content_comparison,
    format_page_summary,
)

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)


def _png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _solid_png(width: int, height: int, color: tuple[int, int, int]) -> bytes:
    return _png(Image.new("RGB", (width, height), color))


def _half_white_png() -> bytes:
    img = Image.new("RGB", (40, 40), BLACK)
    ImageDraw.Draw(img).rectangle((0, 0, 39, 19), fill=WHITE)
    return _png(img)


def _summary(title: str, elements: int, **main: int) -> PageSummary:
    return PageSummary(
        title=title,
        body_text="Hello world",
        visible_elements=elements,
        has_content=True,
        main_elements=main,
    )


# =============================================================================
# compare
# =============================================================================


class TestCompare:
    def test_identical_gray_images(self) -> None:
        img = _solid_png(100, 100, (128, 128, 128))
        analysis = compare(img, img)
        assert analysis.similarity == 1.0
        assert analysis.similar
        assert analysis.dimensions_match
        assert analysis.layout is not None
        assert analysis.layout.major_differences == []
        assert analysis.colors is not None
        assert analysis.colors.significant_differences == 0
        assert analysis.typography is not None
        assert analysis.typography.differences == []

    def test_black_vs_white(self) -> None:
        analysis = compare(
            _solid_png(40, 40, BLACK),
            _solid_png(40, 40, WHITE),
            CompareOptions(seed=3),
        )
        assert analysis.similarity == pytest.approx(0.0)
        assert not analysis.similar
        assert analysis.colors is not None
        assert analysis.colors.summary == "Major color palette differences detected"

    def test_threshold_monotonicity(self) -> None:
        a = _solid_png(40, 40, BLACK)
        b = _half_white_png()
        strict = compare(a, b, CompareOptions(threshold=0.1))
        lenient = compare(a, b, CompareOptions(threshold=0.5))
        assert strict.similarity == lenient.similarity == pytest.approx(0.5)
        assert not strict.similar
        assert lenient.similar

    def test_dimension_mismatch_is_reported_not_raised(self) -> None:
        analysis = compare(_solid_png(60, 40, BLACK), _solid_png(40, 60, BLACK))
        assert not analysis.dimensions_match
        data = analysis.to_dict()
        assert data["dimensions"] == {
            "source": {"width": 60, "height": 40},
            "target": {"width": 40, "height": 60},
            "match": False,
        }
        assert analysis.similarity == 1.0

    def test_skipped_analyses_are_none(self) -> None:
        img = _solid_png(20, 20, BLACK)
        analysis = compare(
            img,
            img,
            CompareOptions(
                analyze_layout=False, analyze_colors=False, analyze_typography=False
            ),
        )
        assert analysis.layout is None
        assert analysis.colors is None
        assert analysis.typography is None
        data = analysis.to_dict()
        assert data["layout"] is None
        assert data["similar"] is True

    def test_decode_error_aborts(self) -> None:
        with pytest.raises(DecodeError):
            compare(b"garbage", _solid_png(10, 10, BLACK))

    def test_seeded_compare_is_reproducible(self) -> None:
        a = _solid_png(40, 40, BLACK)
        b = _half_white_png()
        first = compare(a, b, CompareOptions(seed=11)).to_dict()
        second = compare(a, b, CompareOptions(seed=11)).to_dict()
        assert first == second


class TestCompareOptions:
    def test_defaults(self) -> None:
        options = CompareOptions()
        assert options.threshold == 0.1
        assert options.analyze_layout and options.analyze_colors
        assert options.analyze_typography
        assert options.seed is None

    @pytest.mark.parametrize("threshold", [-0.1, 1.5])
    def test_threshold_out_of_range(self, threshold: float) -> None:
        with pytest.raises(ValueError, match="threshold"):
            CompareOptions(threshold=threshold)

    def test_from_arguments(self) -> None:
        options = CompareOptions.from_arguments(
            {"threshold": 0.25, "analyzeColors": False, "seed": 5}
        )
        assert options.threshold == 0.25
        assert not options.analyze_colors
        assert options.analyze_layout
        assert options.seed == 5


# =============================================================================
# Formatting
# =============================================================================


class TestFormatAnalysis:
    def test_section_order(self) -> None:
        analysis = compare(
            _solid_png(100, 100, BLACK), _solid_png(100, 100, WHITE), CompareOptions(seed=1)
        )
        text = format_analysis(analysis)
        headings = [
            "## Dimensions",
            "## Overall Similarity",
            "## Layout Analysis",
            "## Color Analysis",
            "## Typography Analysis",
        ]
        positions = [text.index(h) for h in headings]
        assert positions == sorted(positions)
        assert "## Overall Similarity: 0.0% FAIL" in text
        assert "- Match: yes" in text

    def test_omits_skipped_sections(self) -> None:
        img = _solid_png(20, 20, BLACK)
        analysis = compare(
            img, img, CompareOptions(analyze_layout=False, analyze_typography=False)
        )
        text = format_analysis(analysis)
        assert "## Layout Analysis" not in text
        assert "## Typography Analysis" not in text
        assert "## Color Analysis" in text
        assert "## Overall Similarity: 100.0% PASS" in text

    def test_shows_three_color_examples(self) -> None:
        analysis = compare(
            _solid_png(40, 40, BLACK), _solid_png(40, 40, WHITE), CompareOptions(seed=2)
        )
        text = format_analysis(analysis)
        example_lines = [line for line in text.splitlines() if line.startswith("  - rgb")]
        assert len(example_lines) == 3
        assert example_lines[0] == "  - rgb(0, 0, 0) -> rgb(255, 255, 255) (diff: 442)"

    def test_alignment_issues_listed(self) -> None:
        analysis = compare(_solid_png(40, 40, BLACK), _solid_png(40, 40, WHITE))
        assert "- Alignment issues: Content appears centered" in format_analysis(analysis)


class TestFormatContentComparison:
    def test_renders_counts(self) -> None:
        content = compare_content(
            _summary("Home", 120, headings=3, buttons=2),
            _summary("Home", 100, headings=1, buttons=2),
        )
        text = format_content_comparison(content)
        assert '- Source Title: "Home"' in text
        assert "- Titles Match: yes" in text
        assert "- Difference: 20 elements" in text
        assert "- Headings: 3 -> 1" in text
        assert "- Table Rows: 0 -> 0" in text

    def test_to_dict(self) -> None:
        content = compare_content(_summary("A", 5), _summary("B", 9))
        data = content.to_dict()
        assert data["titles"] == {"source": "A", "target": "B", "match": False}
        assert data["elementCounts"]["difference"] == 4
        assert set(data["structuralElements"]) == {
            "headings",
            "paragraphs",
            "buttons",
            "tables",
            "tableRows",
        }


class TestFormatPageSummary:
    def test_includes_path_and_preview(self) -> None:
        text = format_page_summary(
            "http://localhost:3000", _summary("Dash", 42, buttons=4), "/tmp/shot.png"
        )
        assert text.startswith("Screenshot captured from http://localhost:3000")
        assert "Screenshot saved to: /tmp/shot.png" in text
        assert "- Visible Elements: 42" in text
        assert "- buttons: 4" in text
        assert "Hello world" in text

    def test_page_summary_from_dict(self) -> None:
        summary = PageSummary.from_dict(
            {
                "title": "T",
                "bodyText": "body",
                "visibleElements": 7,
                "hasContent": False,
                "mainElements": {"headings": 2},
            }
        )
        assert summary.visible_elements == 7
        assert summary.main_elements == {"headings": 2}
        assert summary.to_dict()["bodyText"] == "body"
