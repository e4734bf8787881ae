"""
Unit tests for onnx_ocr.grouping module.
"""
import pytest

from onnx_ocr.grouping import group_lines, lines_to_text, to_flattened, to_grouped
from onnx_ocr.schema import Box, RecognitionResult


def result(text, x, y, height=10, confidence=0.5):
    return RecognitionResult(text=text, box=Box(x, y, 30, height), confidence=confidence)


class TestGroupLines:
    """Tests for group_lines."""

    def test_empty(self):
        assert group_lines([]) == []

    def test_close_tops_share_a_line(self):
        """Gaps up to half the average height stay on the line."""
        items = [result("a", 0, 0), result("b", 40, 5), result("c", 0, 30)]

        lines = group_lines(items)

        assert [[r.text for r in line] for line in lines] == [["a", "b"], ["c"]]

    def test_threshold_uses_running_average(self):
        """The line height is the mean of its members so far."""
        items = [result("a", 0, 0, height=10), result("b", 40, 5, height=30), result("c", 80, 14)]

        lines = group_lines(items)

        # avg after a, b is 20, so a gap of 9 still joins
        assert len(lines) == 1

    def test_gap_measured_from_previous_item(self):
        items = [result("a", 0, 0), result("b", 0, 6)]

        assert len(group_lines(items)) == 2


class TestProjections:
    """Tests for to_grouped, to_flattened and lines_to_text."""

    @pytest.fixture
    def lines(self):
        return [
            [result("hello", 0, 0, confidence=0.9), result("world", 40, 0, confidence=0.7)],
            [result("again", 0, 30, confidence=0.5)],
        ]

    def test_text_joins_words_and_lines(self, lines):
        assert lines_to_text(lines) == "hello world\nagain"

    def test_grouped(self, lines):
        grouped = to_grouped(lines)

        assert grouped.text == "hello world\nagain"
        assert [len(line) for line in grouped.lines] == [2, 1]
        assert grouped.confidence == pytest.approx(0.7)

    def test_grouped_and_flattened_agree(self, lines):
        """Both views carry the same text, items and confidence."""
        grouped = to_grouped(lines)
        flattened = to_flattened(lines)

        assert flattened.text == grouped.text
        assert flattened.confidence == pytest.approx(grouped.confidence)
        assert flattened.results == [item for line in grouped.lines for item in line]

    def test_empty_results(self):
        grouped = to_grouped([])
        flattened = to_flattened([])

        assert grouped.text == "" and grouped.lines == [] and grouped.confidence == 0.0
        assert flattened.text == "" and flattened.results == [] and flattened.confidence == 0.0

    def test_to_dict(self, lines):
        data = to_flattened(lines).to_dict()

        assert data["results"][0] == {
            "text": "hello",
            "box": {"x": 0, "y": 0, "width": 30, "height": 10},
            "confidence": 0.9,
        }
