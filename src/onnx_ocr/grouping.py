"""
Line Grouping

Groups reading-ordered recognition results into text lines. The line list is
the canonical form; ``to_grouped`` and ``to_flattened`` project it into the
two public result shapes.
"""

from typing import List, Sequence

from .schema import FlattenedOcrResult, OcrResult, RecognitionResult

Lines = List[List[RecognitionResult]]


def group_lines(results: Sequence[RecognitionResult]) -> Lines:
    """
    Split results into lines by vertical proximity.

    A result joins the current line when the gap between its top edge and
    the previous result's top edge is at most half the average box height of
    the current line. Otherwise it starts a new line.

    Args:
        results: Recognition results already in reading order

    Returns:
        List of lines, each a list of results
    """
    lines: Lines = []
    if not results:
        return lines

    current_line = [results[0]]
    avg_height = float(results[0].box.height)

    for previous, current in zip(results, results[1:]):
        vertical_gap = abs(current.box.y - previous.box.y)
        threshold = avg_height * 0.5

        if vertical_gap <= threshold:
            current_line.append(current)
            avg_height = sum(r.box.height for r in current_line) / len(current_line)
        else:
            lines.append(current_line)
            current_line = [current]
            avg_height = float(current.box.height)

    lines.append(current_line)
    return lines


def lines_to_text(lines: Lines) -> str:
    return "\n".join(" ".join(item.text for item in line) for line in lines)


def mean_confidence(results: Sequence[RecognitionResult]) -> float:
    if not results:
        return 0.0
    return sum(r.confidence for r in results) / len(results)


def to_grouped(lines: Lines) -> OcrResult:
    items = [item for line in lines for item in line]
    return OcrResult(
        text=lines_to_text(lines),
        lines=[list(line) for line in lines],
        confidence=mean_confidence(items),
    )


def to_flattened(lines: Lines) -> FlattenedOcrResult:
    items = [item for line in lines for item in line]
    return FlattenedOcrResult(
        text=lines_to_text(lines),
        results=items,
        confidence=mean_confidence(items),
    )
