"""
Interval splitting on the 24h row grid.

Every bar must live inside one row, so intervals crossing midnight are cut
into an overflow-start piece ending at 24:00 and continuation pieces starting
at 00:00 on the following rows. Pieces outside the visible rows are dropped.
"""

import math
from dataclasses import dataclass
from typing import List

_EPSILON = 1e-9


@dataclass(frozen=True)
class IntervalPiece:
    row: int
    start_hour: float
    end_hour: float
    is_overflow_start: bool = False
    is_overflow_continuation: bool = False

    @property
    def duration_hours(self) -> float:
        return self.end_hour - self.start_hour


class IntervalSplitter:
    """Cuts intervals at row boundaries and clamps them to [first_row, last_row]"""

    def __init__(self, first_row: int, last_row: int):
        assert first_row <= last_row, f"Empty row range: {first_row}-{last_row}"
        self.first_row = first_row
        self.last_row = last_row

    def split(self, row: int, start_hour: float, end_hour: float) -> List[IntervalPiece]:
        """
        Split (row, start, end). end <= start means the interval wraps past
        midnight; end may also exceed 24 for multi-row spans.
        """
        if end_hour <= start_hour:
            end_hour += 24
        return self.split_absolute(row, start_hour, end_hour)

    def split_absolute(self, row: int, start_hour: float, end_hour: float) -> List[IntervalPiece]:
        """
        Split an interval given in hours relative to the start of `row`.

        Hours may be negative or beyond 24; nothing wraps, so an interval
        with end <= start is empty.
        """
        if end_hour - start_hour <= _EPSILON:
            return []

        # Normalize so the start lies inside its row
        offset = math.floor(start_hour / 24)
        row += offset
        start_hour -= offset * 24
        end_hour -= offset * 24

        spans = []
        while end_hour - start_hour > _EPSILON:
            piece_end = min(end_hour, 24.0)
            spans.append((row, start_hour, piece_end))
            row += 1
            start_hour, end_hour = 0.0, end_hour - 24

        last = len(spans) - 1
        return [
            IntervalPiece(
                row=piece_row,
                start_hour=piece_start,
                end_hour=piece_end,
                is_overflow_start=i < last,
                is_overflow_continuation=i > 0,
            )
            for i, (piece_row, piece_start, piece_end) in enumerate(spans)
            if self.first_row <= piece_row <= self.last_row
        ]

    def split_span(self, start_row: int, start_hour: float, end_row: int, end_hour: float) -> List[IntervalPiece]:
        """Split an interval whose endpoints sit on (possibly different) rows"""
        if end_row < start_row:
            return []
        return self.split_absolute(start_row, start_hour, (end_row - start_row) * 24 + end_hour)
