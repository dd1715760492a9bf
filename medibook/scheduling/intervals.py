"""Half-open interval arithmetic used by the availability engine.

Every function here is pure and total over valid :class:`TimeInterval`
inputs. Intervals are ``[start, end)`` so adjacent windows tile without
overlapping.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from typing import Optional

from medibook.scheduling.models import TimeInterval


def clamp(
    window: TimeInterval,
    range_start: datetime,
    range_end: datetime,
) -> Optional[TimeInterval]:
    """Intersect *window* with ``[range_start, range_end)``.

    Returns ``None`` when the intersection is empty or zero-length.
    """
    start = max(window.start, range_start)
    end = min(window.end, range_end)
    if end <= start:
        return None
    return TimeInterval(start=start, end=end)


def expand_by_buffer(window: TimeInterval, buffer: timedelta) -> TimeInterval:
    """Widen *window* by *buffer* on both sides."""
    if not buffer:
        return window
    return TimeInterval(start=window.start - buffer, end=window.end + buffer)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.start < b.end and b.start < a.end


def contains(outer: TimeInterval, inner: TimeInterval) -> bool:
    return outer.start <= inner.start and outer.end >= inner.end


def _split(segment: TimeInterval, busy: TimeInterval) -> list[TimeInterval]:
    """Remove *busy* from one segment, leaving zero, one or two pieces."""
    if busy.end <= segment.start or busy.start >= segment.end:
        return [segment]

    pieces: list[TimeInterval] = []
    if busy.start > segment.start:
        pieces.append(TimeInterval(start=segment.start, end=busy.start))
    if busy.end < segment.end:
        pieces.append(TimeInterval(start=busy.end, end=segment.end))
    return pieces


def subtract(
    free_windows: Iterable[TimeInterval],
    busy_windows: Sequence[TimeInterval],
) -> list[TimeInterval]:
    """Subtract every busy window from every free window.

    Busy windows are applied in input order, each against the segments left
    by the previous ones. Output follows free-window order, then segment
    order; nothing is sorted or merged.
    """
    result: list[TimeInterval] = []
    for free in free_windows:
        segments = [free]
        for busy in busy_windows:
            segments = [piece for seg in segments for piece in _split(seg, busy)]
            if not segments:
                break
        result.extend(segments)
    return result
