"""Partition free windows into fixed-size bookable slots."""

from collections.abc import Iterable
from datetime import timedelta

from medibook.scheduling.models import TimeInterval


def split_window(window: TimeInterval, slot_size: timedelta) -> list[TimeInterval]:
    """Consecutive *slot_size* slots from the window start; the remainder is dropped."""
    slots: list[TimeInterval] = []
    current = window.start
    while current + slot_size <= window.end:
        slots.append(TimeInterval(start=current, end=current + slot_size))
        current += slot_size
    return slots


def generate_slots(
    free_windows: Iterable[TimeInterval],
    slot_size: timedelta,
) -> list[TimeInterval]:
    """Split every free window independently, preserving window order."""
    if slot_size <= timedelta(0):
        raise ValueError("slot_size must be positive")
    slots: list[TimeInterval] = []
    for window in free_windows:
        slots.extend(split_window(window, slot_size))
    return slots
