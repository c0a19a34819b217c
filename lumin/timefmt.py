"""Formatting helpers for break durations."""

from __future__ import annotations


def format_countdown(seconds: float) -> str:
    """``MM:SS`` — minutes are not wrapped at 60."""
    total = int(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"


def humanize(seconds: float) -> str:
    total = int(seconds)
    minutes, secs = divmod(total, 60)
    if minutes > 0:
        return f"{minutes} min {secs} sec"
    return f"{secs} sec"
