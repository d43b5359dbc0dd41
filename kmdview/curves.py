"""CurveSplitter: splits a recorded key-press curve into downstroke and upstroke."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from kmdview.models import KeyCurve, Point


def turnaround_index(points: Sequence[Point] | None) -> int | None:
    """
    Index of the deepest point of travel (maximum x).

    Ties resolve to the first occurrence. Returns None for absent or empty
    input.
    """
    if not points:
        return None
    # np.argmax returns the first index on ties
    return int(np.argmax([p.x for p in points]))


def split_curve(points: Sequence[Point] | None) -> KeyCurve:
    """
    Split one press-and-release recording at its turnaround.

    The downstroke runs from the first point through the turnaround, the
    upstroke from the turnaround through the last point, so both strokes
    share the turnaround point. Points are neither reordered nor smoothed.

    Args:
        points: Time-ordered (dip, force) samples for one key.

    Returns:
        KeyCurve with both strokes empty when ``points`` is None or empty.
    """
    turn = turnaround_index(points)
    if turn is None:
        return KeyCurve()

    samples = tuple(points)  # type: ignore[arg-type]
    return KeyCurve(downstroke=samples[: turn + 1], upstroke=samples[turn:])
