"""Data models for a loaded KMD dataset and the values derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence, TypeVar

T = TypeVar("T")

# Per-slot metric arrays, in file order: (Document attribute, JSON field)
METRIC_FIELDS: list[tuple[str, str]] = [
    ("down_weight", "downweight_data"),
    ("up_weight", "upweight_data"),
    ("balance_weight", "balanceweight_data"),
    ("friction", "friction_data"),
    ("key_dip", "keydip_data"),
]


@dataclass(frozen=True)
class Point:
    """One sample of a key-press recording: x = key dip (mm), y = force (g)."""

    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


PointSeq = tuple[Point, ...]


def value_at(values: Sequence[T | None] | None, slot: int) -> T | None:
    """Return ``values[slot]``, or None when the array is absent or too short."""
    if values is None or slot < 0 or slot >= len(values):
        return None
    return values[slot]


def _points_to_json(points: PointSeq | None) -> list[dict[str, float]] | None:
    if points is None:
        return None
    return [p.to_dict() for p in points]


@dataclass(frozen=True)
class Document:
    """
    One loaded KMD export.

    All per-key data lives in parallel tuples indexed by key slot. Slot 0 is
    the absent sentinel; slots 1..N hold one measured key each. Numbers are
    kept exactly as parsed so the document serializes back without loss.

    Attributes:
        piano_name:          Free-text label of the instrument.
        starting_note_index: Note-mapping offset (0 when the lowest key is A0).
        key_numbers:         1-based key number per slot.
        xy_values:           Recorded (dip, force) curve per slot.
        down_weight:         Down weight per slot (g).
        up_weight:           Up weight per slot (g).
        balance_weight:      Balance weight per slot (g).
        friction:            Friction per slot (g).
        key_dip:             Key dip per slot (mm).
        num_keys:            Key count of the instrument, as the digit string
                             found in the file. None when the file omits it.
        touch_weight_window: Pair of points bounding the analysis window per
                             slot. None when the file omits the array.
        null_fields:         Optional fields the file sets to an explicit
                             null, written back as null.
        extras:              Unrecognised top-level fields, kept verbatim and
                             read-only. Left out of the hash.
    """

    piano_name: str
    starting_note_index: int
    key_numbers: tuple[int | None, ...]
    xy_values: tuple[PointSeq | None, ...]
    down_weight: tuple[float | None, ...]
    up_weight: tuple[float | None, ...]
    balance_weight: tuple[float | None, ...]
    friction: tuple[float | None, ...]
    key_dip: tuple[float | None, ...]
    num_keys: str | None = None
    touch_weight_window: tuple[PointSeq | None, ...] | None = None
    null_fields: frozenset[str] = frozenset()
    extras: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )

    @property
    def key_count(self) -> int | None:
        """``num_keys`` as an int, or None when it is missing or not numeric."""
        if self.num_keys is not None and self.num_keys.isdigit():
            return int(self.num_keys)
        return None

    @property
    def slot_count(self) -> int:
        """Number of slots, sentinel included, as given by ``key_numbers``."""
        return len(self.key_numbers)

    def array_lengths(self) -> dict[str, int]:
        """Length of every parallel array present, keyed by JSON field name."""
        lengths = {
            "keynumber_data": len(self.key_numbers),
            "xyvalues_data": len(self.xy_values),
        }
        if self.touch_weight_window is not None:
            lengths["twwindow_data"] = len(self.touch_weight_window)
        for attr, json_name in METRIC_FIELDS:
            lengths[json_name] = len(getattr(self, attr))
        return lengths

    def to_dict(self) -> dict[str, Any]:
        """Rebuild the JSON object this document was parsed from."""
        data: dict[str, Any] = {"pianoname": self.piano_name}
        if self.num_keys is not None or "numkeys" in self.null_fields:
            data["numkeys"] = self.num_keys
        data["startingnoteindex"] = self.starting_note_index
        data["keynumber_data"] = list(self.key_numbers)
        data["xyvalues_data"] = [_points_to_json(points) for points in self.xy_values]
        if self.touch_weight_window is not None:
            data["twwindow_data"] = [
                _points_to_json(points) for points in self.touch_weight_window
            ]
        elif "twwindow_data" in self.null_fields:
            data["twwindow_data"] = None
        for attr, json_name in METRIC_FIELDS:
            data[json_name] = list(getattr(self, attr))
        data.update(self.extras)
        return data


@dataclass(frozen=True)
class KeyCurve:
    """A key-press curve split at its turnaround (deepest travel)."""

    downstroke: PointSeq = ()
    upstroke: PointSeq = ()

    @property
    def turnaround(self) -> Point | None:
        """The point shared by both strokes, or None for an empty curve."""
        return self.downstroke[-1] if self.downstroke else None


@dataclass(frozen=True)
class KeyReading:
    """Everything a renderer needs to show one measured key."""

    slot: int
    key_number: int
    note_name: str
    is_black: bool
    down_weight: float | None
    up_weight: float | None
    balance_weight: float | None
    friction: float | None
    key_dip: float | None
    touch_weight_window: PointSeq | None
    curve: KeyCurve


@dataclass(frozen=True)
class MetricSummary:
    """Aggregate of one metric over the measured keys; None when no values."""

    count: int
    mean: float | None
    minimum: float | None
    maximum: float | None


@dataclass(frozen=True)
class ConsistencyWarning:
    """
    An advisory finding about loaded data. Never aborts loading.

    Attributes:
        kind:     ``"length"``, ``"sentinel"``, ``"balance"`` or ``"friction"``.
        message:  Human-readable description.
        slot:     Affected key slot, when the finding concerns one slot.
        actual:   Value found in the file.
        expected: Value implied by the other fields.
    """

    kind: str
    message: str
    slot: int | None = None
    actual: float | None = None
    expected: float | None = None
