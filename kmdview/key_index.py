"""KeyIndex: the measured key slots of a Document and the per-key views built on them."""

from __future__ import annotations

from typing import Iterator

import numpy as np

from kmdview.curves import split_curve
from kmdview.key_math import is_black_key, note_name
from kmdview.models import METRIC_FIELDS, Document, KeyReading, MetricSummary, value_at


def build_valid_indices(document: Document) -> tuple[int, ...]:
    """
    Return the slots that hold a measured key, in ascending order.

    A slot counts when both its key number and its xy-values are present.
    This is the iteration order for every per-key table and statistic.
    """
    return tuple(
        slot
        for slot, key_number in enumerate(document.key_numbers)
        if key_number is not None and value_at(document.xy_values, slot) is not None
    )


def _reading(document: Document, slot: int) -> KeyReading:
    key_number = document.key_numbers[slot]
    if key_number is None:
        raise ValueError(f"Slot {slot} holds no key number")
    return KeyReading(
        slot=slot,
        key_number=key_number,
        note_name=note_name(key_number, document.starting_note_index),
        is_black=is_black_key(key_number, document.starting_note_index),
        down_weight=value_at(document.down_weight, slot),
        up_weight=value_at(document.up_weight, slot),
        balance_weight=value_at(document.balance_weight, slot),
        friction=value_at(document.friction, slot),
        key_dip=value_at(document.key_dip, slot),
        touch_weight_window=value_at(document.touch_weight_window, slot),
        curve=split_curve(value_at(document.xy_values, slot)),
    )


def iter_readings(document: Document) -> Iterator[KeyReading]:
    """Yield a KeyReading for every valid slot, in KeyIndex order."""
    for slot in build_valid_indices(document):
        yield _reading(document, slot)


def reading_for_key(document: Document, key_number: int) -> KeyReading | None:
    """Return the reading of the first valid slot holding ``key_number``."""
    for slot in build_valid_indices(document):
        if document.key_numbers[slot] == key_number:
            return _reading(document, slot)
    return None


def summarize(document: Document) -> dict[str, MetricSummary]:
    """
    Aggregate each metric over the valid slots, skipping absent values.

    Returns:
        Mapping from Document attribute name (e.g. ``"down_weight"``) to its
        MetricSummary.
    """
    slots = build_valid_indices(document)
    summaries: dict[str, MetricSummary] = {}

    for attr, _json_name in METRIC_FIELDS:
        column = getattr(document, attr)
        present = [v for v in (value_at(column, slot) for slot in slots) if v is not None]
        if not present:
            summaries[attr] = MetricSummary(count=0, mean=None, minimum=None, maximum=None)
            continue

        values = np.asarray(present, dtype=float)
        summaries[attr] = MetricSummary(
            count=int(values.size),
            mean=float(values.mean()),
            minimum=float(values.min()),
            maximum=float(values.max()),
        )

    return summaries
