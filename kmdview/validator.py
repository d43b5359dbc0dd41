"""Validator: checks raw KMD JSON and builds a typed Document from it."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import numpy as np

from kmdview.errors import MissingFieldError, ShapeError
from kmdview.key_index import build_valid_indices
from kmdview.models import (
    METRIC_FIELDS,
    ConsistencyWarning,
    Document,
    Point,
    PointSeq,
    value_at,
)

logger = logging.getLogger(__name__)

#: Required top-level fields, in the order they are reported when missing
REQUIRED_FIELDS: list[str] = [
    "pianoname",
    "startingnoteindex",
    "keynumber_data",
    "xyvalues_data",
    "downweight_data",
    "upweight_data",
    "balanceweight_data",
    "friction_data",
    "keydip_data",
]

OPTIONAL_FIELDS: list[str] = ["numkeys", "twwindow_data"]

KNOWN_FIELDS: frozenset[str] = frozenset(REQUIRED_FIELDS + OPTIONAL_FIELDS)

#: Device noise allowed in the balance/friction identities (grams)
DEFAULT_TOLERANCE = 0.01


def validate(raw: Any) -> None:
    """
    Check a parsed JSON document against the required-field contract.

    Cross-array lengths and the balance/friction identities are not checked
    here; see :func:`check_consistency`.

    Raises:
        MissingFieldError: Naming the first absent field of REQUIRED_FIELDS.
        ShapeError: If the document is not an object, or ``keynumber_data``
            is not a list with at least the sentinel and one key.
    """
    if not isinstance(raw, Mapping):
        raise ShapeError("KMD data must be a JSON object")

    for name in REQUIRED_FIELDS:
        if name not in raw:
            raise MissingFieldError(name)

    key_numbers = raw["keynumber_data"]
    if not isinstance(key_numbers, list) or len(key_numbers) < 2:
        raise ShapeError("keynumber_data must be an array with at least one key")


# ------------------------------------------------------------------
# JSON text
# ------------------------------------------------------------------

def _reject_constant(name: str) -> Any:
    raise ShapeError(f"Non-finite number {name} is not allowed in KMD data")


def load_json(text: str) -> Any:
    """
    Parse KMD JSON text.

    Raises:
        ShapeError: If the text is not JSON, is nested too deeply to parse,
            or uses the NaN / Infinity literals.
    """
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ShapeError:
        raise
    except ValueError as exc:
        # JSONDecodeError, or an integer literal past the digit limit
        raise ShapeError(f"KMD data is not valid JSON: {exc}") from exc
    except RecursionError as exc:
        raise ShapeError("KMD data is nested too deeply to parse") from exc


# ------------------------------------------------------------------
# Typed parse helpers
# ------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    # json turns 1e400 into inf without calling parse_constant
    return isinstance(value, float) and math.isfinite(value)


def _require_list(raw: Mapping[str, Any], name: str) -> list[Any]:
    value = raw[name]
    if not isinstance(value, list):
        raise ShapeError(f"{name} must be an array")
    return value


def _parse_numbers(raw: Mapping[str, Any], name: str) -> tuple[float | None, ...]:
    values = _require_list(raw, name)
    for slot, value in enumerate(values):
        if value is not None and not _is_number(value):
            raise ShapeError(f"{name}[{slot}] must be a number or null")
    return tuple(values)


def _parse_key_numbers(raw: Mapping[str, Any]) -> tuple[int | None, ...]:
    values = raw["keynumber_data"]
    for slot, value in enumerate(values):
        if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
            raise ShapeError(f"keynumber_data[{slot}] must be an integer or null")
    return tuple(values)


def _parse_points(name: str, slot: int, entry: Any) -> PointSeq | None:
    if entry is None:
        return None
    if not isinstance(entry, list):
        raise ShapeError(f"{name}[{slot}] must be an array of points or null")

    points: list[Point] = []
    for i, item in enumerate(entry):
        if (
            not isinstance(item, Mapping)
            or not _is_number(item.get("x"))
            or not _is_number(item.get("y"))
        ):
            raise ShapeError(f"{name}[{slot}][{i}] must be an object with numeric x and y")
        points.append(Point(x=item["x"], y=item["y"]))
    return tuple(points)


def _parse_point_arrays(raw: Mapping[str, Any], name: str) -> tuple[PointSeq | None, ...]:
    entries = _require_list(raw, name)
    return tuple(_parse_points(name, slot, entry) for slot, entry in enumerate(entries))


def parse_document(raw: Any) -> Document:
    """
    Validate a parsed JSON object and build the typed Document from it.

    Raises:
        MissingFieldError: If a required field is absent.
        ShapeError: If a field has the wrong type or a point is malformed.
    """
    validate(raw)

    piano_name = raw["pianoname"]
    if not isinstance(piano_name, str):
        raise ShapeError("pianoname must be a string")

    starting_note_index = raw["startingnoteindex"]
    if not isinstance(starting_note_index, int) or isinstance(starting_note_index, bool):
        raise ShapeError("startingnoteindex must be an integer")

    num_keys = raw.get("numkeys")
    if num_keys is not None and not isinstance(num_keys, str):
        raise ShapeError("numkeys must be a string of decimal digits")

    touch_weight_window = None
    if raw.get("twwindow_data") is not None:
        touch_weight_window = _parse_point_arrays(raw, "twwindow_data")

    metrics = {attr: _parse_numbers(raw, json_name) for attr, json_name in METRIC_FIELDS}

    document = Document(
        piano_name=piano_name,
        starting_note_index=starting_note_index,
        key_numbers=_parse_key_numbers(raw),
        xy_values=_parse_point_arrays(raw, "xyvalues_data"),
        num_keys=num_keys,
        touch_weight_window=touch_weight_window,
        null_fields=frozenset(
            name for name in OPTIONAL_FIELDS if name in raw and raw[name] is None
        ),
        extras=MappingProxyType({k: v for k, v in raw.items() if k not in KNOWN_FIELDS}),
        **metrics,
    )
    logger.debug(
        "Parsed KMD document '%s' with %d slots", document.piano_name, document.slot_count
    )
    return document


# ------------------------------------------------------------------
# Advisory checks
# ------------------------------------------------------------------

def _as_array(values: tuple[float | None, ...], slots: list[int]) -> np.ndarray:
    """Gather ``values`` at ``slots`` into a float array, NaN where absent."""
    gathered = [value_at(values, slot) for slot in slots]
    return np.array([np.nan if v is None else v for v in gathered], dtype=float)


def check_consistency(
    document: Document, tolerance: float = DEFAULT_TOLERANCE
) -> list[ConsistencyWarning]:
    """
    Report data that loads but does not hold together.

    Findings are returned in this order: unequal parallel-array lengths, a
    non-empty sentinel slot, then per valid slot any violation of
    ``balance = (down + up) / 2`` and ``friction = (down - up) / 2`` beyond
    ``tolerance``. Slots missing one of the weights are skipped. Nothing in
    the document is corrected.
    """
    warnings: list[ConsistencyWarning] = []

    lengths = document.array_lengths()
    if len(set(lengths.values())) > 1:
        detail = ", ".join(f"{name}={length}" for name, length in lengths.items())
        warnings.append(
            ConsistencyWarning(kind="length", message=f"Parallel arrays differ in length: {detail}")
        )

    if value_at(document.key_numbers, 0) is not None or value_at(document.xy_values, 0) is not None:
        warnings.append(
            ConsistencyWarning(kind="sentinel", message="Slot 0 should be empty but holds key data", slot=0)
        )

    slots = list(build_valid_indices(document))
    if not slots:
        return warnings

    down = _as_array(document.down_weight, slots)
    up = _as_array(document.up_weight, slots)
    balance = _as_array(document.balance_weight, slots)
    friction = _as_array(document.friction, slots)

    expected_balance = (down + up) / 2
    expected_friction = (down - up) / 2
    with np.errstate(invalid="ignore"):
        bad_balance = np.abs(balance - expected_balance) > tolerance
        bad_friction = np.abs(friction - expected_friction) > tolerance

    for i, slot in enumerate(slots):
        key_number = document.key_numbers[slot]
        if bad_balance[i]:
            warnings.append(
                ConsistencyWarning(
                    kind="balance",
                    message=(
                        f"Key {key_number}: balance weight {balance[i]:g} != "
                        f"(down + up) / 2 = {expected_balance[i]:g}"
                    ),
                    slot=slot,
                    actual=float(balance[i]),
                    expected=float(expected_balance[i]),
                )
            )
        if bad_friction[i]:
            warnings.append(
                ConsistencyWarning(
                    kind="friction",
                    message=(
                        f"Key {key_number}: friction {friction[i]:g} != "
                        f"(down - up) / 2 = {expected_friction[i]:g}"
                    ),
                    slot=slot,
                    actual=float(friction[i]),
                    expected=float(expected_friction[i]),
                )
            )

    if warnings:
        logger.debug("Consistency check found %d issue(s)", len(warnings))
    return warnings
