"""Unit tests for validation, typed parsing and consistency diagnostics."""

import json
from typing import Any

import pytest

from kmdview.errors import KmdDataError, MissingFieldError, ShapeError
from kmdview.models import Document, Point
from kmdview.validator import (
    REQUIRED_FIELDS,
    check_consistency,
    load_json,
    parse_document,
    validate,
)

# ---------------------------------------------------------------------------
# validate()
# ---------------------------------------------------------------------------


def test_validate_accepts_example_data(example_raw: dict[str, Any]) -> None:
    validate(example_raw)


def test_validate_accepts_minimal_document(minimal_raw: dict[str, Any]) -> None:
    validate(minimal_raw)


def test_validate_names_first_missing_field() -> None:
    with pytest.raises(MissingFieldError) as excinfo:
        validate({"pianoname": "test"})
    assert excinfo.value.field == "startingnoteindex"
    assert str(excinfo.value) == "Missing required field: startingnoteindex"


@pytest.mark.parametrize("field", REQUIRED_FIELDS)
def test_validate_rejects_each_missing_required_field(
    minimal_raw: dict[str, Any], field: str
) -> None:
    del minimal_raw[field]
    with pytest.raises(MissingFieldError) as excinfo:
        validate(minimal_raw)
    assert excinfo.value.field == field


def test_validate_rejects_key_numbers_with_only_sentinel(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["keynumber_data"] = [None]
    with pytest.raises(ShapeError):
        validate(minimal_raw)


def test_validate_rejects_key_numbers_that_are_not_a_list(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["keynumber_data"] = "1,2"
    with pytest.raises(ShapeError):
        validate(minimal_raw)


def test_validate_rejects_non_object() -> None:
    with pytest.raises(ShapeError):
        validate([1, 2, 3])


def test_validate_ignores_unequal_lengths(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["keydip_data"] = [None]
    validate(minimal_raw)


def test_load_errors_are_value_errors() -> None:
    assert issubclass(MissingFieldError, KmdDataError)
    assert issubclass(ShapeError, ValueError)


# ---------------------------------------------------------------------------
# parse_document()
# ---------------------------------------------------------------------------


def test_parse_document_metadata(example_document: Document) -> None:
    assert example_document.piano_name == "Tom-Mason"
    assert example_document.num_keys == "88"
    assert example_document.key_count == 88
    assert example_document.starting_note_index == 0
    assert example_document.slot_count == 76


def test_parse_document_keeps_sentinel_slot(example_document: Document) -> None:
    assert example_document.key_numbers[0] is None
    assert example_document.xy_values[0] is None
    assert example_document.down_weight[0] is None


def test_parse_document_builds_points(minimal_document: Document) -> None:
    assert minimal_document.xy_values[1] == (
        Point(x=0, y=0),
        Point(x=5.5, y=40.0),
        Point(x=0.0, y=0),
    )


def test_parse_document_keeps_integer_numbers(minimal_document: Document) -> None:
    window = minimal_document.touch_weight_window[1]
    assert isinstance(window[0].x, int)
    assert window[1].x == 4.5


def test_parse_document_touch_weight_window_is_optional(minimal_raw: dict[str, Any]) -> None:
    del minimal_raw["twwindow_data"]
    del minimal_raw["numkeys"]
    document = parse_document(minimal_raw)
    assert document.touch_weight_window is None
    assert document.num_keys is None
    assert document.key_count is None


def test_parse_document_keeps_unknown_fields(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["serialnumber"] = "KMD-0042"
    document = parse_document(minimal_raw)
    assert document.extras == {"serialnumber": "KMD-0042"}


def test_parse_document_rejects_array_that_is_not_a_list(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["friction_data"] = {"1": 15.0}
    with pytest.raises(ShapeError, match="friction_data"):
        parse_document(minimal_raw)


def test_parse_document_rejects_malformed_point(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["xyvalues_data"][2][1] = {"x": 9.75}
    with pytest.raises(ShapeError, match=r"xyvalues_data\[2\]\[1\]"):
        parse_document(minimal_raw)


def test_parse_document_rejects_non_integer_key_number(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["keynumber_data"][1] = "1"
    with pytest.raises(ShapeError):
        parse_document(minimal_raw)


def test_parse_document_rejects_non_numeric_metric(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["downweight_data"][2] = "52.5"
    with pytest.raises(ShapeError, match="downweight_data"):
        parse_document(minimal_raw)


# ---------------------------------------------------------------------------
# check_consistency()
# ---------------------------------------------------------------------------


def test_check_consistency_clean_data(minimal_document: Document) -> None:
    assert check_consistency(minimal_document) == []


def test_check_consistency_example_data_is_clean(example_document: Document) -> None:
    assert check_consistency(example_document) == []


def test_check_consistency_reports_unequal_lengths(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["keydip_data"].append(11.0)
    warnings = check_consistency(parse_document(minimal_raw))
    assert [w.kind for w in warnings] == ["length"]
    assert "keydip_data=4" in warnings[0].message


def test_check_consistency_reports_filled_sentinel(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["keynumber_data"][0] = 99
    warnings = check_consistency(parse_document(minimal_raw))
    assert [w.kind for w in warnings] == ["sentinel"]
    assert warnings[0].slot == 0


def test_check_consistency_reports_balance_mismatch(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["balanceweight_data"][1] = 35.5
    warnings = check_consistency(parse_document(minimal_raw))
    assert len(warnings) == 1
    warning = warnings[0]
    assert warning.kind == "balance"
    assert warning.slot == 1
    assert warning.actual == pytest.approx(35.5)
    assert warning.expected == pytest.approx(35.0)


def test_check_consistency_reports_friction_mismatch(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["friction_data"][2] = 14.0
    warnings = check_consistency(parse_document(minimal_raw))
    assert [(w.kind, w.slot) for w in warnings] == [("friction", 2)]


def test_check_consistency_within_tolerance(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["balanceweight_data"][1] = 35.005
    minimal_raw["friction_data"][1] = 14.995
    assert check_consistency(parse_document(minimal_raw)) == []


def test_check_consistency_custom_tolerance(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["balanceweight_data"][1] = 35.2
    document = parse_document(minimal_raw)
    assert check_consistency(document, tolerance=0.5) == []
    assert len(check_consistency(document, tolerance=0.1)) == 1


def test_check_consistency_skips_slots_with_missing_weights(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["upweight_data"][1] = None
    assert check_consistency(parse_document(minimal_raw)) == []


def test_check_consistency_does_not_correct_values(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["balanceweight_data"][1] = 40.0
    document = parse_document(minimal_raw)
    check_consistency(document)
    assert document.balance_weight[1] == 40.0


# ---------------------------------------------------------------------------
# Non-finite numbers and JSON text
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_parse_document_rejects_non_finite_metric(minimal_raw: dict[str, Any], value: float) -> None:
    minimal_raw["keydip_data"][1] = value
    with pytest.raises(ShapeError, match=r"keydip_data\[1\]"):
        parse_document(minimal_raw)


def test_parse_document_rejects_non_finite_point(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["xyvalues_data"][1][1] = {"x": float("inf"), "y": 40.0}
    with pytest.raises(ShapeError, match=r"xyvalues_data\[1\]\[1\]"):
        parse_document(minimal_raw)


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_load_json_rejects_non_finite_literals(literal: str) -> None:
    with pytest.raises(ShapeError, match=literal):
        load_json(f'{{"keydip_data": [null, {literal}]}}')


def test_load_json_overflowing_number_fails_parse(minimal_raw: dict[str, Any]) -> None:
    text = json.dumps(minimal_raw).replace("10.25", "1e400")
    with pytest.raises(ShapeError, match=r"keydip_data\[2\]"):
        parse_document(load_json(text))


def test_load_json_deep_nesting_is_shape_error() -> None:
    with pytest.raises(ShapeError, match="nested too deeply"):
        load_json("[" * 200000)


def test_load_json_invalid_text_is_shape_error() -> None:
    with pytest.raises(ShapeError, match="not valid JSON"):
        load_json("{not json")


# ---------------------------------------------------------------------------
# Document identity and explicit nulls
# ---------------------------------------------------------------------------


def test_document_is_hashable(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["serialnumber"] = "KMD-0042"
    first = parse_document(minimal_raw)
    second = parse_document(minimal_raw)
    assert first == second
    assert hash(first) == hash(second)
    assert len({first, second}) == 1


def test_document_extras_are_read_only(minimal_raw: dict[str, Any]) -> None:
    minimal_raw["serialnumber"] = "KMD-0042"
    document = parse_document(minimal_raw)
    with pytest.raises(TypeError):
        document.extras["serialnumber"] = "changed"  # type: ignore[index]


@pytest.mark.parametrize("field", ["numkeys", "twwindow_data"])
def test_explicit_null_optional_field_is_written_back(
    minimal_raw: dict[str, Any], field: str
) -> None:
    minimal_raw[field] = None
    document = parse_document(minimal_raw)
    assert field in document.null_fields
    assert document.to_dict() == minimal_raw
    assert list(document.to_dict()) == list(minimal_raw)


def test_absent_optional_fields_stay_absent(minimal_raw: dict[str, Any]) -> None:
    del minimal_raw["numkeys"]
    del minimal_raw["twwindow_data"]
    data = parse_document(minimal_raw).to_dict()
    assert "numkeys" not in data
    assert "twwindow_data" not in data
