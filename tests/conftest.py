"""Shared fixtures: the 75-key example export and a minimal two-key document.

data/example-key-data.json is synthesized test data shaped like a real 75-key
export (same fields and slot layout). It is not a capture from a
measurement device, so its numbers carry no meaning beyond the tests.
"""

import json
from pathlib import Path
from typing import Any

import pytest

from kmdview.models import Document
from kmdview.validator import parse_document

DATA_DIR = Path(__file__).parent / "data"
EXAMPLE_PATH = DATA_DIR / "example-key-data.json"


@pytest.fixture
def example_path() -> Path:
    return EXAMPLE_PATH


@pytest.fixture
def example_raw() -> dict[str, Any]:
    return json.loads(EXAMPLE_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def example_document(example_raw: dict[str, Any]) -> Document:
    return parse_document(example_raw)


@pytest.fixture
def minimal_raw() -> dict[str, Any]:
    """Two measured keys; slot 0 is the empty sentinel."""
    return {
        "pianoname": "Test Piano",
        "numkeys": "88",
        "startingnoteindex": 0,
        "keynumber_data": [None, 1, 2],
        "xyvalues_data": [
            None,
            [{"x": 0, "y": 0}, {"x": 5.5, "y": 40.0}, {"x": 0.0, "y": 0}],
            [{"x": 0.0, "y": 0.0}, {"x": 9.75, "y": 50.25}, {"x": 1.5, "y": 3}],
        ],
        "twwindow_data": [None, [{"x": 2, "y": 1.0}, {"x": 4.5, "y": 2.0}], None],
        "downweight_data": [None, 50.0, 52.5],
        "upweight_data": [None, 20.0, 22.5],
        "balanceweight_data": [None, 35.0, 37.5],
        "friction_data": [None, 15.0, 15.0],
        "keydip_data": [None, 10.0, 10.25],
    }


@pytest.fixture
def minimal_document(minimal_raw: dict[str, Any]) -> Document:
    return parse_document(minimal_raw)
