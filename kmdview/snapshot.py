"""SnapshotCodec: embeds a Document in viewer markup and recovers it again.

A snapshot is a copy of the viewer page carrying the dataset as base64-encoded
JSON inside a marker region::

    <!-- kmd-snapshot:begin -->
    <script id="kmd-snapshot" type="application/base64">eyJwaWFub25hbWUiOi...</script>
    <!-- kmd-snapshot:end -->

Detection relies on the markers only, so the rest of the page is free to
change between versions.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from typing import Callable

from kmdview.errors import DecodeError, KmdDataError, ShapeError
from kmdview.models import Document
from kmdview.validator import load_json, parse_document

logger = logging.getLogger(__name__)

BEGIN_MARKER = "<!-- kmd-snapshot:begin -->"
END_MARKER = "<!-- kmd-snapshot:end -->"
SCRIPT_ID = "kmd-snapshot"

_REGION_RE = re.compile(
    re.escape(BEGIN_MARKER) + r"(.*?)" + re.escape(END_MARKER) + r"\n?", re.DOTALL
)
_SCRIPT_RE = re.compile(r"<script\b[^>]*>(.*?)</script>", re.DOTALL | re.IGNORECASE)
_BODY_END_RE = re.compile(r"</body\s*>", re.IGNORECASE)


@dataclass(frozen=True)
class SnapshotTemplate:
    """
    Pristine viewer markup that every export starts from.

    Capture it once at startup, before anything changes the page, and pass
    it to :func:`encode`. Exports never modify it.
    """

    markup: str

    @classmethod
    def capture(cls, markup: str) -> "SnapshotTemplate":
        """Capture ``markup``, dropping any snapshot region it already carries."""
        return cls(markup=_REGION_RE.sub("", markup))


def document_to_json(document: Document) -> str:
    """Serialize a Document to its canonical compact JSON text."""
    return json.dumps(document.to_dict(), ensure_ascii=False, separators=(",", ":"))


def _snapshot_block(document: Document) -> str:
    payload = base64.b64encode(document_to_json(document).encode("utf-8")).decode("ascii")
    return (
        f"{BEGIN_MARKER}\n"
        f'<script id="{SCRIPT_ID}" type="application/base64">{payload}</script>\n'
        f"{END_MARKER}\n"
    )


def encode(template: SnapshotTemplate, document: Document) -> str:
    """
    Return a copy of the template markup with ``document`` embedded.

    The region is placed just before the last ``</body>`` tag, or appended
    when the template has none. Encoding the same document twice yields the
    same text.
    """
    block = _snapshot_block(document)
    markup = template.markup

    body_ends = list(_BODY_END_RE.finditer(markup))
    if not body_ends:
        separator = "" if not markup or markup.endswith("\n") else "\n"
        return f"{markup}{separator}{block}"

    cut = body_ends[-1].start()
    return f"{markup[:cut]}{block}{markup[cut:]}"


def has_embedded(markup: str) -> bool:
    """True if ``markup`` contains a snapshot marker region."""
    return _REGION_RE.search(markup) is not None


def decode_payload(text: str) -> Document:
    """
    Decode the base64 payload of a snapshot region into a Document.

    Raises:
        DecodeError: If the payload is not base64, not UTF-8, not JSON, or
            not a loadable KMD document.
    """
    try:
        raw_bytes = base64.b64decode("".join(text.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"Snapshot payload is not valid base64: {exc}") from exc

    try:
        text = raw_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"Snapshot payload is not valid UTF-8: {exc}") from exc

    try:
        raw = load_json(text)
    except ShapeError as exc:
        raise DecodeError(f"Snapshot payload is unreadable: {exc}") from exc

    try:
        return parse_document(raw)
    except KmdDataError as exc:
        raise DecodeError(f"Snapshot payload is not a valid KMD document: {exc}") from exc


def detect_embedded(
    markup: str,
    on_error: Callable[[DecodeError], None] | None = None,
) -> Document | None:
    """
    Recover the Document embedded in ``markup``, if any.

    A corrupt payload never raises: it is logged, passed to ``on_error``
    when given, and treated as absent so the caller can fall back to
    loading a file.

    Returns:
        The embedded Document, or None when there is no usable snapshot.
    """
    region = _REGION_RE.search(markup)
    if region is None:
        return None

    try:
        script = _SCRIPT_RE.search(region.group(1))
        if script is None:
            raise DecodeError("Snapshot region holds no payload script")
        return decode_payload(script.group(1))
    except DecodeError as exc:
        logger.warning("Ignoring embedded snapshot: %s", exc)
        if on_error is not None:
            on_error(exc)
        return None
