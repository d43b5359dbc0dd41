"""ViewerSession: owns the active Document and the snapshot template."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from kmdview.errors import DecodeError, ShapeError
from kmdview.key_index import build_valid_indices, iter_readings
from kmdview.models import ConsistencyWarning, Document, KeyReading
from kmdview.snapshot import SnapshotTemplate, detect_embedded, encode
from kmdview.validator import DEFAULT_TOLERANCE, check_consistency, load_json, parse_document

logger = logging.getLogger(__name__)


class ViewerSession:
    """
    Holds at most one loaded Document for the lifetime of a viewer.

    Every successful load replaces the Document and its warnings as a whole;
    a failed load leaves the previous Document active. Derived values
    (valid slots, readings) are computed from the active Document on
    demand and never cached.

    Usage:

        session = ViewerSession(SnapshotTemplate.capture(page_markup))
        if not session.boot(page_markup):
            session.load_file("example-key-data.json")
        html = session.export_snapshot()
    """

    def __init__(
        self,
        template: SnapshotTemplate,
        tolerance: float = DEFAULT_TOLERANCE,
    ) -> None:
        """
        Args:
            template:  Pristine viewer markup, captured once at startup.
            tolerance: Allowed deviation for the balance/friction identities.
        """
        self.template = template
        self.tolerance = tolerance
        self.document: Document | None = None
        self.warnings: list[ConsistencyWarning] = []
        self.decode_error: DecodeError | None = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_raw(self, raw: object) -> Document:
        """
        Validate an already-parsed JSON object and make it the active Document.

        Raises:
            MissingFieldError: If a required field is absent.
            ShapeError: If a field has the wrong shape.
        """
        document = parse_document(raw)
        self._activate(document)
        return document

    def load_text(self, text: str) -> Document:
        """Parse JSON text and load it; unreadable JSON raises ShapeError."""
        return self.load_raw(load_json(text))

    def load_file(self, path: str | Path) -> Document:
        """
        Read a KMD JSON export from disk and load it.

        Raises:
            OSError: If the file cannot be read.
            ShapeError: If the file is not UTF-8 encoded JSON.
        """
        data = Path(path).read_bytes()
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ShapeError(f"KMD data is not valid UTF-8: {exc}") from exc
        return self.load_text(text)

    def boot(self, markup: str) -> bool:
        """
        Load the snapshot embedded in ``markup``, if there is a usable one.

        Returns:
            True if a Document was loaded. False when there is no snapshot or
            it is corrupt; in the latter case ``decode_error`` says why.
        """
        self.decode_error = None
        document = detect_embedded(markup, on_error=self._record_decode_error)
        if document is None:
            return False
        self._activate(document)
        return True

    def _record_decode_error(self, error: DecodeError) -> None:
        self.decode_error = error

    def _activate(self, document: Document) -> None:
        self.document = document
        self.warnings = check_consistency(document, self.tolerance)
        logger.debug(
            "Loaded '%s': %d valid keys, %d warning(s)",
            document.piano_name,
            len(build_valid_indices(document)),
            len(self.warnings),
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def active_document(self) -> Document:
        """The loaded Document; RuntimeError when nothing is loaded yet."""
        if self.document is None:
            raise RuntimeError("No KMD document is loaded.")
        return self.document

    @property
    def valid_indices(self) -> tuple[int, ...]:
        return build_valid_indices(self.active_document())

    def readings(self) -> Iterator[KeyReading]:
        return iter_readings(self.active_document())

    def export_snapshot(self) -> str:
        """Embed the active Document in a fresh copy of the captured template."""
        return encode(self.template, self.active_document())
