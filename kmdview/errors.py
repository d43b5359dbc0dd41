"""Error types raised while loading KMD data and snapshots."""


class KmdDataError(ValueError):
    """Base class for data that cannot be loaded."""


class MissingFieldError(KmdDataError):
    """A required top-level field is absent from the document."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}")
        self.field = field


class ShapeError(KmdDataError):
    """A field is present but does not have the expected shape."""


class DecodeError(KmdDataError):
    """An embedded snapshot is present but its payload cannot be decoded."""
