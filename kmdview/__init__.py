"""kmdview: validation and derivation engine for KMD piano key measurement data."""

__version__ = "0.1.0"
