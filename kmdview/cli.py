"""kmdview CLI entry point."""

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from kmdview import __version__
from kmdview.errors import DecodeError, KmdDataError
from kmdview.formatter import DEFAULT_DECIMALS, fmt
from kmdview.key_index import reading_for_key, summarize
from kmdview.models import Document
from kmdview.session import ViewerSession
from kmdview.snapshot import SnapshotTemplate, detect_embedded, document_to_json
from kmdview.validator import DEFAULT_TOLERANCE
from kmdview.viewer import build_viewer_html

_METRIC_COLUMNS = [
    ("DW", "down_weight"),
    ("UW", "up_weight"),
    ("BW", "balance_weight"),
    ("F", "friction"),
    ("Dip", "key_dip"),
]

tolerance_option = click.option(
    "--tolerance",
    type=click.FloatRange(min=0.0),
    default=DEFAULT_TOLERANCE,
    show_default=True,
    help="Allowed deviation (g) for balance = (DW+UW)/2 and friction = (DW-UW)/2.",
)


def _fail(message: str) -> NoReturn:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _read_text(path: str) -> str:
    """Read a UTF-8 text file, exiting on failure."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        _fail(f"Could not read '{path}' — {exc}")
    except UnicodeDecodeError as exc:
        _fail(f"Could not read '{path}' — not UTF-8 text ({exc.reason} at byte {exc.start})")


def _open_session(path: str, tolerance: float, template: SnapshotTemplate | None = None) -> ViewerSession:
    """Load a KMD JSON export into a new session, exiting on failure."""
    session = ViewerSession(template or SnapshotTemplate.capture(build_viewer_html()), tolerance)
    try:
        session.load_file(path)
    except OSError as exc:
        _fail(f"Could not read '{path}' — {exc}")
    except KmdDataError as exc:
        _fail(f"Could not load '{path}' — {exc}")
    return session


def _key_count_label(document: Document, measured: int) -> str:
    if document.key_count is None:
        return f"{measured} measured"
    return f"{measured} measured of {document.key_count}"


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="kmdview")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def main(verbose: bool) -> None:
    """kmdview — piano key measurement (KMD) data inspector and snapshot tool."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
            stream=sys.stderr,
        )


# ── inspect subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--decimals",
    type=click.IntRange(0, 6),
    default=DEFAULT_DECIMALS,
    show_default=True,
    help="Fraction digits shown for each metric.",
)
@tolerance_option
def inspect(data_file: str, decimals: int, tolerance: float) -> None:
    """
    Print the per-key metrics of a KMD JSON export.

    \b
    Examples:
      kmdview inspect example-key-data.json
      kmdview inspect example-key-data.json --decimals 2
    """
    session = _open_session(data_file, tolerance)
    document = session.active_document()
    readings = list(session.readings())

    click.echo(f"kmdview v{__version__}")
    click.echo(f"  File   : {data_file}")
    click.echo(f"  Piano  : {document.piano_name}")
    click.echo(f"  Keys   : {_key_count_label(document, len(readings))}")
    click.echo()

    header = f"{'Key':>4}  {'Note':<4}  {'':<5}" + "".join(f"{label:>8}" for label, _ in _METRIC_COLUMNS)
    click.echo(header)
    for reading in readings:
        colour = "black" if reading.is_black else "white"
        values = "".join(f"{fmt(getattr(reading, attr), decimals):>8}" for _, attr in _METRIC_COLUMNS)
        click.echo(f"{reading.key_number:>4}  {reading.note_name:<4}  {colour:<5}{values}")

    summaries = summarize(document)
    averages = "".join(f"{fmt(summaries[attr].mean, decimals):>8}" for _, attr in _METRIC_COLUMNS)
    click.echo(f"{'Average':<17}{averages}")

    if session.warnings:
        click.echo()
        click.echo(f"  WARNING: {len(session.warnings)} consistency issue(s):", err=True)
        for warning in session.warnings:
            click.echo(f"    - {warning.message}", err=True)


# ── check subcommand ───────────────────────────────────────────────────────────

@main.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@tolerance_option
@click.option("--strict", is_flag=True, help="Exit with status 1 when any issue is found.")
def check(data_file: str, tolerance: float, strict: bool) -> None:
    """Validate a KMD JSON export and report consistency issues."""
    session = _open_session(data_file, tolerance)

    if not session.warnings:
        click.echo(f"OK: {len(session.valid_indices)} keys, no consistency issues.")
        return

    for warning in session.warnings:
        click.echo(f"  {warning.kind:<9} {warning.message}")
    click.echo(f"{len(session.warnings)} consistency issue(s).")
    if strict:
        sys.exit(1)


# ── curve subcommand ───────────────────────────────────────────────────────────

@main.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument("key", type=click.IntRange(min=1))
def curve(data_file: str, key: int) -> None:
    """
    Print the downstroke and upstroke of one key as JSON.

    KEY is the 1-based key number (1 = A0).
    """
    session = _open_session(data_file, DEFAULT_TOLERANCE)
    reading = reading_for_key(session.active_document(), key)
    if reading is None:
        _fail(f"Key {key} was not measured in '{data_file}'.")

    payload = {
        "key": reading.key_number,
        "note": reading.note_name,
        "downstroke": [p.to_dict() for p in reading.curve.downstroke],
        "upstroke": [p.to_dict() for p in reading.curve.upstroke],
    }
    click.echo(json.dumps(payload, indent=2))


# ── snapshot subcommand ────────────────────────────────────────────────────────

@main.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination HTML file. Defaults to DATA_FILE with an .html suffix.",
)
@click.option(
    "--template",
    "template_file",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    default=None,
    help="Viewer page to embed the data in. Defaults to the built-in viewer.",
)
def snapshot(data_file: str, output: str | None, template_file: str | None) -> None:
    """
    Write a self-contained viewer page with DATA_FILE embedded.

    \b
    Examples:
      kmdview snapshot example-key-data.json
      kmdview snapshot example-key-data.json -o share.html --template kmd-display.html
    """
    if template_file is None:
        template = SnapshotTemplate.capture(build_viewer_html())
    else:
        template = SnapshotTemplate.capture(_read_text(template_file))

    session = _open_session(data_file, DEFAULT_TOLERANCE, template)
    resolved_output = output if output is not None else str(Path(data_file).with_suffix(".html"))

    try:
        Path(resolved_output).write_text(session.export_snapshot(), encoding="utf-8")
    except OSError as exc:
        _fail(f"Could not write snapshot — {exc}")

    click.echo(f"Done!  Wrote snapshot '{resolved_output}' ({len(session.valid_indices)} keys).")


# ── extract subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("snapshot_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination JSON file. Prints to stdout when omitted.",
)
def extract(snapshot_file: str, output: str | None) -> None:
    """Recover the KMD JSON embedded in a snapshot page."""
    errors: list[DecodeError] = []
    markup = _read_text(snapshot_file)
    document = detect_embedded(markup, on_error=errors.append)

    if document is None:
        if errors:
            _fail(str(errors[0]))
        _fail(f"No embedded snapshot found in '{snapshot_file}'.")

    text = document_to_json(document)
    if output is None:
        click.echo(text)
        return

    try:
        Path(output).write_text(text, encoding="utf-8")
    except OSError as exc:
        _fail(f"Could not write '{output}' — {exc}")
    click.echo(f"Done!  Wrote '{output}'.")
