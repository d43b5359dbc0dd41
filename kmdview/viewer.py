"""Minimal viewer page used as the default snapshot template."""

from __future__ import annotations

from kmdview.snapshot import SCRIPT_ID

DEFAULT_TITLE = "KMD Piano Data Viewer"


def _escape_html(text: str) -> str:
    """Escape the three characters that are unsafe in HTML text content."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def build_viewer_html(title: str = DEFAULT_TITLE) -> str:
    """
    Return a self-contained HTML page that lists the keys of an embedded snapshot.

    The page carries no data of its own. Its inline script looks for the
    ``#kmd-snapshot`` element written by :func:`kmdview.snapshot.encode`,
    decodes it and fills a table with one row per measured key.
    """
    title_safe = _escape_html(title)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{title_safe}</title>
  <style>
    body {{ font-family: sans-serif; margin: 2rem; }}
    table {{ border-collapse: collapse; }}
    th, td {{ padding: 0.2rem 0.6rem; text-align: right; }}
    tr.black {{ background: #eee; }}
  </style>
</head>
<body>
  <h1 id="kmd-title">{title_safe}</h1>
  <p id="kmd-status">No embedded data. Create a snapshot with: kmdview snapshot FILE</p>
  <table id="kmd-keys"></table>
  <script>
    const NOTE_NAMES = ["A", "A#", "B", "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#"];
    const BLACK = new Set([1, 4, 6, 9, 11]);
    const fmt = (v, d = 1) => (v == null || isNaN(v) ? "--" : v.toFixed(d));

    const node = document.getElementById("{SCRIPT_ID}");
    if (node) {{
      try {{
        const bytes = Uint8Array.from(atob(node.textContent.trim()), (c) => c.charCodeAt(0));
        const data = JSON.parse(new TextDecoder().decode(bytes));
        const offset = data.startingnoteindex || 0;
        document.getElementById("kmd-title").textContent = data.pianoname;
        const rows = ["<tr><th>Key</th><th>Note</th><th>DW</th><th>UW</th><th>BW</th><th>F</th><th>Dip</th></tr>"];
        data.keynumber_data.forEach((key, i) => {{
          if (key == null || data.xyvalues_data[i] == null) return;
          const pos = key + offset - 1;
          const name = NOTE_NAMES[pos % 12] + Math.floor((pos + 9) / 12);
          rows.push(
            `<tr class="${{BLACK.has(pos % 12) ? "black" : "white"}}"><td>${{key}}</td><td>${{name}}</td>` +
            `<td>${{fmt(data.downweight_data[i])}}</td><td>${{fmt(data.upweight_data[i])}}</td>` +
            `<td>${{fmt(data.balanceweight_data[i])}}</td><td>${{fmt(data.friction_data[i])}}</td>` +
            `<td>${{fmt(data.keydip_data[i])}}</td></tr>`
          );
        }});
        document.getElementById("kmd-keys").innerHTML = rows.join("");
        document.getElementById("kmd-status").textContent = `${{rows.length - 1}} keys`;
      }} catch (err) {{
        document.getElementById("kmd-status").textContent = "Embedded data is corrupt: " + err.message;
      }}
    }}
  </script>
</body>
</html>
"""
