import html
import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from ..normalizer import Row, Table
from ..records import scalar_text

logger = logging.getLogger("hostfacts.writers.html")

# Row state metadata and remoting properties; never rendered.
BOOKKEEPING_COLUMNS = frozenset({
    "RowError",
    "RowState",
    "Table",
    "ItemArray",
    "HasErrors",
    "RunspaceId",
    "PSShowComputerName",
})

SEPARATOR = "<hr/>"

_STYLE = """
  body { font-family: "Segoe UI", Roboto, sans-serif; font-size: 13px; color: #212529; margin: 1.5rem; }
  h1 { font-size: 1.4rem; border-bottom: 2px solid #0d6efd; padding-bottom: 0.3rem; }
  h2 { font-size: 1.1rem; color: #495057; margin-top: 1rem; }
  table { border-collapse: collapse; margin-bottom: 0.5rem; }
  th { background: #e9ecef; text-align: left; }
  th, td { border: 1px solid #dee2e6; padding: 2px 6px; vertical-align: top; }
  hr { border: none; border-top: 2px solid #dee2e6; margin: 1.5rem 0; }
""".strip("\n")


class HtmlTableWriter:
    fmt = "html"

    def __init__(self, title: str = "Host facts", exclude: Optional[Sequence[str]] = None):
        self.title = title
        self.exclude = BOOKKEEPING_COLUMNS | frozenset(exclude or ())

    def _visible(self, table: Table) -> List[int]:
        return [i for i, c in enumerate(table.columns) if c.name not in self.exclude]

    def render_fragment(self, table: Table, rows: Sequence[Row]) -> str:
        keep = self._visible(table)
        names = [table.columns[i].name for i in keep]
        data = [
            [None if r.cells[i] is None else scalar_text(r.cells[i]) for i in keep]
            for r in rows
        ]
        df = pd.DataFrame(data, columns=names, dtype=object)
        return df.to_html(index=False, na_rep="", border=1, escape=True)

    def render(self, table: Table) -> str:
        fragments = []
        for host in table.hosts():
            caption = html.escape(host) if host else "Records"
            fragment = self.render_fragment(table, table.rows_for_host(host))
            fragments.append(f"<h2>{caption}</h2>\n{fragment}")

        body = f"\n{SEPARATOR}\n".join(fragments)
        title = html.escape(self.title)
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
{_STYLE}
</style>
</head>
<body>
<h1>{title}</h1>
{body}
</body>
</html>
"""

    def write(self, table: Table, dest_path: Path) -> Path:
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(dest_path, "w", encoding="utf-8", newline="\n") as f:
            f.write(self.render(table))
        logger.info(f"HTML saved: {dest_path} ({len(table.hosts())} fragment(s))")
        return dest_path
