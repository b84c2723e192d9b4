from pathlib import Path
from typing import Union

from .csv_writer import CsvWriter
from .html_writer import BOOKKEEPING_COLUMNS, HtmlTableWriter
from .list_writer import ListWriter
from .xlsx_writer import XlsxWriter

EXPORT_SUFFIXES = {
    "html": ".html",
    "csv": ".csv",
    "list": ".txt",
    "xlsx": ".xlsx",
}


def target_path(base_name: Union[str, Path], fmt: str) -> Path:
    """``<base_name><suffix>`` for an export format."""
    base = Path(base_name)
    return base.with_name(base.name + EXPORT_SUFFIXES[fmt])


__all__ = [
    "BOOKKEEPING_COLUMNS",
    "CsvWriter",
    "EXPORT_SUFFIXES",
    "HtmlTableWriter",
    "ListWriter",
    "XlsxWriter",
    "target_path",
]
