from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence

from openpyxl import Workbook

from ..normalizer import Table


def _excel_value(val: Any) -> Any:
    if val is None:
        return ""
    # Excel has no timezone support
    if isinstance(val, datetime) and val.tzinfo is not None:
        return val.astimezone(timezone.utc).replace(tzinfo=None)
    return val


class XlsxWriter:
    fmt = "xlsx"

    def __init__(self, exclude: Sequence[str] = ()):
        self.exclude = set(exclude)

    def write(self, table: Table, dest_path: Path, failures: Sequence = ()) -> List[Dict[str, Any]]:
        """
        Write the table to a ``Facts`` sheet and failed hosts to ``Failures``.
        Returns a list of summaries per sheet.
        """
        wb = Workbook()
        # Remove default sheet to keep ordering exact
        wb.remove(wb.active)

        keep = [i for i, c in enumerate(table.columns) if c.name not in self.exclude]
        columns = [table.columns[i].name for i in keep]

        ws = wb.create_sheet(title="Facts")
        ws.append(columns)
        for row in table.rows:
            ws.append([_excel_value(row.cells[i]) for i in keep])

        fail_ws = wb.create_sheet(title="Failures")
        fail_ws.append(["Host", "Category", "Error"])
        for failure in failures:
            fail_ws.append([failure.host, failure.category, failure.error[:1000]])

        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(dest_path)
        return [
            {"sheet": "Facts", "columns": len(columns), "rows": len(table.rows)},
            {"sheet": "Failures", "columns": 3, "rows": len(failures)},
        ]
