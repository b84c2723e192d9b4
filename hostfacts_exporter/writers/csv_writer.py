import csv
import io
import logging
from pathlib import Path
from typing import Sequence

from ..records import Record

logger = logging.getLogger("hostfacts.writers.csv")


class CsvWriter:
    """
    Delimited export of the raw records, not the coerced table.

    The header is the first record's field names; later records are written
    against that header. Values use the canonical scalar text, so booleans
    come out as ``True``/``False`` and sequences as ``a;b``.
    """

    fmt = "csv"

    def render(self, records: Sequence[Record]) -> str:
        if not records:
            return ""
        columns = list(records[0].names())
        buf = io.StringIO(newline="")
        writer = csv.DictWriter(buf, fieldnames=columns, extrasaction="ignore", restval="")
        writer.writeheader()
        for record in records:
            writer.writerow({name: value.text() for name, value in record.items()})
        return buf.getvalue()

    def write(self, records: Sequence[Record], dest_path: Path) -> Path:
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(dest_path, "w", newline="", encoding="utf-8") as f:
            f.write(self.render(records))
        logger.info(f"CSV saved: {dest_path} ({len(records)} record(s))")
        return dest_path
