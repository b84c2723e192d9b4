import logging
from pathlib import Path

from ..normalizer import Table
from ..records import scalar_text

logger = logging.getLogger("hostfacts.writers.list")


class ListWriter:
    """``name : value`` blocks, one per row, appended to the target."""

    fmt = "list"

    def render(self, table: Table) -> str:
        names = table.column_names
        if not names or not table.rows:
            return ""
        width = max(len(n) for n in names)
        blocks = []
        for row in table.rows:
            lines = [f"{name.ljust(width)} : {scalar_text(cell)}" for name, cell in zip(names, row.cells)]
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks) + "\n"

    def write(self, table: Table, dest_path: Path) -> Path:
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        text = self.render(table)
        has_content = dest_path.exists() and dest_path.stat().st_size > 0
        with open(dest_path, "a", encoding="utf-8", newline="\n") as f:
            if has_content and text:
                f.write("\n")
            f.write(text)
        logger.info(f"Listing appended: {dest_path} ({len(table.rows)} block(s))")
        return dest_path
