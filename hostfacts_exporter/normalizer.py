"""
Turns heterogeneous records into one typed table.

The schema is taken from the first record: its field order gives the column
order and its value kinds give the column kinds. Fields that only appear in
later records are not added (use ``SchemaPolicy.UNION`` for that). Later
values are coerced toward the column kind; a value that cannot be coerced
becomes an empty cell. Sequences and byte strings are flattened to text with
``records.flatten_sequence`` instead of being dropped.
"""
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .errors import RecordProcessingError
from .records import COLUMN_KINDS, Record, TaggedValue, ValueKind, parse_ps_date, scalar_text

logger = logging.getLogger("hostfacts.normalizer")

_TRUE_TEXT = {"true", "1", "yes", "y", "on"}
_FALSE_TEXT = {"false", "0", "no", "n", "off"}
_INT_RE = re.compile(r"^[+-]?\d+$")


class SchemaPolicy(str, Enum):
    FIRST_RECORD = "first"
    UNION = "union"


class CoercionError(ValueError):
    pass


@dataclass(frozen=True)
class Column:
    name: str
    kind: ValueKind


@dataclass(frozen=True)
class Row:
    cells: Tuple[Any, ...]
    # bookkeeping, never exported as columns
    host: Optional[str] = None
    record_index: int = 0


@dataclass(frozen=True)
class Table:
    columns: Tuple[Column, ...] = ()
    rows: Tuple[Row, ...] = ()
    skipped: Tuple[RecordProcessingError, ...] = field(default=(), compare=False)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def hosts(self) -> List[Optional[str]]:
        """Source hosts in first-seen row order."""
        return list(dict.fromkeys(r.host for r in self.rows))

    def rows_for_host(self, host: Optional[str]) -> List[Row]:
        return [r for r in self.rows if r.host == host]

    def to_dict(self) -> Dict[str, Any]:
        """JSON friendly dump; cells use their canonical text."""
        return {
            "columns": [{"name": c.name, "kind": c.kind.value} for c in self.columns],
            "rows": [
                [None if cell is None else scalar_text(cell) for cell in r.cells]
                for r in self.rows
            ],
            "skipped": [e.to_dict() for e in self.skipped],
        }


def _round_half_even(value: float) -> int:
    if math.isnan(value) or math.isinf(value):
        raise CoercionError(f"cannot convert {value!r} to an integer")
    return int(Decimal(repr(value)).quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def _to_integer(tv: TaggedValue) -> int:
    v = tv.value
    if tv.kind in (ValueKind.BOOLEAN, ValueKind.INTEGER):
        return int(v)
    if tv.kind == ValueKind.FLOAT:
        return _round_half_even(v)
    if tv.kind == ValueKind.STRING:
        text = v.strip()
        if _INT_RE.match(text):
            return int(text)
        try:
            return _round_half_even(float(text))
        except ValueError as exc:
            raise CoercionError(str(exc)) from exc
    raise CoercionError(f"{tv.kind.value} is not convertible to Integer")


def _to_float(tv: TaggedValue) -> float:
    v = tv.value
    if tv.kind in (ValueKind.BOOLEAN, ValueKind.INTEGER, ValueKind.FLOAT):
        try:
            return float(v)
        except OverflowError as exc:
            raise CoercionError(str(exc)) from exc
    if tv.kind == ValueKind.STRING:
        try:
            return float(v.strip())
        except (ValueError, OverflowError) as exc:
            raise CoercionError(str(exc)) from exc
    raise CoercionError(f"{tv.kind.value} is not convertible to Float")


def _to_boolean(tv: TaggedValue) -> bool:
    v = tv.value
    if tv.kind == ValueKind.BOOLEAN:
        return v
    if tv.kind in (ValueKind.INTEGER, ValueKind.FLOAT):
        return v != 0
    if tv.kind == ValueKind.STRING:
        text = v.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
    raise CoercionError(f"{tv.value!r} is not convertible to Boolean")


def _to_timestamp(tv: TaggedValue) -> datetime:
    v = tv.value
    if tv.kind == ValueKind.TIMESTAMP:
        return v
    if tv.kind == ValueKind.STRING:
        parsed = parse_ps_date(v)
        if parsed is not None:
            return parsed
        try:
            return datetime.fromisoformat(v.strip())
        except ValueError as exc:
            raise CoercionError(str(exc)) from exc
    raise CoercionError(f"{tv.kind.value} is not convertible to Timestamp")


_COERCERS = {
    ValueKind.STRING: lambda tv: tv.text(),
    ValueKind.INTEGER: _to_integer,
    ValueKind.FLOAT: _to_float,
    ValueKind.BOOLEAN: _to_boolean,
    ValueKind.TIMESTAMP: _to_timestamp,
}


def coerce(tv: TaggedValue, kind: ValueKind) -> Any:
    """Coerce a scalar tagged value to ``kind``. Raises CoercionError."""
    if tv.kind == kind:
        return tv.value
    coercer = _COERCERS.get(kind)
    if coercer is None:
        raise CoercionError(f"unsupported column kind {kind!r}")
    return coercer(tv)


class TableBuilder:
    def __init__(
        self,
        default_kind: ValueKind = ValueKind.STRING,
        schema: SchemaPolicy = SchemaPolicy.FIRST_RECORD,
    ):
        if default_kind not in COLUMN_KINDS:
            raise ValueError(f"default column kind must be one of {sorted(k.value for k in COLUMN_KINDS)}")
        self.default_kind = default_kind
        self.schema = SchemaPolicy(schema)

    def _column_kind(self, value: TaggedValue) -> ValueKind:
        return value.kind if value.kind in COLUMN_KINDS else self.default_kind

    def infer_columns(self, records: List[Record]) -> Tuple[Column, ...]:
        if not records:
            return ()
        if self.schema == SchemaPolicy.FIRST_RECORD:
            return tuple(Column(name, self._column_kind(value)) for name, value in records[0].items())

        kinds: Dict[str, ValueKind] = {}
        for record in records:
            for name, value in record.items():
                if name not in kinds:
                    kinds[name] = self._column_kind(value)
        return tuple(Column(name, kind) for name, kind in kinds.items())

    def cell(self, value: TaggedValue, column: Column) -> Any:
        if value.is_null:
            return None
        if value.kind in (ValueKind.SEQUENCE, ValueKind.BYTES):
            return value.text()
        try:
            return coerce(value, column.kind)
        except (ValueError, OverflowError, TypeError) as exc:
            # CoercionError is a ValueError
            logger.debug(f"column {column.name!r}: {exc}; storing empty cell")
            return None

    def build_row(self, record: Record, columns: Tuple[Column, ...], index: int) -> Row:
        cells = tuple(self.cell(record.get(c.name), c) for c in columns)
        return Row(cells=cells, host=record.host, record_index=index)

    def _as_records(self, items: Iterable[Any], skipped: List[RecordProcessingError]) -> List[Tuple[int, Record]]:
        out = []
        for index, item in enumerate(items):
            if isinstance(item, Record):
                out.append((index, item))
                continue
            try:
                out.append((index, Record.from_mapping(item)))
            except Exception as exc:
                skipped.append(RecordProcessingError(f"not a record: {exc}", record_index=index))
                logger.error(f"Record {index} skipped: not a record ({exc})")
        return out

    def build(self, records: Iterable[Any]) -> Table:
        skipped: List[RecordProcessingError] = []
        indexed = self._as_records(records, skipped)
        columns = self.infer_columns([r for _, r in indexed])
        rows: List[Row] = []

        for index, record in indexed:
            try:
                rows.append(self.build_row(record, columns, index))
            except Exception as exc:
                err = RecordProcessingError(str(exc), record_index=index, host=getattr(record, "host", None))
                skipped.append(err)
                logger.error(f"Record {index} from {err.host or 'unknown host'} skipped: {exc}")

        logger.info(f"Table built: {len(columns)} column(s), {len(rows)} row(s), {len(skipped)} skipped")
        return Table(columns=columns, rows=tuple(rows), skipped=tuple(skipped))


def build_table(
    records: Iterable[Record],
    default_kind: ValueKind = ValueKind.STRING,
    schema: SchemaPolicy = SchemaPolicy.FIRST_RECORD,
) -> Table:
    return TableBuilder(default_kind=default_kind, schema=schema).build(records)
