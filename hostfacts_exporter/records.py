"""
Tagged record model shared by producers, the table builder and the writers.

A value is tagged once, when the record is built at the producer boundary.
Everything downstream dispatches on ``ValueKind`` instead of inspecting
Python types again.
"""
import json
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple


class ValueKind(str, Enum):
    NULL = "Null"
    BOOLEAN = "Boolean"
    INTEGER = "Integer"
    FLOAT = "Float"
    STRING = "String"
    TIMESTAMP = "Timestamp"
    BYTES = "ByteSequence"
    SEQUENCE = "SequenceOfScalar"


# Kinds a table column can be typed as. BYTES, SEQUENCE and NULL fall back
# to the builder's default kind.
COLUMN_KINDS = frozenset({
    ValueKind.BOOLEAN,
    ValueKind.INTEGER,
    ValueKind.FLOAT,
    ValueKind.STRING,
    ValueKind.TIMESTAMP,
})

FLATTEN_DELIMITER = ";"
_ESCAPE = "\\"

_PS_DATE_RE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d{4})?\)/$")


def parse_ps_date(text: str) -> Optional[datetime]:
    """Parse the ``/Date(1700000000000)/`` form emitted by ConvertTo-Json."""
    m = _PS_DATE_RE.match(text.strip())
    if not m:
        return None
    try:
        return datetime.fromtimestamp(int(m.group(1)) / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        # out of datetime range; callers keep the original text
        return None


def scalar_text(value: Any) -> str:
    """Canonical, locale independent text for a scalar."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return str(value)


def _escape(text: str) -> str:
    return text.replace(_ESCAPE, _ESCAPE * 2).replace(FLATTEN_DELIMITER, _ESCAPE + FLATTEN_DELIMITER)


def flatten_sequence(values) -> str:
    return FLATTEN_DELIMITER.join(_escape(scalar_text(v)) for v in values)


def split_flattened(text: str) -> List[str]:
    """
    Inverse of ``flatten_sequence`` for non-empty sequences of non-null text.

    Two cases do not round trip: ``[]`` and ``[""]`` both flatten to ``""``,
    which splits to ``[]``; a ``None`` element flattens to an empty element
    and comes back as ``""``.
    """
    if text == "":
        return []
    parts: List[str] = []
    current: List[str] = []
    chars = iter(text)
    for ch in chars:
        if ch == _ESCAPE:
            nxt = next(chars, None)
            current.append(nxt if nxt is not None else _ESCAPE)
        elif ch == FLATTEN_DELIMITER:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _opaque_text(value: Any) -> str:
    return json.dumps(value, default=scalar_text, ensure_ascii=False, separators=(",", ":"))


def _scalar_kind(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, (datetime, date)):
        return ValueKind.TIMESTAMP
    if isinstance(value, (bytes, bytearray)):
        return ValueKind.BYTES
    return ValueKind.STRING


def _scalar_value(value: Any, kind: ValueKind) -> Any:
    if kind == ValueKind.TIMESTAMP and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if kind == ValueKind.BYTES:
        return bytes(value)
    if kind == ValueKind.STRING and not isinstance(value, str):
        return _opaque_text(value) if isinstance(value, (dict, list, tuple, set)) else str(value)
    return value


@dataclass(frozen=True)
class TaggedValue:
    kind: ValueKind
    value: Any = None
    element_kind: Optional[ValueKind] = None

    @property
    def is_null(self) -> bool:
        return self.kind == ValueKind.NULL

    def text(self) -> str:
        if self.kind == ValueKind.SEQUENCE:
            return flatten_sequence(self.value)
        return scalar_text(self.value)

    def plain(self) -> Any:
        """JSON friendly form."""
        if self.kind == ValueKind.SEQUENCE:
            return [TaggedValue(_scalar_kind(v), v).plain() for v in self.value]
        if self.kind in (ValueKind.TIMESTAMP, ValueKind.BYTES):
            return scalar_text(self.value)
        return self.value


NULL = TaggedValue(ValueKind.NULL)


def tag_value(value: Any) -> TaggedValue:
    """Decide the closed value kind of a raw Python value."""
    if isinstance(value, TaggedValue):
        return value
    if isinstance(value, (list, tuple)):
        elements: List[Any] = []
        kinds = set()
        for item in value:
            if isinstance(item, (list, tuple, dict, set)):
                # one level only; anything deeper is opaque text
                item = _opaque_text(item)
            kind = _scalar_kind(item)
            if kind != ValueKind.NULL:
                kinds.add(kind)
                item = _scalar_value(item, kind)
            elements.append(item)
        element_kind = kinds.pop() if len(kinds) == 1 else ValueKind.STRING
        return TaggedValue(ValueKind.SEQUENCE, tuple(elements), element_kind)
    if isinstance(value, (dict, set)):
        return TaggedValue(ValueKind.STRING, _opaque_text(sorted(value, key=str) if isinstance(value, set) else value))
    kind = _scalar_kind(value)
    if kind == ValueKind.NULL:
        return NULL
    return TaggedValue(kind, _scalar_value(value, kind))


@dataclass
class Record:
    """Ordered field name -> tagged value mapping, tagged with its source host."""

    fields: Dict[str, TaggedValue] = field(default_factory=dict)
    host: Optional[str] = None

    def __post_init__(self):
        self.fields = {str(k): tag_value(v) for k, v in self.fields.items()}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], host: Optional[str] = None) -> "Record":
        return cls(dict(mapping), host=host)

    def names(self) -> Tuple[str, ...]:
        return tuple(self.fields)

    def get(self, name: str) -> TaggedValue:
        return self.fields.get(name, NULL)

    def items(self):
        return self.fields.items()

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def with_host(self, host: str, host_field: Optional[str] = None) -> "Record":
        """Copy tagged with ``host``; ``host_field`` is prepended when the record lacks it."""
        fields = dict(self.fields)
        if host_field and host_field not in fields:
            fields = {host_field: TaggedValue(ValueKind.STRING, host), **fields}
        return Record(fields, host=host)

    def to_plain(self) -> Dict[str, Any]:
        return {name: value.plain() for name, value in self.fields.items()}
