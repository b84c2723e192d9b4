from typing import Any, Iterable, List, Mapping, Optional, Protocol, Union

from ..records import Record, parse_ps_date


class RecordProducer(Protocol):
    """Returns the records of one host or raises for that host."""

    def __call__(self, host: str) -> Iterable[Union[Record, Mapping[str, Any]]]:
        ...


def _convert(val: Any) -> Any:
    if isinstance(val, str):
        parsed = parse_ps_date(val)
        return parsed if parsed is not None else val
    if isinstance(val, list):
        return [_convert(v) for v in val]
    return val


def records_from_json(payload: Any, host: Optional[str] = None) -> List[Record]:
    """
    Records from parsed ConvertTo-Json output. A single object comes back as a
    dict, several as a list; non-object items are ignored.
    """
    if payload is None:
        return []
    items = payload if isinstance(payload, list) else [payload]
    records = []
    for item in items:
        if not isinstance(item, dict):
            continue
        records.append(Record({k: _convert(v) for k, v in item.items()}, host=host))
    return records
