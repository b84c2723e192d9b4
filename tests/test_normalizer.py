from datetime import datetime, timezone

import pytest

from hostfacts_exporter.normalizer import (
    Column,
    SchemaPolicy,
    TableBuilder,
    build_table,
    coerce,
    CoercionError,
)
from hostfacts_exporter.records import Record, ValueKind, tag_value


def _records(*rows, host=None):
    return [Record.from_mapping(r, host=host) for r in rows]


def test_columns_come_from_first_record():
    table = build_table(_records(
        {"Name": "eth0", "Index": 1, "DHCPEnabled": True},
        {"Name": "eth1", "Extra": "ignored", "Index": 2},
    ))
    assert table.column_names == ("Name", "Index", "DHCPEnabled")
    assert [c.kind for c in table.columns] == [ValueKind.STRING, ValueKind.INTEGER, ValueKind.BOOLEAN]
    assert table.rows[1].cells == ("eth1", 2, None)


def test_non_scalar_first_value_uses_default_kind():
    table = build_table(_records({"IPAddress": ["10.0.0.1"], "Mac": None, "Raw": b"\x01"}))
    assert [c.kind for c in table.columns] == [ValueKind.STRING] * 3

    table = build_table(_records({"IPAddress": ["10.0.0.1"]}), default_kind=ValueKind.INTEGER)
    assert table.columns[0].kind == ValueKind.INTEGER


def test_default_kind_must_be_a_column_kind():
    with pytest.raises(ValueError):
        TableBuilder(default_kind=ValueKind.SEQUENCE)


def test_sequence_is_flattened_and_round_trips():
    ips = ["10.0.0.1", "10.0.0.2"]
    table = build_table(_records({"Name": "eth0", "IPAddress": ips}))
    cell = table.rows[0].cells[1]
    assert cell == "10.0.0.1;10.0.0.2"
    assert cell.split(";") == ips


def test_sequence_in_typed_column_is_still_flattened():
    table = build_table(_records({"Count": 1}, {"Count": [1, 2]}))
    assert table.columns[0].kind == ValueKind.INTEGER
    assert table.rows[1].cells == ("1;2",)


def test_bytes_are_flattened_to_hex():
    table = build_table(_records({"Name": "a", "Raw": b"\x00\x10"}))
    assert table.rows[0].cells[1] == "0010"


def test_values_coerced_toward_first_kind():
    table = build_table(_records(
        {"Index": 1, "Speed": 1.5, "Up": True, "Name": "eth0"},
        {"Index": "7", "Speed": 10, "Up": "false", "Name": 42},
        {"Index": 2.5, "Speed": "fast", "Up": 0, "Name": False},
    ))
    assert table.rows[1].cells == (7, 10.0, False, "42")
    assert table.rows[2].cells == (2, None, False, "False")


def test_coercion_failure_gives_empty_cell_not_error():
    table = build_table(_records({"Index": 1}, {"Index": "not a number"}))
    assert len(table.rows) == 2
    assert table.rows[1].cells == (None,)
    assert table.skipped == ()


def test_integer_too_large_for_float_column_gives_empty_cell():
    table = build_table(_records({"Speed": 1.5}, {"Speed": 10**400}))
    assert table.columns[0].kind == ValueKind.FLOAT
    assert [r.cells for r in table.rows] == [(1.5,), (None,)]
    assert table.skipped == ()


def test_out_of_range_ps_date_gives_empty_cell():
    ts = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    table = build_table(_records({"Lease": ts}, {"Lease": "/Date(253402300800000)/"}))
    assert [r.cells for r in table.rows] == [(ts,), (None,)]
    assert table.skipped == ()


def test_timestamp_column():
    ts = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
    table = build_table(_records(
        {"Lease": ts},
        {"Lease": "/Date(1700000000000)/"},
        {"Lease": "2024-03-02T08:00:00+00:00"},
        {"Lease": 5},
    ))
    assert table.columns[0].kind == ValueKind.TIMESTAMP
    cells = [r.cells[0] for r in table.rows]
    assert cells[0] == ts
    assert cells[1] == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert cells[2] == datetime(2024, 3, 2, 8, 0, tzinfo=timezone.utc)
    assert cells[3] is None


def test_rows_keep_host_bookkeeping():
    records = _records({"Name": "eth0"}, host="srv01") + _records({"Name": "eth1"}, host="srv02")
    table = build_table(records)
    assert [(r.host, r.record_index) for r in table.rows] == [("srv01", 0), ("srv02", 1)]
    assert table.hosts() == ["srv01", "srv02"]
    assert "Host" not in table.column_names


def test_bad_record_is_skipped_not_fatal():
    records = _records({"Name": "eth0"}) + [object()] + _records({"Name": "eth1"})
    table = build_table(records)
    assert [r.cells for r in table.rows] == [("eth0",), ("eth1",)]
    assert len(table.skipped) == 1
    assert table.skipped[0].record_index == 1


def test_row_failure_is_skipped(monkeypatch):
    builder = TableBuilder()
    original = builder.build_row

    def flaky(record, columns, index):
        if index == 1:
            raise RuntimeError("broken row")
        return original(record, columns, index)

    monkeypatch.setattr(builder, "build_row", flaky)
    table = builder.build(_records({"a": 1}, {"a": 2}, {"a": 3}, host="h"))
    assert [r.cells for r in table.rows] == [(1,), (3,)]
    assert table.skipped[0].host == "h"
    assert str(table.skipped[0]) == "broken row"


def test_plain_mappings_are_accepted():
    table = build_table([{"Name": "eth0", "Up": True}])
    assert table.rows[0].cells == ("eth0", True)


def test_empty_input():
    table = build_table([])
    assert table.columns == ()
    assert table.rows == ()


def test_build_is_deterministic():
    records = _records(
        {"Name": "eth0", "IPAddress": ["10.0.0.1", "10.0.0.2"], "Index": 3},
        {"Name": "eth1", "IPAddress": "10.0.0.9", "Index": "4"},
    )
    first = build_table(records)
    second = build_table(records)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_input_order_decides_kinds():
    a = {"Value": 1}
    b = {"Value": "x"}
    assert build_table(_records(a, b)).columns[0].kind == ValueKind.INTEGER
    assert build_table(_records(b, a)).columns[0].kind == ValueKind.STRING


def test_union_schema_mode():
    table = build_table(
        _records({"Name": "eth0"}, {"Name": "eth1", "Extra": 5}),
        schema=SchemaPolicy.UNION,
    )
    assert table.columns == (Column("Name", ValueKind.STRING), Column("Extra", ValueKind.INTEGER))
    assert [r.cells for r in table.rows] == [("eth0", None), ("eth1", 5)]


def test_to_dict_uses_canonical_text():
    table = build_table(_records({"Up": True, "Speed": 1.5, "Gone": None}))
    assert table.to_dict()["rows"] == [["True", "1.5", None]]


@pytest.mark.parametrize("value, kind, expected", [
    (True, ValueKind.INTEGER, 1),
    (2.5, ValueKind.INTEGER, 2),
    (3.5, ValueKind.INTEGER, 4),
    (" 12 ", ValueKind.INTEGER, 12),
    ("1e3", ValueKind.INTEGER, 1000),
    ("2.25", ValueKind.FLOAT, 2.25),
    ("Yes", ValueKind.BOOLEAN, True),
    (0.0, ValueKind.BOOLEAN, False),
    (7, ValueKind.STRING, "7"),
])
def test_coerce(value, kind, expected):
    assert coerce(tag_value(value), kind) == expected


@pytest.mark.parametrize("value, kind", [
    ("maybe", ValueKind.BOOLEAN),
    ("abc", ValueKind.FLOAT),
    (float("nan"), ValueKind.INTEGER),
    (True, ValueKind.TIMESTAMP),
    ("2024-13-40", ValueKind.TIMESTAMP),
    (10**400, ValueKind.FLOAT),
    ("/Date(253402300800000)/", ValueKind.TIMESTAMP),
])
def test_coerce_failures(value, kind):
    with pytest.raises(CoercionError):
        coerce(tag_value(value), kind)
