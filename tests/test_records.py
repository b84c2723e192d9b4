from datetime import date, datetime, timezone

from hostfacts_exporter.records import (
    NULL,
    Record,
    TaggedValue,
    ValueKind,
    flatten_sequence,
    parse_ps_date,
    split_flattened,
    tag_value,
)


def test_tag_value_scalar_kinds():
    assert tag_value(None).kind == ValueKind.NULL
    assert tag_value(True).kind == ValueKind.BOOLEAN
    assert tag_value(3).kind == ValueKind.INTEGER
    assert tag_value(2.5).kind == ValueKind.FLOAT
    assert tag_value("eth0").kind == ValueKind.STRING
    assert tag_value(datetime(2024, 1, 2, 3, 4, 5)).kind == ValueKind.TIMESTAMP
    assert tag_value(b"\x00\xff").kind == ValueKind.BYTES


def test_tag_value_bool_is_not_integer():
    tv = tag_value(False)
    assert tv.kind == ValueKind.BOOLEAN
    assert tv.value is False


def test_tag_value_date_becomes_timestamp():
    tv = tag_value(date(2024, 5, 1))
    assert tv.kind == ValueKind.TIMESTAMP
    assert tv.value == datetime(2024, 5, 1)


def test_tag_value_sequence_of_strings():
    tv = tag_value(["10.0.0.1", "10.0.0.2"])
    assert tv.kind == ValueKind.SEQUENCE
    assert tv.element_kind == ValueKind.STRING
    assert tv.value == ("10.0.0.1", "10.0.0.2")


def test_tag_value_nested_structure_is_opaque_text():
    tv = tag_value([{"a": 1}, [1, 2]])
    assert tv.kind == ValueKind.SEQUENCE
    assert tv.value == ('{"a":1}', "[1,2]")


def test_tag_value_mapping_is_opaque_string():
    tv = tag_value({"Name": "eth0", "Up": True})
    assert tv.kind == ValueKind.STRING
    assert tv.value == '{"Name":"eth0","Up":true}'


def test_flatten_round_trips_on_plain_split():
    text = flatten_sequence(["10.0.0.1", "10.0.0.2"])
    assert text == "10.0.0.1;10.0.0.2"
    assert text.split(";") == ["10.0.0.1", "10.0.0.2"]


def test_flatten_escapes_delimiter():
    values = ["a;b", "c\\d", ""]
    text = flatten_sequence(values)
    assert text == r"a\;b;c\\d;"
    assert split_flattened(text) == values


def test_split_flattened_empty():
    assert split_flattened("") == []


def test_tagged_value_text_forms():
    assert TaggedValue(ValueKind.BOOLEAN, True).text() == "True"
    assert TaggedValue(ValueKind.FLOAT, 0.1).text() == "0.1"
    assert NULL.text() == ""
    assert tag_value(b"\x01\xab").text() == "01ab"
    assert tag_value([True, None, 3]).text() == "True;;3"


def test_parse_ps_date():
    parsed = parse_ps_date("/Date(1700000000000)/")
    assert parsed == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert parse_ps_date("/Date(1700000000000+0100)/") == parsed
    assert parse_ps_date("yesterday") is None


def test_record_keeps_field_order_and_tags():
    record = Record.from_mapping({"b": 1, "a": "x", "c": None})
    assert record.names() == ("b", "a", "c")
    assert record.get("b").kind == ValueKind.INTEGER
    assert record.get("missing") is NULL
    assert "a" in record
    assert len(record) == 3


def test_record_with_host_prepends_field():
    record = Record.from_mapping({"Name": "eth0"}).with_host("srv01", "Host")
    assert record.host == "srv01"
    assert record.names() == ("Host", "Name")
    assert record.get("Host").value == "srv01"


def test_record_with_host_keeps_existing_field():
    record = Record.from_mapping({"Name": "eth0", "Host": "alias"}).with_host("srv01", "Host")
    assert record.names() == ("Name", "Host")
    assert record.get("Host").value == "alias"
    assert record.host == "srv01"


def test_record_to_plain():
    ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    record = Record.from_mapping({"ips": ["a", "b"], "at": ts, "raw": b"\x10", "n": 1})
    assert record.to_plain() == {
        "ips": ["a", "b"],
        "at": "2024-01-01T00:00:00+00:00",
        "raw": "10",
        "n": 1,
    }


def test_parse_ps_date_out_of_range():
    assert parse_ps_date("/Date(253402300800000)/") is None
    assert parse_ps_date("/Date(-99999999999999999)/") is None


def test_flatten_lossy_cases():
    assert flatten_sequence([]) == flatten_sequence([""]) == ""
    assert split_flattened(flatten_sequence([""])) == []
    assert split_flattened(flatten_sequence(["a", None])) == ["a", ""]
