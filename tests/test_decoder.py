import pytest

from nasbulk.collection import RecordCollection
from nasbulk.data.splitter import split_input
from nasbulk.decoder import (
    coerce,
    decode_into,
    decode_record,
    expand_list,
    parse_integer,
    parse_real,
    repair_exponent,
    tokenize,
)
from nasbulk.errors import DecodeError, ValidationError
from nasbulk.schema.cards import default_registry
from nasbulk.schema.registry import integer, label, real

REGISTRY = default_registry()


def fixed(*fields: str, tag: str = "") -> str:
    line = "".join(f.ljust(8) for f in fields)
    return line.ljust(72) + tag if tag else line


def record(*lines: str):
    (rec,) = split_input(list(lines)).records
    return rec


def test_exponent_repair() -> None:
    assert repair_exponent("3.2-5") == "3.2E-5"
    assert repair_exponent("-3.2") == "-3.2"
    assert parse_real("7.+4") == pytest.approx(7.0e4)
    assert parse_real("-1.5-3") == pytest.approx(-1.5e-3)
    assert parse_real("1.0D3") == pytest.approx(1000.0)
    assert parse_real("1.2E-2") == pytest.approx(0.012)
    assert parse_real("abc") is None
    assert parse_integer("12") == 12
    assert parse_integer("3.0") == 3
    assert parse_integer("3.5") is None


def test_coerce_blank_and_unreadable_tokens() -> None:
    assert coerce("   ", real("X", 2.5)) == 2.5
    assert coerce("", integer("N")) == 0
    assert coerce("junk", real("X", 1.0)) == 1.0
    assert coerce(" abc ", label("NAME")) == "abc"
    with pytest.raises(DecodeError, match="blank"):
        coerce("", integer("ID", required=True))
    with pytest.raises(DecodeError, match="cannot read"):
        coerce("X1", integer("ID", required=True))


def test_list_thru_and_endt() -> None:
    spec = integer("G", is_list=True)
    assert expand_list(["1", "THRU", "4", "", "10", "ENDT"], spec) == [1, 2, 3, 4, 10]
    assert expand_list(["1", "THRU", "9", "BY", "4"], spec) == [1, 5, 9]
    assert expand_list(["ENDT"], spec) == []
    assert expand_list(["0.1", "0.5", "1.0"], real("D", is_list=True)) == [0.1, 0.5, 1.0]


def test_list_rejects_unknown_text() -> None:
    rec = record(fixed("SET1", "5", "1", "SKIN", "3"))
    with pytest.raises(DecodeError, match="SKIN") as info:
        decode_record(rec, REGISTRY.lookup("SET1"))
    assert info.value.card == "SET1"
    assert info.value.line == 1
    with pytest.raises(DecodeError):
        expand_list(["THRU", "4"], integer("G", is_list=True))


def test_tokenize_pads_continuations() -> None:
    rec = record(fixed("PBAR", "7", "3", "1.5"), fixed("", "1.0"))
    tokens = tokenize(rec)
    assert tokens[:3] == ["7", "3", "1.5"]
    assert len(tokens) == 9
    assert tokens[8] == "1.0"


def test_implicit_and_explicit_continuations_decode_identically() -> None:
    implicit = record(
        fixed("PBAR", "7", "3", "1.5", "2.0", "3.0", "4.0", "0.1", ""),
        fixed("", "1.0", "2.0", "3.0", "4.0", "5.0", "6.0", "7.0", "8.0"),
        fixed("", "0.5", "0.6", "1.-2"),
    )
    (explicit, _) = split_input(
        [
            fixed("PBAR", "7", "3", "1.5", "2.0", "3.0", "4.0", "0.1", "", tag="+P1"),
            fixed("+P2", "0.5", "0.6", "1.-2"),
            fixed("MAT1", "3", "7.0+10"),
            fixed("+P1", "1.0", "2.0", "3.0", "4.0", "5.0", "6.0", "7.0", "8.0", tag="+P2"),
        ]
    ).records
    variant = REGISTRY.lookup("PBAR")
    a = decode_record(implicit, variant)
    b = decode_record(explicit, variant)
    assert a == b
    assert a["C"] == [1.0, 2.0]
    assert a["F"] == [7.0, 8.0]
    assert a["K"] == [0.5, 0.6]
    assert a["I12"] == pytest.approx(0.01)
    assert "unused" not in a


def test_free_field_and_large_field_records() -> None:
    grid = decode_record(record("GRID,1,,1.0,2.0,3.0"), REGISTRY.lookup("GRID"))
    assert grid["GID"] == 1
    assert grid["X"] == [1.0, 2.0, 3.0]

    bar = decode_record(
        record("CBAR,1,10,1,2,0.,1.,0.,,+C1", "+C1,,,1.0,2.0,3.0"), REGISTRY.lookup("CBAR")
    )
    assert bar["GA_GB"] == [1, 2]
    assert bar["OFFT"] == "GGG"
    assert bar["WA"] == [1.0, 2.0, 3.0]

    wide = record(
        "GRID*".ljust(8) + "".join(f.ljust(16) for f in ["5", "0", "1.0", "2.0"]),
        "*".ljust(8) + "".join(f.ljust(16) for f in ["3.0", "0"]),
    )
    values = decode_record(wide, REGISTRY.lookup("GRID"))
    assert values["GID"] == 5
    assert values["X"] == [1.0, 2.0, 3.0]


def test_decode_into_commits_and_propagates_validation() -> None:
    variant = REGISTRY.lookup("SPC1")
    spcs = RecordCollection(variant, 2)
    decode_into(spcs, 0, record(fixed("SPC1", "1", "123", "1", "THRU", "3")))
    assert spcs.get_field(0, "G") == [1, 2, 3]
    assert spcs.get_field(0, "C") == "123"
    with pytest.raises(ValidationError):
        decode_into(spcs, 1, record(fixed("SPC1", "1", "177", "4")))
