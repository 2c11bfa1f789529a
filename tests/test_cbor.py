import pytest
from hypothesis import given
from hypothesis import strategies as st

from manyproto.cbor import (
    check_value,
    decode,
    encode,
    format_value,
    from_cbor,
    sort_key,
    to_cbor,
)

I64 = st.integers(min_value=-(2**63), max_value=2**63 - 1)
LEAF = st.one_of(st.booleans(), I64, st.text(), st.binary(max_size=50))
KEYS = st.one_of(I64, st.text(), st.binary(max_size=50))


def arb_cbor():
    return st.recursive(
        LEAF,
        lambda inner: st.one_of(
            st.lists(inner, max_size=10),
            st.dictionaries(KEYS, inner, max_size=10),
        ),
        max_leaves=50,
    )


@given(arb_cbor())
def test_round_trip(value):
    data = encode(value)
    assert decode(data) == value
    assert encode(decode(data)) == data


def test_pinned_scalars():
    assert encode(True) == b"\xf5"
    assert encode(False) == b"\xf4"
    assert encode(-1) == b"\x20"
    assert encode(b"") == b"\x40"


def test_map_entries_are_sorted():
    assert encode({"b": 1, "a": 2}) == b"\xa2\x61a\x02\x61b\x01"
    assert encode({2: "x", 1: "y"}) == encode({1: "y", 2: "x"})


def test_tuple_key_round_trip():
    value = {(1, 2): "x"}
    assert decode(encode(value)) == value


def test_decode_rejects_null():
    with pytest.raises(ValueError):
        decode(b"\xf6")


def test_decode_rejects_float():
    with pytest.raises(ValueError):
        decode(b"\xf9\x3c\x00")


def test_decode_rejects_out_of_range_int():
    with pytest.raises(ValueError):
        decode(b"\x1b\x80\x00\x00\x00\x00\x00\x00\x00")


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode(b"")


def test_check_value_errors():
    with pytest.raises(TypeError):
        check_value(3.5)
    with pytest.raises(ValueError):
        check_value(2**63)
    with pytest.raises(TypeError):
        check_value({frozenset(): 1})
    assert check_value([1, "a"]) == [1, "a"]


def test_sort_key_orders_kinds():
    key_bool = sort_key(False)
    key_int = sort_key(0)
    key_str = sort_key("")
    key_bytes = sort_key(b"")
    key_list = sort_key([])
    key_dict = sort_key({})
    assert key_bool < key_int < key_str < key_bytes < key_list < key_dict


def test_sort_key_arrays_prefix_first():
    assert sort_key([1]) < sort_key([1, 0])
    assert sort_key([0, 5]) < sort_key([1])


def test_to_cbor_and_from_cbor():
    assert to_cbor((1, (2, 3))) == [1, [2, 3]]
    assert from_cbor((1, 2)) == [1, 2]
    with pytest.raises(ValueError):
        from_cbor(None)


def test_format_value():
    assert format_value(b"\x01\xff") == 'b"01ff"'
    assert format_value([True, 1, "x"]) == "[true, 1, x]"
    assert format_value({2: "b", 1: "a"}) == "{1: a, 2: b}"