import pytest
from hypothesis import given
from hypothesis import strategies as st

from manyproto.cbor import format_value
from manyproto.protocol import Attribute, AttributeSet

I64 = st.integers(min_value=-(2**63), max_value=2**63 - 1)
LEAF = st.one_of(st.booleans(), I64, st.text(), st.binary(max_size=50))
KEYS = st.one_of(I64, st.text(), st.binary(max_size=50))
ARB_CBOR = st.recursive(
    LEAF,
    lambda inner: st.one_of(
        st.lists(inner, max_size=10),
        st.dictionaries(KEYS, inner, max_size=10),
    ),
    max_leaves=30,
)
ARB_ARGS = st.lists(ARB_CBOR, max_size=9)
ARB_ID = st.integers(min_value=0, max_value=2**32 - 1)
ARB_ATTR = st.builds(Attribute, ARB_ID, ARB_ARGS)

HIGH_3_BITS_MASK = 0b111_00000


@given(ARB_ATTR)
def test_encode_decode(attr):
    data = attr.to_bytes()
    attr2 = Attribute.from_bytes(data)
    assert attr == attr2
    if not attr.arguments:
        assert data[0] & HIGH_3_BITS_MASK == 0b00000000
    else:
        assert data[0] & HIGH_3_BITS_MASK == 0b10000000


@given(ARB_ID)
def test_id(attr_id):
    attr = Attribute(attr_id)
    assert attr.id == attr_id
    assert attr.arguments == ()


@given(ARB_ID, ARB_CBOR)
def test_with_argument(attr_id, argument):
    attr = Attribute(attr_id)
    assert attr.arguments == ()
    attr = attr.with_argument(argument)
    assert attr.arguments == (argument,)


@given(ARB_ID, ARB_ARGS)
def test_arguments(attr_id, arguments):
    attr = Attribute(attr_id)
    assert attr.arguments == ()
    for argument in arguments:
        attr = attr.with_argument(argument)
    assert list(attr.arguments) == arguments


@given(st.lists(ARB_ID, min_size=2, max_size=2, unique=True))
def test_ord(ids):
    low, high = sorted(ids)
    attr1, attr2 = Attribute(low), Attribute(high)
    assert attr1 < attr2
    assert not attr2 < attr1
    assert sorted([attr2, attr1]) == [attr1, attr2]


@given(ARB_ATTR)
def test_debug_fmt(attr):
    expected = f"Attribute {{ id: {attr.id}, arguments: {format_value(list(attr.arguments))} }}"
    assert str(attr) == expected


def test_str_pinned():
    assert str(Attribute(1, (True, 2))) == "Attribute { id: 1, arguments: [true, 2] }"


def test_invalid_ids():
    with pytest.raises(ValueError):
        Attribute(2**32)
    with pytest.raises(ValueError):
        Attribute(-1)


def test_from_bytes_errors():
    with pytest.raises(ValueError, match="empty"):
        Attribute.from_bytes(b"\x80")
    with pytest.raises(ValueError, match="attribute ID"):
        Attribute.from_cbor(["x"])
    with pytest.raises(ValueError):
        Attribute.from_cbor("x")


def test_negative_array_id_truncates():
    assert Attribute.from_cbor([-1, 1]).id == 2**32 - 1


def test_attribute_set_insert_and_lookup():
    attrs = AttributeSet()
    assert not attrs
    assert attrs.insert(Attribute(3)) is True
    assert attrs.insert(Attribute(3, ("x",))) is False
    assert attrs.insert(Attribute(1, (5,)))
    assert attrs.has_id(3)
    assert not attrs.has_id(2)
    assert attrs.get_attribute(1) == Attribute(1, (5,))
    assert attrs.get_attribute(2) is None
    assert Attribute(3, ("anything",)) in attrs
    assert [a.id for a in attrs] == [1, 3]
    assert len(attrs) == 2


def test_attribute_set_round_trip():
    attrs = AttributeSet([Attribute(2, ("a", b"b")), Attribute(0)])
    decoded = AttributeSet.from_bytes(attrs.to_bytes())
    assert decoded == attrs
    assert attrs.to_cbor() == [0, [2, "a", b"b"]]


def test_attribute_set_empty_bytes():
    assert AttributeSet().to_bytes() == b"\x80"


def test_attribute_set_from_non_array():
    with pytest.raises(ValueError):
        AttributeSet.from_bytes(b"\x01")