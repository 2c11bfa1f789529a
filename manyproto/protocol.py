"""Protocol attributes and attribute sets."""

from dataclasses import dataclass

import cbor2

from . import cbor

U32_MAX = 0xFFFFFFFF


def _is_u32(value):
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= U32_MAX


@dataclass(frozen=True)
class Attribute:
    """An attribute identifier with optional arguments.

    Attributes order by identifier alone; equality also compares arguments.
    """

    id: int
    arguments: tuple = ()

    def __post_init__(self):
        if not _is_u32(self.id):
            raise ValueError(f"invalid attribute id: {self.id!r}")
        arguments = tuple(self.arguments)
        for argument in arguments:
            cbor.check_value(argument)
        object.__setattr__(self, "arguments", arguments)

    def __hash__(self):
        return hash(self.id)

    def __lt__(self, other):
        if not isinstance(other, Attribute):
            return NotImplemented
        return self.id < other.id

    def __le__(self, other):
        if not isinstance(other, Attribute):
            return NotImplemented
        return self.id <= other.id

    def __gt__(self, other):
        if not isinstance(other, Attribute):
            return NotImplemented
        return self.id > other.id

    def __ge__(self, other):
        if not isinstance(other, Attribute):
            return NotImplemented
        return self.id >= other.id

    def __str__(self):
        return f"Attribute {{ id: {self.id}, arguments: {cbor.format_value(list(self.arguments))} }}"

    def with_argument(self, argument):
        """Return a copy with one more argument appended."""
        return Attribute(self.id, self.arguments + (argument,))

    def to_cbor(self):
        if not self.arguments:
            return self.id
        return [self.id, *(cbor.to_cbor(argument) for argument in self.arguments)]

    @classmethod
    def from_cbor(cls, value):
        if isinstance(value, (list, tuple)):
            if not value:
                raise ValueError("Invalid empty attribute.")
            first, *rest = (cbor.from_cbor(item) for item in value)
            if isinstance(first, bool) or not isinstance(first, int) or first > U32_MAX:
                raise ValueError("Expected an attribute ID.")
            return cls(first & U32_MAX, tuple(rest))
        if not _is_u32(value):
            raise ValueError(f"Expected an unsigned 32-bit attribute ID, got {value!r}.")
        return cls(value)

    def to_bytes(self):
        return cbor2.dumps(self.to_cbor())

    @classmethod
    def from_bytes(cls, data):
        try:
            raw = cbor2.loads(data)
        except cbor2.CBORDecodeError as exc:
            raise ValueError(str(exc)) from exc
        return cls.from_cbor(raw)


class AttributeSet:
    """A set of attributes keyed by identifier, iterated in identifier order."""

    def __init__(self, attributes=()):
        self._attributes = {}
        for attribute in attributes:
            self.insert(attribute)

    def insert(self, attr):
        """Add an attribute; return False if one with the same id is present."""
        if attr.id in self._attributes:
            return False
        self._attributes[attr.id] = attr
        return True

    def has_id(self, attr_id):
        return attr_id in self._attributes

    def get_attribute(self, attr_id):
        return self._attributes.get(attr_id)

    def __contains__(self, attr):
        return isinstance(attr, Attribute) and attr.id in self._attributes

    def __iter__(self):
        return iter(sorted(self._attributes.values()))

    def __len__(self):
        return len(self._attributes)

    def __eq__(self, other):
        if not isinstance(other, AttributeSet):
            return NotImplemented
        return list(self) == list(other)

    __hash__ = None

    def __repr__(self):
        return f"AttributeSet({list(self)!r})"

    def to_cbor(self):
        return [attribute.to_cbor() for attribute in self]

    @classmethod
    def from_cbor(cls, value):
        if not isinstance(value, (list, tuple)):
            raise ValueError("Expected an array of attributes.")
        return cls(Attribute.from_cbor(item) for item in value)

    def to_bytes(self):
        return cbor2.dumps(self.to_cbor())

    @classmethod
    def from_bytes(cls, data):
        try:
            raw = cbor2.loads(data)
        except cbor2.CBORDecodeError as exc:
            raise ValueError(str(exc)) from exc
        return cls.from_cbor(raw)