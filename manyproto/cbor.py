"""Dynamically typed CBOR values.

A value is one of ``bool``, ``int`` (signed 64-bit), ``str``, ``bytes``,
an array (``list``, or ``tuple`` where a hashable form is needed, such as a
map key) or a map (``dict``). Maps cannot themselves be used as map keys.
"""

from collections.abc import Mapping

import cbor2

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

_BOOL, _INT, _STR, _BYTES, _ARRAY, _MAP = range(6)


def _check_int(value):
    if not I64_MIN <= value <= I64_MAX:
        raise ValueError(f"integer {value} does not fit in a signed 64-bit value")


def _check_key(key):
    if isinstance(key, (list, dict)):
        raise TypeError(f"unhashable map key type: {type(key).__name__}")
    check_value(key)


def check_value(value):
    """Validate that ``value`` is a supported CBOR value and return it."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        _check_int(value)
        return value
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, (list, tuple)):
        for item in value:
            check_value(item)
        return value
    if isinstance(value, dict):
        for key, item in value.items():
            _check_key(key)
            check_value(item)
        return value
    raise TypeError(f"unsupported CBOR value type: {type(value).__name__}")


def sort_key(value):
    """Return a key ordering values by kind first, then by content."""
    if isinstance(value, bool):
        return (_BOOL, value)
    if isinstance(value, int):
        return (_INT, value)
    if isinstance(value, str):
        return (_STR, value)
    if isinstance(value, bytes):
        return (_BYTES, value)
    if isinstance(value, (list, tuple)):
        return (_ARRAY, tuple(sort_key(item) for item in value))
    if isinstance(value, dict):
        entries = sorted((sort_key(k), sort_key(v)) for k, v in value.items())
        return (_MAP, tuple(entries))
    raise TypeError(f"unsupported CBOR value type: {type(value).__name__}")


def _plain(value, as_key):
    if isinstance(value, (list, tuple)):
        items = [_plain(item, as_key) for item in value]
        return tuple(items) if as_key else items
    if isinstance(value, dict):
        entries = sorted(value.items(), key=lambda entry: sort_key(entry[0]))
        return {_plain(k, True): _plain(v, False) for k, v in entries}
    return value


def to_cbor(value):
    """Convert a value into a structure ready for ``cbor2``, maps in key order."""
    check_value(value)
    return _plain(value, False)


def _from(value, as_key):
    if isinstance(value, (bool, str, bytes)):
        return value
    if isinstance(value, int):
        _check_int(value)
        return value
    if isinstance(value, (list, tuple)):
        items = [_from(item, as_key) for item in value]
        return tuple(items) if as_key else items
    if isinstance(value, Mapping):
        if as_key:
            raise ValueError("maps are not supported as map keys")
        return {_from(k, True): _from(v, False) for k, v in value.items()}
    raise ValueError(f"invalid attribute type: {type(value).__name__}")


def from_cbor(value):
    """Convert a structure decoded by ``cbor2`` into a value, rejecting other types."""
    return _from(value, False)


def encode(value):
    """Encode a value to CBOR bytes."""
    return cbor2.dumps(to_cbor(value))


def decode(data):
    """Decode CBOR bytes into a value."""
    try:
        raw = cbor2.loads(data)
    except cbor2.CBORDecodeError as exc:
        raise ValueError(str(exc)) from exc
    return from_cbor(raw)


def format_value(value):
    """Render a value in a compact debugging notation."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return f'b"{value.hex()}"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_value(item) for item in value) + "]"
    if isinstance(value, dict):
        entries = sorted(value.items(), key=lambda entry: sort_key(entry[0]))
        return "{" + ", ".join(f"{format_value(k)}: {format_value(v)}" for k, v in entries) + "}"
    raise TypeError(f"unsupported CBOR value type: {type(value).__name__}")