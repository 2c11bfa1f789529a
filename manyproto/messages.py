"""Request and response messages exchanged between clients and servers."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import IntEnum

import cbor2

from .error import ManyError
from .protocol import AttributeSet

REQUEST_TAG = 10001
RESPONSE_TAG = 10002
IDENTITY_TAG = 10000
TIMESTAMP_TAG = 1

_U8_MAX = 0xFF
_U64_MAX = 2**64 - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class RequestKey(IntEnum):
    """Map keys of a request message."""

    PROTOCOL_VERSION = 0
    FROM = 1
    TO = 2
    ENDPOINT = 3
    ARGUMENT = 4
    TIMESTAMP = 5
    ID = 6
    NONCE = 7
    ATTRIBUTES = 8


class ResponseKey(IntEnum):
    """Map keys of a response message."""

    PROTOCOL_VERSION = 0
    FROM = 1
    TO = 2
    RESULT = 4
    TIMESTAMP = 5
    ID = 6
    ATTRIBUTES = 8


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _loads(data):
    try:
        return cbor2.loads(data)
    except cbor2.CBORDecodeError as exc:
        raise ValueError(str(exc)) from exc


@dataclass(frozen=True)
class Identity:
    """An identity carried as raw bytes; a single zero byte is the anonymous identity."""

    data: bytes = b"\x00"

    def __post_init__(self):
        data = bytes(self.data)
        if not data:
            raise ValueError("an identity cannot be empty")
        object.__setattr__(self, "data", data)

    @classmethod
    def anonymous(cls):
        return cls(b"\x00")

    def is_anonymous(self):
        return self.data == b"\x00"

    def __str__(self):
        return self.data.hex()

    def to_cbor(self):
        return cbor2.CBORTag(IDENTITY_TAG, self.data)

    @classmethod
    def from_cbor(cls, value):
        if isinstance(value, cbor2.CBORTag):
            if value.tag != IDENTITY_TAG:
                raise ValueError(f"Invalid identity tag: {value.tag}.")
            value = value.value
        if not isinstance(value, bytes):
            raise ValueError("An identity must be a byte string.")
        return cls(value)


def _encode_timestamp(timestamp):
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    elif timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    seconds = (timestamp - _EPOCH) // timedelta(seconds=1)
    if seconds < 0:
        raise ValueError("Time flew backward")
    return cbor2.CBORTag(TIMESTAMP_TAG, seconds)


def _decode_timestamp(value):
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value.microsecond or value < _EPOCH:
            raise ValueError("Expected a non-negative integral timestamp.")
        return value
    if not isinstance(value, cbor2.CBORTag) or value.tag != TIMESTAMP_TAG:
        raise ValueError("Invalid tag.")
    seconds = value.value
    if not _is_int(seconds) or not 0 <= seconds <= _U64_MAX:
        raise ValueError("Expected a non-negative integral timestamp.")
    try:
        return _EPOCH + timedelta(seconds=seconds)
    except OverflowError as exc:
        raise ValueError("duration value can not represent system time") from exc


def _u64(value, name):
    if not _is_int(value) or not 0 <= value <= _U64_MAX:
        raise ValueError(f"{name} must be an unsigned 64-bit integer")
    return value


def _message_map(value, tag):
    if not isinstance(value, cbor2.CBORTag) or value.tag != tag:
        raise ValueError(f"Invalid tag, expected {tag} for a message.")
    if not isinstance(value.value, Mapping):
        raise ValueError("A message must be a map.")
    return value.value


@dataclass
class RequestMessage:
    """A request to call ``method`` with CBOR-encoded ``data``."""

    version: int | None = None
    from_: Identity | None = None
    to: Identity = field(default_factory=Identity.anonymous)
    method: str = ""
    data: bytes = b""
    timestamp: datetime | None = None
    id: int | None = None
    nonce: bytes | None = None
    attributes: AttributeSet = field(default_factory=AttributeSet)

    def with_method(self, method):
        return replace(self, method=method)

    def with_attribute(self, attr):
        attributes = AttributeSet(self.attributes)
        attributes.insert(attr)
        return replace(self, attributes=attributes)

    def with_data(self, data):
        return replace(self, data=bytes(data))

    def with_from(self, identity):
        return replace(self, from_=identity)

    def sender(self):
        """Return the sender, or the anonymous identity if there is none."""
        return self.from_ if self.from_ is not None else Identity.anonymous()

    def to_cbor(self):
        # The protocol version is implied; only version 1 is supported.
        body = {}
        if self.from_ is not None and not self.from_.is_anonymous():
            body[RequestKey.FROM.value] = self.from_.to_cbor()
        if not self.to.is_anonymous():
            body[RequestKey.TO.value] = self.to.to_cbor()
        body[RequestKey.ENDPOINT.value] = self.method
        if self.data:
            body[RequestKey.ARGUMENT.value] = bytes(self.data)
        body[RequestKey.TIMESTAMP.value] = _encode_timestamp(self.timestamp)
        if self.id is not None:
            body[RequestKey.ID.value] = _u64(self.id, "id")
        if self.nonce is not None:
            body[RequestKey.NONCE.value] = bytes(self.nonce)
        if len(self.attributes):
            body[RequestKey.ATTRIBUTES.value] = self.attributes.to_cbor()
        return cbor2.CBORTag(REQUEST_TAG, body)

    @classmethod
    def from_cbor(cls, value):
        body = _message_map(value, REQUEST_TAG)
        fields = {}
        for key, item in body.items():
            if not _is_int(key) or not -128 <= key <= 127:
                raise ValueError(f"Invalid request key: {key!r}.")
            if key == RequestKey.PROTOCOL_VERSION:
                if item != 1 or not _is_int(item):
                    raise ValueError("Invalid version.")
                fields["version"] = item
            elif key == RequestKey.FROM:
                fields["from_"] = Identity.from_cbor(item)
            elif key == RequestKey.TO:
                fields["to"] = Identity.from_cbor(item)
            elif key == RequestKey.ENDPOINT:
                if not isinstance(item, str):
                    raise ValueError("The endpoint must be a string.")
                fields["method"] = item
            elif key == RequestKey.ARGUMENT:
                if not isinstance(item, bytes):
                    raise ValueError("The argument must be a byte string.")
                fields["data"] = item
            elif key == RequestKey.TIMESTAMP:
                fields["timestamp"] = _decode_timestamp(item)
            elif key == RequestKey.ID:
                fields["id"] = _u64(item, "id")
            elif key == RequestKey.NONCE:
                if not isinstance(item, bytes):
                    raise ValueError("The nonce must be a byte string.")
                fields["nonce"] = item
            elif key == RequestKey.ATTRIBUTES:
                fields["attributes"] = AttributeSet.from_cbor(item)
        return cls(**fields)

    def to_bytes(self):
        return cbor2.dumps(self.to_cbor())

    @classmethod
    def from_bytes(cls, data):
        return cls.from_cbor(_loads(data))


@dataclass
class ResponseMessage:
    """A response; ``data`` holds the result bytes or a :class:`ManyError`."""

    version: int | None = None
    from_: Identity = field(default_factory=Identity.anonymous)
    to: Identity | None = None
    data: bytes | ManyError = b""
    timestamp: datetime | None = None
    id: int | None = None
    attributes: AttributeSet = field(default_factory=AttributeSet)

    @classmethod
    def from_request(cls, request, sender, data):
        """Build a response addressed back to the sender of ``request``."""
        return cls(version=1, from_=sender, to=request.from_, data=data, id=request.id)

    @classmethod
    def error(cls, sender, error):
        return cls(version=1, from_=sender, data=error)

    @property
    def is_error(self):
        return isinstance(self.data, ManyError)

    def with_attribute(self, attr):
        attributes = AttributeSet(self.attributes)
        attributes.insert(attr)
        return replace(self, attributes=attributes)

    def to_cbor(self):
        body = {}
        if not self.from_.is_anonymous():
            body[ResponseKey.FROM.value] = self.from_.to_cbor()
        if self.to is not None and not self.to.is_anonymous():
            body[ResponseKey.TO.value] = self.to.to_cbor()
        if isinstance(self.data, ManyError):
            body[ResponseKey.RESULT.value] = self.data.to_cbor()
        else:
            body[ResponseKey.RESULT.value] = bytes(self.data)
        body[ResponseKey.TIMESTAMP.value] = _encode_timestamp(self.timestamp)
        if self.id is not None:
            body[ResponseKey.ID.value] = _u64(self.id, "id")
        if len(self.attributes):
            body[ResponseKey.ATTRIBUTES.value] = self.attributes.to_cbor()
        return cbor2.CBORTag(RESPONSE_TAG, body)

    @classmethod
    def from_cbor(cls, value):
        body = _message_map(value, RESPONSE_TAG)
        fields = {}
        for key, item in body.items():
            if not _is_int(key):
                raise ValueError(f"Invalid response key: {key!r}.")
            if key == ResponseKey.PROTOCOL_VERSION:
                if not _is_int(item) or not 0 <= item <= _U8_MAX:
                    raise ValueError("Invalid version.")
                fields["version"] = item
            elif key == ResponseKey.FROM:
                fields["from_"] = Identity.from_cbor(item)
            elif key == ResponseKey.TO:
                fields["to"] = Identity.from_cbor(item)
            elif key == ResponseKey.RESULT:
                if isinstance(item, bytes):
                    fields["data"] = item
                elif isinstance(item, Mapping):
                    fields["data"] = ManyError.from_cbor(item)
            elif key == ResponseKey.TIMESTAMP:
                fields["timestamp"] = _decode_timestamp(item)
            elif key == ResponseKey.ATTRIBUTES:
                fields["attributes"] = AttributeSet.from_cbor(item)
            # The id key is not read back from a response.
        return cls(**fields)

    def to_bytes(self):
        return cbor2.dumps(self.to_cbor())

    @classmethod
    def from_bytes(cls, data):
        return cls.from_cbor(_loads(data))