# manyproto

Data types and CBOR encodings for the MANY protocol, in plain Python on top of `cbor2`.

## Modules

- `manyproto.cbor`: the generic CBOR value model. A value is a `bool`, a signed
  64-bit `int`, a `str`, `bytes`, an array (`list`, or `tuple` as a map key) or a
  `dict`. `check_value` validates a value, `sort_key` orders values by kind and
  then by content, `encode` and `decode` convert to and from CBOR bytes, and
  `format_value` renders a compact debugging form (bytes as `b"<hex>"`).
  Unsupported values raise `TypeError` or `ValueError`.
- `manyproto.protocol`: `Attribute` and `AttributeSet`. An attribute has an
  unsigned 32-bit `id` and a tuple of `arguments`. With no arguments it encodes
  as a bare integer; with arguments, as an array whose first item is the id.
  Attributes order by id alone. An `AttributeSet` holds at most one attribute per
  id and iterates in id order.
- `manyproto.cose_keys`: the `CoseKey` value with its CBOR map encoding,
  `eddsa_cose_key(x, d=None)` for Ed25519 keys, `ecdsa_cose_key(x, y, d=None)` for
  P-256 keys, and `public_key(key)`, which returns the public half of an EdDSA or
  ES256 key and raises `ValueError` otherwise. Passing `d` adds the private
  parameter and the sign operation.
- `manyproto.error`: `ErrorCode` (the protocol's numbered codes), `ManyErrorCode`
  (a protocol, attribute-specific or application-specific code) and `ManyError`,
  an exception that carries a code, a message template and string arguments, and
  encodes as a CBOR map. There is a class method for every protocol error, such as
  `ManyError.invalid_method_name(method)`. `attribute_error` and
  `application_error` build custom errors.
- `manyproto.messages`: `Identity`, `RequestMessage` and `ResponseMessage`.
  Messages are tagged CBOR maps (tag 10001 for requests, 10002 for responses).
  When no timestamp is set, the current time is written, in whole seconds.

## Install

```
pip install manyproto
```

The tests need the `test` extra:

```
pip install "manyproto[test]"
pytest
```

## Errors

```python
from manyproto.error import ManyError

err = ManyError.invalid_method_name("foo")
print(err)                       # Invalid method name: "foo".
data = err.to_bytes()
assert ManyError.from_bytes(data) == err
```

A message template takes its `{name}` placeholders from `arguments`. A placeholder
with no matching argument becomes an empty string. `{{` and `}}` stand for literal
braces. Unknown negative codes decode as `ErrorCode.UNKNOWN`. Non-negative codes
that the protocol does not define decode as application-specific codes.

## Attributes

```python
from manyproto.protocol import Attribute, AttributeSet

attrs = AttributeSet()
attrs.insert(Attribute(0).with_argument("hello"))
assert attrs.has_id(0)
assert AttributeSet.from_bytes(attrs.to_bytes()) == attrs
```

## Messages

```python
from manyproto.messages import Identity, RequestMessage, ResponseMessage

request = RequestMessage(method="status", to=Identity.anonymous())
decoded = RequestMessage.from_bytes(request.to_bytes())
response = ResponseMessage.from_request(decoded, Identity.anonymous(), b"\xf6")
```

A response's `data` holds either result bytes or a `ManyError`; `is_error` tells
which. The anonymous identity is never written to the wire. A response's `id` is
written when it is set, but it is not read back when a response is decoded.

## What this package does not do

This package provides values and their encodings only. It does not:

- route requests to handlers or run a server;
- sign or verify message envelopes;
- send anything over a network;
- give identities a textual form (`Identity` holds raw bytes).