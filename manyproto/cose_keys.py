"""COSE key construction for EdDSA and ECDSA identities."""

from collections.abc import Mapping
from dataclasses import dataclass

import cbor2

LABEL_KTY = 1
LABEL_KID = 2
LABEL_ALG = 3
LABEL_KEY_OPS = 4

KTY_OKP = 1
KTY_EC2 = 2

ALG_EDDSA = -8
ALG_ES256 = -7

KEY_OP_SIGN = 1
KEY_OP_VERIFY = 2

CURVE_P256 = 1
CURVE_ED25519 = 6

OKP_CRV = -1
OKP_X = -2
OKP_D = -4

EC2_CRV = -1
EC2_X = -2
EC2_Y = -3
EC2_D = -4


def _label(value):
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"invalid COSE label: {value!r}")
    return value


@dataclass(frozen=True)
class CoseKey:
    """A COSE key: type, algorithm, allowed operations and key parameters."""

    kty: object
    alg: object = None
    key_ops: frozenset = frozenset()
    params: tuple = ()
    key_id: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "key_ops", frozenset(self.key_ops))
        object.__setattr__(
            self, "params", tuple((_label(label), value) for label, value in self.params)
        )
        object.__setattr__(self, "key_id", bytes(self.key_id))

    def param(self, label):
        """Return the last value stored under ``label``, or None."""
        found = None
        for key, value in self.params:
            if key == label:
                found = value
        return found

    def to_cbor(self):
        result = {LABEL_KTY: self.kty}
        if self.key_id:
            result[LABEL_KID] = self.key_id
        if self.alg is not None:
            result[LABEL_ALG] = self.alg
        if self.key_ops:
            result[LABEL_KEY_OPS] = sorted(
                self.key_ops, key=lambda op: (isinstance(op, str), op)
            )
        for label, value in self.params:
            result[label] = value
        return result

    @classmethod
    def from_cbor(cls, value):
        if not isinstance(value, Mapping):
            raise ValueError("a COSE key must be a map")
        kty = None
        alg = None
        key_ops = frozenset()
        key_id = b""
        params = []
        for label, item in value.items():
            label = _label(label)
            if label == LABEL_KTY:
                kty = _label(item)
            elif label == LABEL_KID:
                if not isinstance(item, bytes):
                    raise ValueError("key id must be a byte string")
                key_id = item
            elif label == LABEL_ALG:
                alg = _label(item)
            elif label == LABEL_KEY_OPS:
                if not isinstance(item, (list, tuple)):
                    raise ValueError("key operations must be an array")
                key_ops = frozenset(_label(op) for op in item)
            else:
                params.append((label, item))
        if kty is None:
            raise ValueError("COSE key is missing its key type")
        return cls(kty=kty, alg=alg, key_ops=key_ops, params=tuple(params), key_id=key_id)

    def to_bytes(self):
        return cbor2.dumps(self.to_cbor())

    @classmethod
    def from_bytes(cls, data):
        try:
            raw = cbor2.loads(data)
        except cbor2.CBORDecodeError as exc:
            raise ValueError(str(exc)) from exc
        return cls.from_cbor(raw)


def eddsa_cose_key(x, d=None):
    """Build an Ed25519 key from public bytes ``x`` and optional private ``d``."""
    params = [(OKP_CRV, CURVE_ED25519), (OKP_X, bytes(x))]
    key_ops = {KEY_OP_VERIFY}
    if d is not None:
        params.append((OKP_D, bytes(d)))
        key_ops.add(KEY_OP_SIGN)
    return CoseKey(kty=KTY_OKP, alg=ALG_EDDSA, key_ops=frozenset(key_ops), params=tuple(params))


def ecdsa_cose_key(x, y, d=None):
    """Build a P-256 key from public coordinates and optional private ``d``."""
    params = [(EC2_CRV, CURVE_P256), (EC2_X, bytes(x)), (EC2_Y, bytes(y))]
    key_ops = {KEY_OP_VERIFY}
    if d is not None:
        params.append((EC2_D, bytes(d)))
        key_ops.add(KEY_OP_SIGN)
    return CoseKey(kty=KTY_EC2, alg=ALG_ES256, key_ops=frozenset(key_ops), params=tuple(params))


def public_key(key):
    """Return the public half of an EdDSA or ES256 key."""
    if key.alg == ALG_EDDSA:
        x = key.param(OKP_X)
        if x is None:
            raise ValueError("Key doesn't have a public key")
        if not isinstance(x, bytes):
            raise ValueError("Could not get EdDSA X parameter")
        return eddsa_cose_key(x)
    if key.alg == ALG_ES256:
        x = key.param(EC2_X)
        y = key.param(EC2_Y)
        if x is None or y is None:
            raise ValueError("Key doesn't have a public key")
        if not isinstance(x, bytes):
            raise ValueError("Could not get ECDSA X parameter")
        if not isinstance(y, bytes):
            raise ValueError("Could not get ECDSA Y parameter")
        return ecdsa_cose_key(x, y)
    raise ValueError("Unknown algorithm")