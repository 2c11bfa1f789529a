import pytest

from manyproto.cose_keys import (
    ALG_EDDSA,
    ALG_ES256,
    CURVE_ED25519,
    CURVE_P256,
    EC2_CRV,
    EC2_D,
    EC2_X,
    EC2_Y,
    KEY_OP_SIGN,
    KEY_OP_VERIFY,
    KTY_EC2,
    KTY_OKP,
    OKP_CRV,
    OKP_D,
    OKP_X,
    CoseKey,
    ecdsa_cose_key,
    eddsa_cose_key,
    public_key,
)

X = b"\x11" * 32
Y = b"\x22" * 32
D = b"\x33" * 32


def test_eddsa_public_only():
    key = eddsa_cose_key(X)
    assert key.kty == KTY_OKP
    assert key.alg == ALG_EDDSA
    assert key.key_ops == {KEY_OP_VERIFY}
    assert key.param(OKP_CRV) == CURVE_ED25519
    assert key.param(OKP_X) == X
    assert key.param(OKP_D) is None


def test_eddsa_with_private():
    key = eddsa_cose_key(X, D)
    assert key.key_ops == {KEY_OP_VERIFY, KEY_OP_SIGN}
    assert key.param(OKP_D) == D


def test_ecdsa_key():
    key = ecdsa_cose_key(X, Y, D)
    assert key.kty == KTY_EC2
    assert key.alg == ALG_ES256
    assert key.param(EC2_CRV) == CURVE_P256
    assert key.param(EC2_X) == X
    assert key.param(EC2_Y) == Y
    assert key.param(EC2_D) == D
    assert key.key_ops == {KEY_OP_VERIFY, KEY_OP_SIGN}


def test_public_key_strips_private_parts():
    assert public_key(eddsa_cose_key(X, D)) == eddsa_cose_key(X)
    assert public_key(ecdsa_cose_key(X, Y, D)) == ecdsa_cose_key(X, Y)


def test_public_key_drops_key_id():
    key = CoseKey(
        kty=KTY_OKP, alg=ALG_EDDSA, params=((OKP_X, X),), key_id=b"\x01"
    )
    assert public_key(key).key_id == b""


def test_public_key_missing_parameter():
    key = CoseKey(kty=KTY_OKP, alg=ALG_EDDSA)
    with pytest.raises(ValueError, match="doesn't have a public key"):
        public_key(key)
    key = CoseKey(kty=KTY_EC2, alg=ALG_ES256, params=((EC2_X, X),))
    with pytest.raises(ValueError, match="doesn't have a public key"):
        public_key(key)


def test_public_key_wrong_parameter_type():
    key = CoseKey(kty=KTY_OKP, alg=ALG_EDDSA, params=((OKP_X, 5),))
    with pytest.raises(ValueError, match="EdDSA X"):
        public_key(key)
    key = CoseKey(kty=KTY_EC2, alg=ALG_ES256, params=((EC2_X, X), (EC2_Y, "y")))
    with pytest.raises(ValueError, match="ECDSA Y"):
        public_key(key)


def test_public_key_unknown_algorithm():
    with pytest.raises(ValueError, match="Unknown algorithm"):
        public_key(CoseKey(kty=KTY_OKP))


def test_round_trip():
    for key in (eddsa_cose_key(X, D), ecdsa_cose_key(X, Y)):
        assert CoseKey.from_bytes(key.to_bytes()) == key
    with_id = CoseKey(kty=KTY_OKP, alg=ALG_EDDSA, params=((OKP_X, X),), key_id=b"\x07")
    assert CoseKey.from_bytes(with_id.to_bytes()) == with_id


def test_wire_format():
    data = eddsa_cose_key(b"\x00" * 32).to_bytes()
    assert data == bytes.fromhex("a501010327048102200621" "5820") + b"\x00" * 32


def test_from_cbor_requires_kty():
    with pytest.raises(ValueError):
        CoseKey.from_cbor({3: ALG_EDDSA})
    with pytest.raises(ValueError):
        CoseKey.from_cbor([1, 2])


def test_param_returns_last_duplicate():
    key = CoseKey(kty=KTY_OKP, params=((OKP_X, X), (OKP_X, Y)))
    assert key.param(OKP_X) == Y