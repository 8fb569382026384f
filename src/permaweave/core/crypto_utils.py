"""secp256k1 helpers for the reference wallet: key loading, raw signatures."""

from __future__ import annotations

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

_CURVE = ec.SECP256K1()
_CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)

SIGNATURE_LENGTH = 64
PUBLIC_KEY_LENGTH = 64


def generate_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(_CURVE)


def load_private_key(private_hex: str) -> ec.EllipticCurvePrivateKey:
    value = int(private_hex, 16)
    if not (1 <= value < _CURVE_ORDER):
        raise ValueError("Private key out of range for secp256k1.")
    return ec.derive_private_key(value, _CURVE)


def private_key_to_hex(private_key: ec.EllipticCurvePrivateKey) -> str:
    return private_key.private_numbers().private_value.to_bytes(32, "big").hex()


def public_key_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Raw x||y coordinates, 64 bytes, no SEC1 prefix."""
    numbers = public_key.public_numbers()
    return numbers.x.to_bytes(32, "big") + numbers.y.to_bytes(32, "big")


def load_public_key(raw: bytes) -> ec.EllipticCurvePublicKey:
    if len(raw) != PUBLIC_KEY_LENGTH:
        raise ValueError("Public key must be 64 bytes (uncompressed without prefix).")
    return ec.EllipticCurvePublicKey.from_encoded_point(_CURVE, b"\x04" + raw)


def _to_low_s(r: int, s: int) -> tuple[int, int]:
    """Normalize to low-S form so every signature has a single encoding."""
    if not (1 <= r < _CURVE_ORDER) or not (1 <= s < _CURVE_ORDER):
        raise ValueError("Signature component out of range.")
    if s > _CURVE_ORDER // 2:
        s = _CURVE_ORDER - s
    return r, s


def sign_bytes(private_key: ec.EllipticCurvePrivateKey, message: bytes) -> bytes:
    """Sign ``message`` (SHA-256 digest) and return the 64-byte r||s signature."""
    der_signature = private_key.sign(message, ec.ECDSA(hashes.SHA256()))
    r, s = _to_low_s(*decode_dss_signature(der_signature))
    return r.to_bytes(32, "big") + s.to_bytes(32, "big")


def verify_bytes(public_raw: bytes, message: bytes, signature: bytes) -> bool:
    if len(signature) != SIGNATURE_LENGTH:
        return False
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    if not (1 <= r < _CURVE_ORDER) or not (1 <= s <= _CURVE_ORDER // 2):
        return False
    try:
        load_public_key(public_raw).verify(
            encode_dss_signature(r, s), message, ec.ECDSA(hashes.SHA256())
        )
        return True
    except (InvalidSignature, ValueError):
        return False
