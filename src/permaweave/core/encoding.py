"""Byte and JSON encodings used on the ledger wire format."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any


def b64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url, the ledger's text encoding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """Decode unpadded (or padded) base64url text.

    Raises:
        ValueError: If the text is not valid base64url
    """
    if not isinstance(text, str):
        raise ValueError("base64url input must be a string")
    if "+" in text or "/" in text:
        raise ValueError("Invalid base64url data: standard base64 characters")
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ValueError(f"Invalid base64url data: {exc}") from exc


def compact_json(value: Any) -> str:
    """Serialize like JSON.stringify: no whitespace, non-ASCII kept as is.

    Interaction inputs are encoded with this so every writer produces the
    same ``Input`` tag bytes for the same value.
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def canonical_json(data: Any) -> str:
    """Produce deterministic JSON for hashing and signing.

    - sort_keys=True: Consistent key ordering
    - separators=(',', ':'): No whitespace variations
    - ensure_ascii=True: No unicode encoding variations
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=True
    )
