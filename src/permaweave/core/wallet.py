"""
Reference wallet - secp256k1 signing key for interaction transactions.

Key management proper is the caller's concern; this wallet is what the
gateway client signs with and what tests use.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from permaweave.core.crypto_utils import (
    generate_private_key,
    load_private_key,
    private_key_to_hex,
    public_key_bytes,
    sign_bytes,
    verify_bytes,
)
from permaweave.core.encoding import b64url_decode, b64url_encode
from permaweave.core.transaction import Transaction

logger = logging.getLogger(__name__)


def address_from_owner(owner: str) -> str:
    """Derive an address: base64url(sha256(public key bytes))."""
    return b64url_encode(hashlib.sha256(b64url_decode(owner)).digest())


class Wallet:
    """secp256k1 wallet.

    Attributes:
        private_key: hex private key
        owner: base64url raw public key, as carried in ``Transaction.owner``
        address: base64url sha256 of the public key
    """

    def __init__(self, private_key: Optional[str] = None) -> None:
        if private_key:
            self._key = load_private_key(private_key)
            logger.debug(
                "Wallet restored from private key",
                extra={"event": "wallet.restored"},
            )
        else:
            self._key = generate_private_key()
            logger.debug("Wallet generated", extra={"event": "wallet.generated"})

        self.private_key = private_key_to_hex(self._key)
        self.owner = b64url_encode(public_key_bytes(self._key.public_key()))
        self.address = address_from_owner(self.owner)

    def __repr__(self) -> str:
        return f"Wallet(address={self.address!r})"

    def sign(self, message: bytes) -> bytes:
        return sign_bytes(self._key, message)

    def sign_transaction(self, tx: Transaction) -> None:
        """Set the owner, sign the payload and fix the transaction id."""
        tx.owner = self.owner
        tx.set_signature(self.sign(tx.signature_payload()))
        logger.debug(
            "Transaction signed",
            extra={"event": "wallet.tx_signed", "tx_id": tx.id, "address": self.address[:12] + "..."},
        )

    @staticmethod
    def verify_transaction(tx: Transaction) -> bool:
        """Check a transaction's signature against its owner and id."""
        if not tx.signature or not tx.owner:
            return False
        try:
            signature = b64url_decode(tx.signature)
            owner_raw = b64url_decode(tx.owner)
        except ValueError:
            return False
        if b64url_encode(hashlib.sha256(signature).digest()) != tx.id:
            return False
        return verify_bytes(owner_raw, tx.signature_payload(), signature)

    def to_dict(self) -> Dict[str, Any]:
        return {"private_key": self.private_key, "owner": self.owner, "address": self.address}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Wallet":
        return cls(private_key=payload["private_key"])

    def save(self, path: str | Path) -> None:
        """Write the keyfile with owner-only permissions."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle)
        logger.info(
            "Wallet keyfile written",
            extra={"event": "wallet.saved", "address": self.address[:12] + "..."},
        )

    @classmethod
    def load(cls, path: str | Path) -> "Wallet":
        with open(path, "r", encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))
