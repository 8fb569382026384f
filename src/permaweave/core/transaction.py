"""
permaweave Core - Transaction

The ledger transaction envelope used for contracts, contract sources and
interactions.

Security Notes:
- The signing payload is canonical JSON so every signer and verifier hashes
  the same bytes
- The id is derived from the signature, so it is only final once signed
- Tags are stored in wire form (base64url) and decoded on demand
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, List, Mapping, Optional

from permaweave.core.constants import TRANSACTION_FORMAT
from permaweave.core.encoding import b64url_decode, b64url_encode, canonical_json
from permaweave.core.exceptions import ValidationError
from permaweave.core.tags import encode_tag, get_tag, unpack_tags, TagValue

logger = logging.getLogger(__name__)

# Gateways reject larger inline tag sections
MAX_TAGS_BYTES = 2048


class Transaction:
    """A ledger transaction.

    Attributes:
        id: base64url transaction id (empty until signed)
        last_tx: anchor the transaction was created against
        owner: base64url public key of the signer
        tags: wire-form tags, in insertion order
        target: recipient address for a value transfer ("" when none)
        quantity: winston transferred to ``target`` as a decimal string
        data: payload bytes
        reward: fee paid, winston as a decimal string
        signature: base64url signature (empty until signed)
    """

    def __init__(
        self,
        *,
        id: str = "",
        last_tx: str = "",
        owner: str = "",
        tags: Optional[List[Dict[str, str]]] = None,
        target: str = "",
        quantity: str = "0",
        data: bytes | str = b"",
        reward: str = "0",
        signature: str = "",
        format: int = TRANSACTION_FORMAT,
    ) -> None:
        self.format = format
        self.id = id
        self.last_tx = last_tx
        self.owner = owner
        self.tags: List[Dict[str, str]] = list(tags or [])
        self.target = target or ""
        self.quantity = str(quantity or "0")
        self.data = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self.reward = str(reward or "0")
        self.signature = signature

    def __repr__(self) -> str:
        return f"Transaction(id={self.id!r}, target={self.target!r}, tags={len(self.tags)})"

    @property
    def data_size(self) -> int:
        return len(self.data)

    def add_tag(self, name: str, value: str) -> None:
        """Append a tag. Signing afterwards is required for it to count."""
        if not isinstance(name, str) or not name:
            raise ValidationError("Tag name must be a non-empty string")
        if not isinstance(value, str):
            raise ValidationError(f"Tag value for {name!r} must be a string")
        self.tags.append(encode_tag(name, value))
        if self._tags_size() > MAX_TAGS_BYTES:
            self.tags.pop()
            raise ValidationError(
                f"Tags exceed {MAX_TAGS_BYTES} bytes",
                details={"tag": name},
            )

    def _tags_size(self) -> int:
        return sum(len(b64url_decode(t["name"])) + len(b64url_decode(t["value"])) for t in self.tags)

    def get_tag(self, name: str) -> Optional[str]:
        return get_tag(self, name)

    def unpacked_tags(self) -> Dict[str, TagValue]:
        return unpack_tags(self)

    def get_data(self, as_string: bool = True) -> str | bytes:
        """Return the payload, decoded as UTF-8 text by default.

        Raises:
            UnicodeDecodeError: If ``as_string`` and the payload is not UTF-8
        """
        if as_string:
            return self.data.decode("utf-8")
        return self.data

    def signature_payload(self) -> bytes:
        """Bytes covered by the signature: every field except id and signature."""
        body = {
            "format": self.format,
            "last_tx": self.last_tx,
            "owner": self.owner,
            "tags": self.tags,
            "target": self.target,
            "quantity": self.quantity,
            "data_size": str(self.data_size),
            "data_root": b64url_encode(hashlib.sha256(self.data).digest()),
            "reward": self.reward,
        }
        return canonical_json(body).encode("utf-8")

    def set_signature(self, signature: bytes) -> None:
        """Attach a signature and derive the final id from it."""
        self.signature = b64url_encode(signature)
        self.id = b64url_encode(hashlib.sha256(signature).digest())

    def assign_provisional_id(self) -> str:
        """Give an unsigned transaction a stable id from its payload."""
        if not self.id:
            self.id = b64url_encode(hashlib.sha256(self.signature_payload()).digest())
        return self.id

    @property
    def is_signed(self) -> bool:
        return bool(self.signature)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form, as posted to and returned by the gateway."""
        return {
            "format": self.format,
            "id": self.id,
            "last_tx": self.last_tx,
            "owner": self.owner,
            "tags": [dict(t) for t in self.tags],
            "target": self.target,
            "quantity": self.quantity,
            "data": b64url_encode(self.data),
            "data_size": str(self.data_size),
            "reward": self.reward,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Transaction":
        """Build a transaction from its wire form.

        Raises:
            ValidationError: If the payload is malformed
        """
        try:
            data = b64url_decode(payload.get("data") or "")
            tags = [{"name": t["name"], "value": t["value"]} for t in payload.get("tags") or []]
        except (ValueError, KeyError, TypeError) as exc:
            raise ValidationError(f"Malformed transaction payload: {exc}") from exc

        return cls(
            id=payload.get("id", ""),
            last_tx=payload.get("last_tx", ""),
            owner=payload.get("owner", ""),
            tags=tags,
            target=payload.get("target", ""),
            quantity=payload.get("quantity", "0"),
            data=data,
            reward=payload.get("reward", "0"),
            signature=payload.get("signature", ""),
            format=int(payload.get("format", TRANSACTION_FORMAT)),
        )
