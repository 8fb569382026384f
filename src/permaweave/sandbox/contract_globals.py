"""
Objects bound into a contract's scope.

``ExecutionContext`` is the host side of the ``SmartWeave`` global: it owns
the ledger handle, the active-transaction slot and the lock serializing
invocations. Contract code only ever receives a ``SmartWeaveGlobal`` view of
it, which exposes read-only properties and nothing callable.
"""

from __future__ import annotations

import hashlib
import json
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType, SimpleNamespace
from typing import Any, Iterator, Mapping, Optional

from permaweave.core.encoding import b64url_decode, b64url_encode, canonical_json
from permaweave.core.ledger import BlockInfo


class ContractError(Exception):
    """Raised by contract code to reject an interaction.

    The message becomes the result of the rejected interaction. This is an
    expected outcome, not a fault of the contract or the host.
    """
    pass


def contract_assert(condition: Any, message: str) -> None:
    """``ContractAssert`` in contract scope: reject unless ``condition`` holds."""
    if not condition:
        raise ContractError(message)


def _freeze_tags(tags: Mapping[str, Any]) -> Mapping[str, Any]:
    frozen = {
        name: tuple(value) if isinstance(value, list) else value
        for name, value in tags.items()
    }
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class ActiveTransactionContext:
    """The transaction causing the current invocation.

    Attributes:
        id: transaction id
        owner: address of the caller
        target: recipient of the value transfer ("" when none)
        tags: decoded tags, repeated names as tuples
        reward: fee paid, winston string
        quantity: winston transferred to ``target``
        block: block the transaction is (or would be) included in
    """
    id: str
    owner: str
    target: str
    tags: Mapping[str, Any]
    reward: str
    quantity: str
    block: BlockInfo

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _freeze_tags(self.tags))


@dataclass(frozen=True)
class ContractInfo:
    id: str
    owner: str = ""


class ExecutionContext:
    """Host-side state of one contract's ``SmartWeave`` global.

    The active-transaction slot is only ever set through ``activate()``,
    which holds the context's re-entrant lock for the whole invocation.
    """

    def __init__(self, contract_id: str, owner: str = "", ledger: Any = None) -> None:
        self.contract = ContractInfo(id=contract_id, owner=owner)
        self.ledger = ledger
        self._lock = threading.RLock()
        self._active: Optional[ActiveTransactionContext] = None
        self.smartweave = SmartWeaveGlobal(self)

    @property
    def active_transaction(self) -> Optional[ActiveTransactionContext]:
        return self._active

    @contextmanager
    def activate(self, active_tx: ActiveTransactionContext) -> Iterator[ActiveTransactionContext]:
        """Install ``active_tx`` for the duration of one invocation."""
        with self._lock:
            previous = self._active
            self._active = active_tx
            try:
                yield active_tx
            finally:
                self._active = previous


class SmartWeaveGlobal:
    """The ``SmartWeave`` object contract code sees."""

    __slots__ = ("_context",)

    def __init__(self, context: ExecutionContext) -> None:
        self._context = context

    def __repr__(self) -> str:
        return f"SmartWeave(contract={self._context.contract.id!r})"

    @property
    def contract(self) -> ContractInfo:
        return self._context.contract

    @property
    def transaction(self) -> ActiveTransactionContext:
        active = self._context.active_transaction
        if active is None:
            raise ContractError("No interaction is being processed")
        return active

    @property
    def block(self) -> BlockInfo:
        return self.transaction.block


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _sha256_hex(value: str | bytes) -> str:
    return hashlib.sha256(_as_bytes(value)).hexdigest()


def _b64url_encode_text(value: str | bytes) -> str:
    return b64url_encode(_as_bytes(value))


def _b64url_decode_text(value: str) -> str:
    return b64url_decode(value).decode("utf-8")


def build_utils() -> SimpleNamespace:
    """Deterministic helpers exposed to contract code as ``utils``."""
    return SimpleNamespace(
        sha256_hex=_sha256_hex,
        canonical_json=canonical_json,
        json_loads=json.loads,
        b64url_encode=_b64url_encode_text,
        b64url_decode=_b64url_decode_text,
    )
