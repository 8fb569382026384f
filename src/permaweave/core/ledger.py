"""
Interfaces of the external collaborators: the ledger client and the state
provider. Only these methods are used; the wire protocol lives behind them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from permaweave.core.constants import POST_ACCEPTED_STATUSES
from permaweave.core.transaction import Transaction


@dataclass(frozen=True)
class NetworkInfo:
    """Current network tip."""
    height: int
    current: str


@dataclass(frozen=True)
class PostResponse:
    """Gateway answer to a transaction submission."""
    status: int
    body: Any = None

    @property
    def accepted(self) -> bool:
        return self.status in POST_ACCEPTED_STATUSES


@dataclass
class TransactionOptions:
    """Fields a caller sets when creating a transaction."""
    data: bytes | str = b""
    target: str = ""
    quantity: str = "0"


@runtime_checkable
class LedgerClient(Protocol):
    def get_transaction(self, tx_id: str) -> Transaction:
        """Fetch a transaction with its data. Raises NotFoundError when absent."""
        ...

    def get_network_info(self) -> NetworkInfo:
        ...

    def create_transaction(self, options: TransactionOptions, wallet: Any) -> Transaction:
        """Create an unsigned transaction with anchor and reward filled in."""
        ...

    def sign(self, tx: Transaction, wallet: Any) -> None:
        ...

    def post_transaction(self, tx: Transaction) -> PostResponse:
        ...

    def get_address(self, wallet: Any) -> str:
        ...


@runtime_checkable
class StateProvider(Protocol):
    def current_state(self, contract_id: str) -> Any:
        """Fold the contract's interaction history into its latest state."""
        ...


@dataclass(frozen=True)
class BlockInfo:
    """Block data exposed to contract code. ``timestamp`` is None until mined."""
    height: int
    indep_hash: str
    timestamp: Optional[int] = None
