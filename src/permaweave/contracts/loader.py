"""
Contract loader.

Resolves a contract id into everything needed to run it: the source text,
the initial state and a built execution environment.

Initial state is taken from the first of:
1. the ``Init-State`` tag of the contract transaction (inline JSON)
2. the data of the transaction named by ``Init-State-TX``
3. the data of the contract transaction itself
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from permaweave.core import config
from permaweave.core.constants import (
    TAG_CONTRACT_SRC,
    TAG_INIT_STATE,
    TAG_INIT_STATE_TX,
    TAG_MIN_FEE,
)
from permaweave.core.exceptions import ContractLoadError
from permaweave.core.ledger import LedgerClient
from permaweave.core.transaction import Transaction
from permaweave.core.wallet import address_from_owner
from permaweave.sandbox.contract_globals import ExecutionContext
from permaweave.sandbox.environment import (
    ContractEnvironment,
    Handler,
    create_contract_execution_environment,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractRecord:
    """A loaded contract.

    Attributes:
        id: contract transaction id
        source: contract source text
        initial_state: raw initial state text
        min_fee: value of the ``Min-Fee`` tag, if any
        contract_tx: the contract transaction
        environment: built execution environment
    """
    id: str
    source: str
    initial_state: str
    min_fee: Optional[str]
    contract_tx: Transaction
    environment: ContractEnvironment

    @property
    def handler(self) -> Handler:
        return self.environment.handler

    @property
    def execution_context(self) -> ExecutionContext:
        return self.environment.execution_context

    def initial_state_json(self) -> Any:
        """Parse the initial state.

        Raises:
            ContractLoadError: If the initial state is not valid JSON
        """
        try:
            return json.loads(self.initial_state)
        except json.JSONDecodeError as e:
            raise ContractLoadError(
                f"Initial state of contract {self.id} is not valid JSON: {e}",
                contract_id=self.id,
            ) from e


def _data_text(tx: Transaction, contract_id: str, what: str) -> str:
    try:
        return tx.get_data(as_string=True)
    except UnicodeDecodeError as e:
        raise ContractLoadError(
            f"{what} of contract {contract_id} is not valid UTF-8 (tx {tx.id})",
            contract_id=contract_id,
            details={"tx_id": tx.id},
        ) from e


def _resolve_initial_state(ledger: LedgerClient, contract_tx: Transaction, contract_id: str) -> str:
    inline = contract_tx.get_tag(TAG_INIT_STATE)
    if inline:
        return inline

    state_tx_id = contract_tx.get_tag(TAG_INIT_STATE_TX)
    if state_tx_id:
        return _data_text(ledger.get_transaction(state_tx_id), contract_id, "Initial state")

    return _data_text(contract_tx, contract_id, "Initial state")


def load_contract(ledger: LedgerClient, contract_id: str) -> ContractRecord:
    """Load a contract and build its execution environment.

    Raises:
        NotFoundError: If the contract, source or state transaction is missing
        ContractLoadError: If the source or initial state cannot be used
    """
    contract_tx = ledger.get_transaction(contract_id)

    source_tx_id = contract_tx.get_tag(TAG_CONTRACT_SRC)
    if not source_tx_id:
        logger.warning(
            f"Contract {contract_id} has no {TAG_CONTRACT_SRC} tag",
            extra={"event": "contract.load_failed", "contract_id": contract_id, "reason": "missing_source_tag"},
        )
        raise ContractLoadError(
            f"Contract {contract_id} has no {TAG_CONTRACT_SRC} tag",
            contract_id=contract_id,
        )

    min_fee = contract_tx.get_tag(TAG_MIN_FEE)
    source = _data_text(ledger.get_transaction(source_tx_id), contract_id, "Source")
    initial_state = _resolve_initial_state(ledger, contract_tx, contract_id)

    owner = address_from_owner(contract_tx.owner) if contract_tx.owner else ""
    environment = create_contract_execution_environment(
        source, contract_id, ledger=ledger, owner=owner
    )

    record = ContractRecord(
        id=contract_id,
        source=source,
        initial_state=initial_state,
        min_fee=min_fee,
        contract_tx=contract_tx,
        environment=environment,
    )
    # An unparseable initial state fails the load
    record.initial_state_json()

    logger.info(
        f"Contract {contract_id} loaded",
        extra={
            "event": "contract.loaded",
            "contract_id": contract_id,
            "source_tx": source_tx_id,
            "min_fee": min_fee,
        },
    )
    return record


class ContractLoader:
    """Loads contracts through a ledger client, caching records by id."""

    def __init__(self, ledger: LedgerClient, cache_enabled: Optional[bool] = None) -> None:
        self.ledger = ledger
        self.cache_enabled = config.CONTRACT_CACHE_ENABLED if cache_enabled is None else cache_enabled
        self._records: Dict[str, ContractRecord] = {}
        self._lock = threading.Lock()

    def load(self, contract_id: str) -> ContractRecord:
        if self.cache_enabled:
            with self._lock:
                cached = self._records.get(contract_id)
            if cached is not None:
                return cached

        record = load_contract(self.ledger, contract_id)

        if self.cache_enabled:
            with self._lock:
                # Another thread may have loaded it meanwhile; keep the first
                record = self._records.setdefault(contract_id, record)
        return record

    def evict(self, contract_id: str) -> None:
        with self._lock:
            self._records.pop(contract_id, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __contains__(self, contract_id: str) -> bool:
        with self._lock:
            return contract_id in self._records
