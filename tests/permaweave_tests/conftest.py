"""
Shared fixtures: an in-memory ledger, wallets and contract sources.
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from permaweave.core.constants import (
    TAG_CONTRACT_SRC,
    TAG_INIT_STATE,
    TAG_INIT_STATE_TX,
    TAG_MIN_FEE,
)
from permaweave.core.exceptions import NotFoundError
from permaweave.core.ledger import NetworkInfo, PostResponse, TransactionOptions
from permaweave.core.transaction import Transaction
from permaweave.core.wallet import Wallet


COUNTER_SOURCE = '''
def handle(state, action):
    payload = action["input"]
    if payload.get("function") == "get":
        return {"result": state["counter"]}

    amount = payload.get("amount")
    ContractAssert(isinstance(amount, int), "amount must be an integer")
    if amount < 0:
        raise ContractError("amount must not be negative")

    state["counter"] = state["counter"] + amount
    state["last_caller"] = action["caller"]
    return {"state": state}
'''

ECHO_TX_SOURCE = '''
def handle(state, action):
    tx = SmartWeave.transaction
    return {
        "result": {
            "id": tx.id,
            "owner": tx.owner,
            "target": tx.target,
            "quantity": tx.quantity,
            "reward": tx.reward,
            "input_tag": tx.tags["Input"],
            "height": SmartWeave.block.height,
            "block": SmartWeave.block.indep_hash,
            "timestamp": SmartWeave.block.timestamp,
            "contract": SmartWeave.contract.id,
            "caller": action["caller"],
        }
    }
'''


class FakeLedger:
    """In-memory LedgerClient recording every call."""

    def __init__(self, height: int = 1200, current: str = "current-block-hash") -> None:
        self.transactions: Dict[str, Transaction] = {}
        self.posted: List[Transaction] = []
        self.post_status = 200
        self.post_error: Optional[Exception] = None
        self.network = NetworkInfo(height=height, current=current)
        self.calls: List[Tuple[str, Any]] = []

    def add(self, tx: Transaction) -> Transaction:
        self.transactions[tx.id] = tx
        return tx

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def get_transaction(self, tx_id: str) -> Transaction:
        self.calls.append(("get_transaction", tx_id))
        try:
            return self.transactions[tx_id]
        except KeyError:
            raise NotFoundError(f"Transaction {tx_id} not found", transaction_id=tx_id)

    def get_network_info(self) -> NetworkInfo:
        self.calls.append(("get_network_info", None))
        return self.network

    def create_transaction(self, options: TransactionOptions, wallet: Optional[Wallet]) -> Transaction:
        self.calls.append(("create_transaction", options))
        return Transaction(
            last_tx="anchor",
            owner=wallet.owner if wallet is not None else "",
            target=options.target,
            quantity=options.quantity,
            data=options.data,
            reward="1000",
        )

    def sign(self, tx: Transaction, wallet: Wallet) -> None:
        self.calls.append(("sign", tx))
        wallet.sign_transaction(tx)

    def post_transaction(self, tx: Transaction) -> PostResponse:
        self.calls.append(("post_transaction", tx))
        if self.post_error is not None:
            raise self.post_error
        self.posted.append(tx)
        return PostResponse(status=self.post_status, body="OK" if self.post_status == 200 else "rejected")

    def get_address(self, wallet: Wallet) -> str:
        self.calls.append(("get_address", wallet))
        return wallet.address


class FakeStateProvider:
    def __init__(self, states: Optional[Dict[str, Any]] = None) -> None:
        self.states = states or {}
        self.requested: List[str] = []

    def current_state(self, contract_id: str) -> Any:
        self.requested.append(contract_id)
        return self.states[contract_id]


def _signed(wallet: Wallet, data: str, tags: Dict[str, str]) -> Transaction:
    tx = Transaction(last_tx="anchor", data=data)
    for name, value in tags.items():
        tx.add_tag(name, value)
    wallet.sign_transaction(tx)
    return tx


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def wallet():
    return Wallet()


@pytest.fixture
def other_wallet():
    return Wallet()


@pytest.fixture
def deploy(ledger, wallet):
    """Put a contract on the fake ledger and return its id.

    ``state`` goes into the contract transaction's data unless
    ``init_state_tag`` or ``init_state_tx`` supply the initial state.
    """

    def _deploy(
        source: str,
        state: str = '{"counter": 0}',
        init_state_tag: Optional[str] = None,
        init_state_tx: Optional[str] = None,
        min_fee: Optional[str] = None,
        with_source_tag: bool = True,
    ) -> str:
        source_tx = ledger.add(_signed(wallet, source, {"App-Name": "SmartWeaveContractSource"}))

        tags = {"App-Name": "SmartWeaveContract"}
        if with_source_tag:
            tags[TAG_CONTRACT_SRC] = source_tx.id
        if init_state_tag is not None:
            tags[TAG_INIT_STATE] = init_state_tag
        if init_state_tx is not None:
            state_tx = ledger.add(_signed(wallet, init_state_tx, {"Content-Type": "application/json"}))
            tags[TAG_INIT_STATE_TX] = state_tx.id
        if min_fee is not None:
            tags[TAG_MIN_FEE] = min_fee

        contract_tx = ledger.add(_signed(wallet, state, tags))
        ledger.calls.clear()
        return contract_tx.id

    return _deploy


@pytest.fixture
def counter_contract(deploy):
    return deploy(COUNTER_SOURCE)


@pytest.fixture
def echo_contract(deploy):
    return deploy(ECHO_TX_SOURCE, state="{}")


@pytest.fixture
def counter_source():
    return COUNTER_SOURCE


@pytest.fixture
def echo_source():
    return ECHO_TX_SOURCE


@pytest.fixture
def state_provider():
    return FakeStateProvider()
