"""
Interaction executor: write, dry-run and read flows.

Every flow builds the same interaction transaction a real write would post,
so the handler sees identical input whether or not anything is committed.
Only ``write`` ever submits to the ledger.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from permaweave.core.constants import TAG_INPUT
from permaweave.core.exceptions import (
    ConfigurationError,
    InteractionRejectedError,
    NetworkError,
)
from permaweave.core.ledger import BlockInfo, LedgerClient, StateProvider
from permaweave.core.tags import unpack_tags
from permaweave.core.transaction import Transaction
from permaweave.contracts.interaction_tx import TagLike, create_interaction_tx, encode_input
from permaweave.contracts.loader import ContractLoader, ContractRecord
from permaweave.contracts.step import ExecutionResult, execute
from permaweave.sandbox.contract_globals import ActiveTransactionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of posting an interaction.

    Attributes:
        success: the gateway accepted the transaction (status 200 or 208)
        transaction_id: id of the interaction transaction
        status: HTTP status, None when the gateway was unreachable
        reason: why the submission failed
    """
    success: bool
    transaction_id: str
    status: Optional[int] = None
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success


def _tx_input(tx: Transaction) -> Any:
    """The input as a reader replaying ``tx`` decodes it from the ``Input`` tag."""
    return json.loads(tx.get_tag(TAG_INPUT))


class InteractionExecutor:
    """Runs interactions against contracts on one ledger.

    Args:
        ledger: Ledger client
        state_provider: Source of current contract state when a flow is not
            given one explicitly
        loader: Contract loader (a caching one over ``ledger`` by default)
    """

    def __init__(
        self,
        ledger: LedgerClient,
        state_provider: Optional[StateProvider] = None,
        loader: Optional[ContractLoader] = None,
    ) -> None:
        self.ledger = ledger
        self.state_provider = state_provider
        self.loader = loader or ContractLoader(ledger)

    # ==================== Flows ====================

    def write(
        self,
        wallet: Any,
        contract_id: str,
        input: Any,
        tags: Iterable[TagLike] = (),
        target: str = "",
        quantity: str = "",
    ) -> SubmissionResult:
        """Build, sign and post an interaction.

        The contract is not loaded and no state is needed. A submission the
        gateway does not accept is reported in the result, not raised.
        """
        tx = create_interaction_tx(self.ledger, wallet, contract_id, input, tags, target, quantity)

        try:
            response = self.ledger.post_transaction(tx)
        except NetworkError as e:
            logger.warning(
                f"Interaction {tx.id} for contract {contract_id} could not be posted: {e}",
                extra={"event": "interaction.submit_failed", "contract_id": contract_id, "tx_id": tx.id},
            )
            return SubmissionResult(success=False, transaction_id=tx.id, reason=str(e))

        if not response.accepted:
            logger.warning(
                f"Interaction {tx.id} for contract {contract_id} rejected with status {response.status}",
                extra={
                    "event": "interaction.submit_failed",
                    "contract_id": contract_id,
                    "tx_id": tx.id,
                    "status": response.status,
                },
            )
            return SubmissionResult(
                success=False,
                transaction_id=tx.id,
                status=response.status,
                reason=f"Gateway answered {response.status}: {response.body!r}",
            )

        logger.info(
            f"Interaction {tx.id} submitted to contract {contract_id}",
            extra={
                "event": "interaction.submitted",
                "contract_id": contract_id,
                "tx_id": tx.id,
                "status": response.status,
            },
        )
        return SubmissionResult(success=True, transaction_id=tx.id, status=response.status)

    def write_dry_run(
        self,
        wallet: Any,
        contract_id: str,
        input: Any,
        tags: Iterable[TagLike] = (),
        target: str = "",
        quantity: str = "",
        state: Any = None,
        caller: Optional[str] = None,
        record: Optional[ContractRecord] = None,
    ) -> ExecutionResult:
        """Evaluate an interaction as ``write`` would build it, without posting.

        ``state``, ``caller`` and ``record`` default to the current state, the
        wallet's address and the loaded contract.
        """
        encode_input(contract_id, input)
        record = record or self.loader.load(contract_id)
        state = self._resolve_state(contract_id, state)
        if caller is None:
            caller = self.ledger.get_address(wallet)

        tx = create_interaction_tx(self.ledger, wallet, contract_id, input, tags, target, quantity)
        return self._simulate(record, state, tx, caller, _tx_input(tx))

    def write_dry_run_custom(
        self,
        tx: Transaction,
        contract_id: str,
        input: Any,
        caller: str,
        state: Any = None,
        record: Optional[ContractRecord] = None,
    ) -> ExecutionResult:
        """Evaluate an interaction using a transaction the caller built and signed.

        ``input`` reaches the handler as its JSON encoding decodes, the same
        shape a replay of a committed write would see.
        """
        wire_input = json.loads(encode_input(contract_id, input))
        record = record or self.loader.load(contract_id)
        state = self._resolve_state(contract_id, state)
        return self._simulate(record, state, tx, caller, wire_input)

    def read(
        self,
        wallet: Any,
        contract_id: str,
        input: Any,
        tags: Iterable[TagLike] = (),
        target: str = "",
        quantity: str = "",
        state: Any = None,
        record: Optional[ContractRecord] = None,
    ) -> Any:
        """Evaluate a read-only interaction and return its result.

        ``wallet`` may be None, in which case the caller is "" and the
        interaction transaction is left unsigned.

        Raises:
            InteractionRejectedError: If the contract does not return a result
        """
        encode_input(contract_id, input)
        record = record or self.loader.load(contract_id)
        state = self._resolve_state(contract_id, state)
        caller = self.ledger.get_address(wallet) if wallet is not None else ""

        tx = create_interaction_tx(
            self.ledger, wallet, contract_id, input, tags, target, quantity,
            sign=wallet is not None,
        )
        result = self._simulate(record, state, tx, caller, _tx_input(tx))
        if not result.ok:
            raise InteractionRejectedError(
                f"Read of contract {contract_id} failed ({result.type}): {result.result}",
                result=result,
                details={"contract_id": contract_id, "type": result.type},
            )
        return result.result

    # ==================== Helpers ====================

    def _resolve_state(self, contract_id: str, state: Any) -> Any:
        if state is not None:
            return state
        if self.state_provider is None:
            raise ConfigurationError(
                f"No state given for contract {contract_id} and no state provider configured"
            )
        return self.state_provider.current_state(contract_id)

    def _simulate(
        self,
        record: ContractRecord,
        state: Any,
        tx: Transaction,
        caller: str,
        input: Any,
    ) -> ExecutionResult:
        network = self.ledger.get_network_info()
        active_tx = ActiveTransactionContext(
            id=tx.id,
            owner=caller,
            target=tx.target,
            tags=unpack_tags(tx),
            reward=tx.reward,
            quantity=tx.quantity,
            block=BlockInfo(height=network.height, indep_hash=network.current, timestamp=None),
        )
        interaction = {"input": input, "caller": caller}
        return execute(record.environment, interaction, state, active_tx)
