"""
In-order fold of committed interactions.

A full replay engine (fetching, sorting and caching interactions) lives
outside this package; this is the fold it performs once the interactions are
in hand, and what the determinism checks run against.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional, Tuple

from permaweave.core.constants import TAG_INPUT
from permaweave.core.ledger import BlockInfo
from permaweave.core.tags import unpack_tags
from permaweave.core.transaction import Transaction
from permaweave.core.wallet import address_from_owner
from permaweave.contracts.step import ExecutionResult, execute
from permaweave.sandbox.contract_globals import ActiveTransactionContext
from permaweave.sandbox.environment import ContractEnvironment

logger = logging.getLogger(__name__)


def active_tx_from_mined(tx: Transaction, block: BlockInfo, owner: Optional[str] = None) -> ActiveTransactionContext:
    """Describe a committed interaction as contract code sees it.

    ``owner`` defaults to the address derived from the transaction's owner key.
    """
    if owner is None:
        owner = address_from_owner(tx.owner) if tx.owner else ""
    return ActiveTransactionContext(
        id=tx.id,
        owner=owner,
        target=tx.target,
        tags=unpack_tags(tx),
        reward=tx.reward,
        quantity=tx.quantity,
        block=block,
    )


def interaction_from_tx(tx: Transaction, caller: str) -> Optional[dict]:
    """Decode the ``Input`` tag into the interaction passed to the handler.

    Returns None when the tag is missing or not JSON.
    """
    raw = tx.get_tag(TAG_INPUT)
    if raw is None:
        return None
    try:
        return {"input": json.loads(raw), "caller": caller}
    except json.JSONDecodeError:
        return None


def replay_interactions(
    environment: ContractEnvironment,
    initial_state: Any,
    interactions: Iterable[Tuple[ActiveTransactionContext, Any]],
) -> Tuple[Any, list[ExecutionResult]]:
    """Fold interactions over ``initial_state`` in the order given.

    Each element is ``(active_tx, interaction)``. Rejected and failing
    interactions leave the state unchanged.

    Returns:
        The final state and the result of every interaction
    """
    state = initial_state
    results: list[ExecutionResult] = []
    for active_tx, interaction in interactions:
        result = execute(environment, interaction, state, active_tx)
        if result.ok:
            state = result.state
        results.append(result)

    logger.debug(
        f"Replayed {len(results)} interactions on contract {environment.contract_id}",
        extra={
            "event": "contract.replayed",
            "contract_id": environment.contract_id,
            "count": len(results),
            "rejected": sum(1 for r in results if not r.ok),
        },
    )
    return state, results
