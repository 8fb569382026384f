"""
Interaction step: one handler invocation turned into an ExecutionResult.

This is the only place contract exceptions are caught. A ContractError is the
contract rejecting the interaction; anything else is a fault in the contract
and is reported as an ``exception`` result instead of propagating.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Mapping

from permaweave.sandbox.contract_globals import ActiveTransactionContext, ContractError
from permaweave.sandbox.environment import ContractEnvironment

logger = logging.getLogger(__name__)

RESULT_OK = "ok"
RESULT_ERROR = "error"
RESULT_EXCEPTION = "exception"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a single invocation.

    Attributes:
        type: "ok", "error" (rejected by the contract) or "exception"
        state: state after the invocation; the input state unless ``ok``
        result: value returned by a read, or the error message
    """
    type: str
    state: Any
    result: Any = None

    @property
    def ok(self) -> bool:
        return self.type == RESULT_OK


def execute(
    environment: ContractEnvironment,
    interaction: Mapping[str, Any],
    state: Any,
    active_tx: ActiveTransactionContext,
) -> ExecutionResult:
    """Run one interaction against ``state``.

    The handler receives deep copies of ``state`` and ``interaction``, so
    neither is modified and repeated runs over the same objects agree.
    """
    working_state = copy.deepcopy(state)
    working_interaction = copy.deepcopy(interaction)
    contract_id = environment.contract_id

    try:
        returned = environment.invoke(working_state, working_interaction, active_tx)
    except ContractError as e:
        logger.info(
            f"Interaction {active_tx.id} rejected by contract {contract_id}: {e}",
            extra={
                "event": "interaction.rejected",
                "contract_id": contract_id,
                "tx_id": active_tx.id,
            },
        )
        return ExecutionResult(type=RESULT_ERROR, state=state, result=str(e))
    except Exception as e:
        logger.warning(
            f"Contract {contract_id} raised {type(e).__name__} on {active_tx.id}: {e}",
            extra={
                "event": "interaction.exception",
                "contract_id": contract_id,
                "tx_id": active_tx.id,
                "error_type": type(e).__name__,
            },
        )
        return ExecutionResult(type=RESULT_EXCEPTION, state=state, result=f"{type(e).__name__}: {e}")

    if isinstance(returned, Mapping):
        if "state" in returned:
            return ExecutionResult(type=RESULT_OK, state=returned["state"], result=returned.get("result"))
        if "result" in returned:
            return ExecutionResult(type=RESULT_OK, state=state, result=returned["result"])

    logger.warning(
        f"Contract {contract_id} returned an unexpected result on {active_tx.id}",
        extra={
            "event": "interaction.exception",
            "contract_id": contract_id,
            "tx_id": active_tx.id,
            "error_type": type(returned).__name__,
        },
    )
    return ExecutionResult(type=RESULT_EXCEPTION, state=state, result="Unexpected result from contract")
