"""
permaweave Contracts

Loading contracts from the ledger, building interaction transactions and
running them through the sandbox:
- ContractLoader / load_contract: source, initial state and environment
- create_interaction_tx: tagged, signed interaction transactions
- InteractionExecutor: write, dry-run and read flows
- replay_interactions: in-order fold of committed interactions
"""

from .interact import InteractionExecutor, SubmissionResult
from .interaction_tx import create_interaction_tx, encode_input, is_truthy_input
from .loader import ContractLoader, ContractRecord, load_contract
from .replay import active_tx_from_mined, interaction_from_tx, replay_interactions
from .step import ExecutionResult, execute

__all__ = [
    "InteractionExecutor",
    "SubmissionResult",
    "create_interaction_tx",
    "encode_input",
    "is_truthy_input",
    "ContractLoader",
    "ContractRecord",
    "load_contract",
    "active_tx_from_mined",
    "interaction_from_tx",
    "replay_interactions",
    "ExecutionResult",
    "execute",
]
