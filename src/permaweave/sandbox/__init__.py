"""
permaweave Contract Sandbox

Builds isolated execution environments for contract source:
- AST validation before compilation
- RestrictedPython compilation and guarded evaluation
- A per-contract ``SmartWeave`` global with a single active-transaction slot
- Text conversion guards keeping contract output free of host addresses
"""

from .ast_validator import ASTValidator, validate_code
from .contract_globals import (
    ActiveTransactionContext,
    ContractError,
    ContractInfo,
    ExecutionContext,
    SmartWeaveGlobal,
    contract_assert,
)
from .environment import (
    ContractEnvironment,
    create_contract_execution_environment,
    normalize_source,
)
from .formatting import check_printable

__all__ = [
    "ASTValidator",
    "validate_code",
    "ActiveTransactionContext",
    "ContractError",
    "ContractInfo",
    "ExecutionContext",
    "SmartWeaveGlobal",
    "contract_assert",
    "ContractEnvironment",
    "create_contract_execution_environment",
    "normalize_source",
    "check_printable",
]
