"""
Contract execution environment.

Turns contract source text into a transition handler bound to its own
``SmartWeave`` global. Building goes through four steps:

1. Normalize: ``async def`` functions become plain functions and ``await``
   expressions are unwrapped, so ``handle`` is always a plain callable
2. Validate the AST (see ``ast_validator``)
3. Compile with RestrictedPython (``ContractPolicy`` adds the text formatting
   guards) and evaluate the module body in a scope holding only the contract
   bindings and restricted builtins
4. Pick up ``handle`` as the handler

Any failure while building raises ContractLoadError; a partially built
environment is never returned.
"""

from __future__ import annotations

import ast
import builtins
import logging
import operator
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional

from RestrictedPython import compile_restricted_exec
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)
from RestrictedPython.transformer import RestrictingNodeTransformer

from permaweave.core import config
from permaweave.core.constants import CONTRACT_ENTRY_POINT, CONTRACT_GLOBAL_NAME
from permaweave.core.exceptions import ContractLoadError, SecurityError
from permaweave.sandbox.ast_validator import ASTValidator
from permaweave.sandbox.contract_globals import (
    ActiveTransactionContext,
    ContractError,
    ExecutionContext,
    build_utils,
    contract_assert,
)
from permaweave.sandbox.formatting import (
    GuardedPrintCollector,
    guarded_format_value,
    guarded_mod,
    guarded_repr,
    guarded_str,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any, Any], Any]

_MISSING = object()

SAFE_BUILTINS = {
    'abs', 'all', 'any', 'bool', 'callable', 'chr', 'dict', 'divmod',
    'enumerate', 'filter', 'float', 'int', 'isinstance', 'len', 'list',
    'map', 'max', 'min', 'ord', 'pow', 'range', 'repr', 'reversed',
    'round', 'slice', 'sorted', 'str', 'sum', 'tuple', 'zip',
}

SAFE_EXCEPTIONS = {
    'Exception', 'ArithmeticError', 'AssertionError', 'AttributeError',
    'IndexError', 'KeyError', 'LookupError', 'TypeError', 'ValueError',
    'ZeroDivisionError',
}

_INPLACE_OPERATORS = {
    '+=': operator.iadd,
    '-=': operator.isub,
    '*=': operator.imul,
    '/=': operator.itruediv,
    '//=': operator.ifloordiv,
    '%=': guarded_mod,
    '**=': operator.ipow,
    '<<=': operator.ilshift,
    '>>=': operator.irshift,
    '&=': operator.iand,
    '|=': operator.ior,
    '^=': operator.ixor,
}


class _AsyncToSync(ast.NodeTransformer):
    """Rewrite ``async def`` to ``def`` and ``await x`` to ``x``."""

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> ast.FunctionDef:
        self.generic_visit(node)
        sync = ast.FunctionDef(
            name=node.name,
            args=node.args,
            body=node.body,
            decorator_list=node.decorator_list,
            returns=node.returns,
            type_comment=node.type_comment,
        )
        if hasattr(node, 'type_params'):
            sync.type_params = node.type_params
        return ast.copy_location(sync, node)

    def visit_Await(self, node: ast.Await) -> ast.AST:
        self.generic_visit(node)
        return node.value


def normalize_source(source: str, filename: str = '<contract>') -> ast.Module:
    """Parse contract source and normalize its declaration form.

    Raises:
        SyntaxError: If the source does not parse
    """
    tree = ast.parse(source, filename=filename, mode='exec')
    tree = _AsyncToSync().visit(tree)
    return ast.fix_missing_locations(tree)


class ContractPolicy(RestrictingNodeTransformer):
    """RestrictedPython policy that also guards text formatting.

    f-string replacement fields become ``_format_value_(value, conversion)``
    and ``a % b`` becomes ``_format_mod_(a, b)``.
    """

    def _guard_call(self, name: str, args: list[ast.expr], node: ast.AST) -> ast.Call:
        call = ast.Call(func=ast.Name(id=name, ctx=ast.Load()), args=args, keywords=[])
        ast.copy_location(call, node)
        return ast.fix_missing_locations(call)

    def visit_FormattedValue(self, node: ast.FormattedValue) -> ast.AST:
        node = self.node_contents_visit(node)
        node.value = self._guard_call(
            '_format_value_', [node.value, ast.Constant(value=node.conversion)], node.value
        )
        node.conversion = -1
        return node

    def visit_BinOp(self, node: ast.BinOp) -> ast.AST:
        node = self.node_contents_visit(node)
        if isinstance(node.op, ast.Mod):
            return self._guard_call('_format_mod_', [node.left, node.right], node)
        return node


def _guarded_getattr(obj: Any, name: str) -> Any:
    if name in ASTValidator.DANGEROUS_ATTRIBUTES or name.startswith(
        ASTValidator.DANGEROUS_ATTRIBUTE_PREFIXES
    ):
        raise AttributeError(f"Attribute '{name}' is not accessible from contract code")
    value = safer_getattr(obj, name, _MISSING)
    if value is _MISSING:
        raise AttributeError(f"'{type(obj).__name__}' object has no attribute '{name}'")
    return value


def _guarded_getitem(obj: Any, key: Any) -> Any:
    return obj[key]


def _guarded_inplacevar(op: str, target: Any, value: Any) -> Any:
    func = _INPLACE_OPERATORS.get(op)
    if func is None:
        raise TypeError(f"Unsupported in-place operator {op!r}")
    return func(target, value)


def _guarded_apply(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


def _create_safe_builtins() -> dict[str, Any]:
    """Builtins visible to contract code."""
    safe = {name: getattr(builtins, name) for name in SAFE_BUILTINS | SAFE_EXCEPTIONS}
    safe['str'] = guarded_str
    safe['repr'] = guarded_repr
    safe['True'] = True
    safe['False'] = False
    safe['None'] = None
    return safe


@dataclass
class ContractEnvironment:
    """A built contract: its handler and the context it is bound to."""
    contract_id: str
    handler: Handler
    execution_context: ExecutionContext

    def invoke(self, state: Any, interaction: Any, active_tx: ActiveTransactionContext) -> Any:
        """Call the handler with ``active_tx`` installed as the active transaction.

        Exceptions from the handler propagate; the slot is cleared either way.
        """
        with self.execution_context.activate(active_tx):
            return self.handler(state, interaction)


def _fail(contract_id: str, message: str, reason: str, exc: Optional[BaseException] = None) -> ContractLoadError:
    logger.warning(
        f"Contract {contract_id} failed to build: {message}",
        extra={
            'event': 'sandbox.build_failed',
            'contract_id': contract_id,
            'reason': reason,
        }
    )
    return ContractLoadError(
        f"Contract {contract_id} failed to build: {message}",
        contract_id=contract_id,
        details={'reason': reason, 'error_type': type(exc).__name__ if exc else None},
    )


def create_contract_execution_environment(
    source: str,
    contract_id: str,
    ledger: Any = None,
    utilities: Optional[bool] = None,
    owner: str = "",
) -> ContractEnvironment:
    """Build the execution environment for a contract's source.

    Args:
        source: Contract source text declaring ``handle(state, action)``
        contract_id: Id of the contract the source belongs to
        ledger: Ledger client kept on the host side of the context
        utilities: Bind the ``utils`` helper namespace (default from config)
        owner: Address of the contract's creator

    Returns:
        ContractEnvironment whose handler is bound to a fresh ExecutionContext

    Raises:
        ContractLoadError: If the source cannot be turned into a handler
    """
    filename = f'<contract {contract_id}>'
    if utilities is None:
        utilities = config.SANDBOX_UTILS_ENABLED

    try:
        tree = normalize_source(source, filename)
        ASTValidator().validate(tree, filename)
    except SyntaxError as e:
        raise _fail(contract_id, f"syntax error: {e}", 'syntax_error', e) from e
    except SecurityError as e:
        raise _fail(contract_id, e.message, 'security_violation', e) from e

    compile_result = compile_restricted_exec(tree, filename=filename, policy=ContractPolicy)
    if compile_result.errors or compile_result.code is None:
        raise _fail(
            contract_id,
            f"compilation errors: {'; '.join(compile_result.errors)}",
            'compile_error',
        )

    context = ExecutionContext(contract_id, owner=owner, ledger=ledger)
    scope: dict[str, Any] = {
        '__builtins__': _create_safe_builtins(),
        '__name__': 'contract',
        '_getattr_': _guarded_getattr,
        '_getitem_': _guarded_getitem,
        '_write_': full_write_guard,
        '_getiter_': iter,
        '_iter_unpack_sequence_': guarded_iter_unpack_sequence,
        '_unpack_sequence_': guarded_unpack_sequence,
        '_inplacevar_': _guarded_inplacevar,
        '_apply_': _guarded_apply,
        '_print_': GuardedPrintCollector,
        '_format_value_': guarded_format_value,
        '_format_mod_': guarded_mod,
        CONTRACT_GLOBAL_NAME: context.smartweave,
        'Decimal': Decimal,
        'ContractError': ContractError,
        'ContractAssert': contract_assert,
    }
    if utilities:
        scope['utils'] = build_utils()

    try:
        exec(compile_result.code, scope)
    except Exception as e:
        raise _fail(contract_id, f"{type(e).__name__}: {e}", 'evaluation_error', e) from e

    handler = scope.get(CONTRACT_ENTRY_POINT)
    if not callable(handler):
        raise _fail(contract_id, f"source does not define a callable '{CONTRACT_ENTRY_POINT}'", 'missing_handler')

    logger.info(
        f"Contract {contract_id} built",
        extra={'event': 'sandbox.built', 'contract_id': contract_id, 'utilities': bool(utilities)}
    )
    return ContractEnvironment(contract_id=contract_id, handler=handler, execution_context=context)
