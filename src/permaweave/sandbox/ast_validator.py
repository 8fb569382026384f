"""
AST Validator for Contract Source

Validates contract source before it is compiled with RestrictedPython.
RestrictedPython rewrites attribute, item and iteration access; this pass
rejects whole constructs that have no place in a deterministic transition
function.

Security properties:
- Rejects all imports (Import, ImportFrom)
- Rejects class definitions, generators and async constructs
- Rejects global/nonlocal scope manipulation
- Rejects set literals and set comprehensions (iteration order of str sets
  depends on the process hash seed)
- Rejects calls to eval/exec/open/getattr and friends
- Rejects frame, code and traceback attributes
- Allowlist-based approach (deny by default)
"""

from __future__ import annotations

import ast
import logging

from permaweave.core.exceptions import SecurityError

logger = logging.getLogger(__name__)


class ASTValidator:
    """
    AST validator for contract source.

    Every node type must be explicitly allowed.
    """

    ALLOWED_NODE_TYPES = {
        # Literals
        'Constant',
        'JoinedStr',
        'FormattedValue',

        # Variables
        'Name',
        'Load',
        'Store',
        'Del',
        'Starred',

        # Expressions
        'Expr',
        'UnaryOp', 'UAdd', 'USub', 'Not', 'Invert',
        'BinOp', 'Add', 'Sub', 'Mult', 'Div', 'FloorDiv', 'Mod', 'Pow',
        'LShift', 'RShift', 'BitOr', 'BitXor', 'BitAnd',
        'BoolOp', 'And', 'Or',
        'Compare', 'Eq', 'NotEq', 'Lt', 'LtE', 'Gt', 'GtE', 'Is', 'IsNot', 'In', 'NotIn',
        'IfExp',

        # Subscripting
        'Subscript',
        'Slice',

        # Attributes (names checked separately)
        'Attribute',

        # Function calls (validated separately for dangerous functions)
        'Call',

        # Collections
        'List',
        'Tuple',
        'Dict',

        # Comprehensions
        'ListComp',
        'DictComp',
        'comprehension',

        # Statements
        'Assign',
        'AugAssign',
        'AnnAssign',
        'Delete',
        'Pass',
        'Break',
        'Continue',
        'Return',

        # Control flow
        'If',
        'For',
        'While',

        # Functions
        'FunctionDef',
        'Lambda',
        'arguments',
        'arg',
        'keyword',

        # Exception handling
        'Try',
        'ExceptHandler',
        'Raise',
        'Assert',

        # Module
        'Module',

        # Match statement (Python 3.10+)
        'Match',
        'match_case',
        'MatchValue',
        'MatchSingleton',
        'MatchSequence',
        'MatchMapping',
        'MatchStar',
        'MatchAs',
        'MatchOr',
    }

    # Explicitly forbidden node types, reported with a clearer reason
    FORBIDDEN_NODE_TYPES = {
        'Import',
        'ImportFrom',
        'Global',
        'Nonlocal',
        'ClassDef',
        'AsyncFunctionDef',
        'AsyncFor',
        'AsyncWith',
        'Await',
        'Yield',
        'YieldFrom',
        'GeneratorExp',
        'Set',
        'SetComp',
        'With',
        'MatchClass',
    }

    DANGEROUS_FUNCTIONS = {
        'open',
        '__import__',
        'eval',
        'exec',
        'compile',
        'input',
        'breakpoint',
        'help',
        'exit',
        'quit',
        'vars',
        'locals',
        'globals',
        'dir',
        'getattr',
        'setattr',
        'delattr',
        'hasattr',
        'type',
        'super',
        'object',
        'memoryview',
        'bytearray',
        'iter',
        'next',
        'hash',
        'id',
    }

    # Attribute names that lead from a value back to frames, code or classes
    DANGEROUS_ATTRIBUTES = {'mro', 'format', 'format_map'}
    DANGEROUS_ATTRIBUTE_PREFIXES = ('_', 'gi_', 'cr_', 'ag_', 'f_', 'tb_', 'co_')

    def __init__(
        self,
        allowed_functions: set[str] | None = None,
        extra_allowed_nodes: set[str] | None = None,
    ):
        """
        Initialize AST validator

        Args:
            allowed_functions: Function names exempted from DANGEROUS_FUNCTIONS
            extra_allowed_nodes: Additional AST node types to allow
        """
        self.allowed_functions = allowed_functions or set()
        self.allowed_nodes = self.ALLOWED_NODE_TYPES.copy()
        if extra_allowed_nodes:
            self.allowed_nodes.update(extra_allowed_nodes)

    def validate(self, code: str | ast.AST, filename: str = '<contract>') -> None:
        """
        Validate contract source (or an already parsed module).

        Raises:
            SecurityError: If code contains forbidden constructs
            SyntaxError: If code has syntax errors
        """
        if isinstance(code, ast.AST):
            tree = code
        else:
            try:
                tree = ast.parse(code, filename=filename, mode='exec')
            except SyntaxError as e:
                logger.warning(
                    f"AST validation: syntax error in {filename}",
                    extra={
                        'event': 'sandbox.ast_validation_failed',
                        'reason': 'syntax_error',
                        'error': str(e),
                    }
                )
                raise

        self._validate_tree(tree, filename)

        logger.debug(
            f"AST validation passed for {filename}",
            extra={'event': 'sandbox.ast_validation_passed', 'code_filename': filename}
        )

    def _validate_tree(self, tree: ast.AST, filename: str) -> None:
        for node in ast.walk(tree):
            node_type = type(node).__name__

            if node_type in self.FORBIDDEN_NODE_TYPES:
                self._reject(node, filename, f"AST node type '{node_type}' is not allowed in contracts",
                             reason='forbidden_node_type', node_type=node_type)

            if node_type not in self.allowed_nodes:
                self._reject(node, filename, f"AST node type '{node_type}' is not allowed in contracts",
                             reason='not_in_allowlist', node_type=node_type)

            if isinstance(node, ast.Call):
                self._validate_call(node, filename)
            elif isinstance(node, ast.Attribute):
                self._validate_attribute(node, filename)

    def _validate_call(self, node: ast.Call, filename: str) -> None:
        func_name = self._get_call_name(node)
        if func_name in self.DANGEROUS_FUNCTIONS and func_name not in self.allowed_functions:
            self._reject(node, filename, f"Function '{func_name}()' is not allowed in contracts",
                         reason='dangerous_function', function=func_name)

    def _validate_attribute(self, node: ast.Attribute, filename: str) -> None:
        name = node.attr
        if name in self.DANGEROUS_ATTRIBUTES or name.startswith(self.DANGEROUS_ATTRIBUTE_PREFIXES):
            self._reject(node, filename, f"Attribute '{name}' is not allowed in contracts",
                         reason='dangerous_attribute', attribute=name)

    @staticmethod
    def _get_call_name(node: ast.Call) -> str | None:
        if isinstance(node.func, ast.Name):
            return node.func.id
        if isinstance(node.func, ast.Attribute):
            return node.func.attr
        return None

    def _reject(self, node: ast.AST, filename: str, what: str, reason: str, **fields) -> None:
        line = getattr(node, 'lineno', 'unknown')
        col = getattr(node, 'col_offset', 'unknown')

        logger.error(
            f"AST validation rejected: {what} at {filename}:{line}:{col}",
            extra={
                'event': 'sandbox.ast_validation_rejected',
                'reason': reason,
                'code_filename': filename,
                'line': line,
                'col': col,
                **fields,
            }
        )

        raise SecurityError(
            f"Security violation in {filename} at line {line}, col {col}: {what}",
            details={'reason': reason, 'line': line, 'col': col, **fields},
        )


def validate_code(
    code: str,
    filename: str = '<contract>',
    allowed_functions: set[str] | None = None
) -> None:
    """
    Convenience function to validate contract source.

    Raises:
        SecurityError: If code contains forbidden constructs
        SyntaxError: If code has syntax errors
    """
    ASTValidator(allowed_functions=allowed_functions).validate(code, filename)
