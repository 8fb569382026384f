"""
Unit tests for the contract AST validator.

The validator runs before RestrictedPython compilation and rejects
constructs that are unsafe or nondeterministic in a transition function.
"""

import pytest

from permaweave.core.exceptions import SecurityError
from permaweave.sandbox.ast_validator import ASTValidator, validate_code


class TestAllowedConstructs:
    """Ordinary contract code passes"""

    def test_typical_handler_passes(self, counter_source):
        ASTValidator().validate(counter_source)

    def test_control_flow_and_comprehensions(self):
        code = """
def handle(state, action):
    balances = state["balances"]
    total = 0
    for owner, amount in balances.items():
        total += amount
    rich = [o for o, a in balances.items() if a > 10]
    squares = {o: a * a for o, a in balances.items()}
    label = "big" if total > 100 else "small"
    while total > 1000:
        total = total // 2
    try:
        x = balances["nobody"]
    except KeyError:
        x = 0
    return {"result": [total, rich, squares, label, x, f"{total}"]}
"""
        ASTValidator().validate(code)

    def test_match_statement(self):
        code = """
def handle(state, action):
    match action["input"]["function"]:
        case "a":
            return {"result": 1}
        case _:
            raise ContractError("unknown")
"""
        ASTValidator().validate(code)

    def test_lambda_and_star_args(self):
        code = """
def handle(state, action):
    pick = lambda *xs: max(*xs)
    return {"result": pick(1, 2, 3)}
"""
        ASTValidator().validate(code)


class TestForbiddenConstructs:
    """Constructs rejected with SecurityError"""

    @pytest.mark.parametrize(
        "code",
        [
            "import os",
            "from json import loads",
            "class Token:\n    pass",
            "def f():\n    global x\n    x = 1",
            "def f():\n    yield 1",
            "x = (i for i in range(3))",
            "x = {1, 2}",
            "x = {i for i in range(3)}",
            "async def handle(state, action):\n    return state",
            "with ctx as c:\n    pass",
        ],
    )
    def test_forbidden_nodes(self, code):
        with pytest.raises(SecurityError):
            ASTValidator().validate(code)

    @pytest.mark.parametrize(
        "call",
        ["open('x')", "eval('1')", "exec('1')", "getattr(a, 'b')", "type(a)", "hash('a')", "id(a)", "__import__('os')"],
    )
    def test_dangerous_calls(self, call):
        with pytest.raises(SecurityError) as exc_info:
            ASTValidator().validate(f"x = {call}")
        assert exc_info.value.details["reason"] == "dangerous_function"

    @pytest.mark.parametrize(
        "expr",
        ["SmartWeave._context", "a.__class__", "g.gi_frame", "f.f_globals", "ContractError.mro", "'{}'.format"],
    )
    def test_dangerous_attributes(self, expr):
        with pytest.raises(SecurityError) as exc_info:
            ASTValidator().validate(f"x = {expr}")
        assert exc_info.value.details["reason"] == "dangerous_attribute"

    def test_allowed_functions_override(self):
        ASTValidator(allowed_functions={"hash"}).validate("x = hash('a')")

    def test_error_reports_location(self):
        with pytest.raises(SecurityError) as exc_info:
            validate_code("x = 1\nimport os", filename="<c1>")
        assert exc_info.value.details["line"] == 2
        assert "<c1>" in str(exc_info.value)

    def test_rejection_is_logged(self, caplog):
        with caplog.at_level("ERROR"):
            with pytest.raises(SecurityError):
                validate_code("import os")
        assert any(getattr(r, "event", None) == "sandbox.ast_validation_rejected" for r in caplog.records)

    def test_syntax_error_propagates(self):
        with pytest.raises(SyntaxError):
            validate_code("def handle(:")
