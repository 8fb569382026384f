"""
Text conversion guards for contract code.

The default text form of functions, methods and most host objects embeds a
memory address, which differs between processes. Every path that turns a
value into text inside a contract (``str``, ``repr``, f-strings, ``%``
formatting and ``print``) goes through ``check_printable`` first, so the
text a contract can compute depends only on the values it holds.
"""

from __future__ import annotations

from decimal import Decimal
from types import MappingProxyType
from typing import Any

from RestrictedPython.PrintCollector import PrintCollector

from permaweave.core.ledger import BlockInfo
from permaweave.sandbox.contract_globals import (
    ActiveTransactionContext,
    ContractInfo,
    SmartWeaveGlobal,
)

_SCALARS = (type(None), bool, int, float, complex, str, bytes, Decimal, range)

# Host objects with a fixed, address-free repr
_HOST_TYPES = (ActiveTransactionContext, BlockInfo, ContractInfo, SmartWeaveGlobal)

_DICT_VIEWS = (type({}.keys()), type({}.values()), type({}.items()))

_CONVERSIONS = {ord('s'): str, ord('r'): repr, ord('a'): ascii}


def check_printable(value: Any) -> None:
    """Reject values whose text form is not stable across processes.

    Containers are walked; cycles are followed once.

    Raises:
        TypeError: If ``value`` holds a function, method, class or other
            object without a deterministic text form
    """
    pending = [value]
    seen: set[int] = set()
    while pending:
        item = pending.pop()
        if isinstance(item, _SCALARS) or isinstance(item, _HOST_TYPES):
            continue
        marker = id(item)
        if marker in seen:
            continue
        seen.add(marker)
        if isinstance(item, (dict, MappingProxyType)):
            pending.extend(item.keys())
            pending.extend(item.values())
        elif isinstance(item, (list, tuple) + _DICT_VIEWS):
            pending.extend(item)
        elif isinstance(item, BaseException):
            pending.extend(item.args)
        else:
            raise TypeError(f"'{type(item).__name__}' objects cannot be converted to text in contract code")


def guarded_repr(value: Any) -> str:
    check_printable(value)
    return repr(value)


class _GuardedStrType(type):
    """Makes ``guarded_str`` stand in for ``str`` in checks and lookups."""

    def __instancecheck__(cls, instance: Any) -> bool:
        return isinstance(instance, str)

    def __subclasscheck__(cls, subclass: type) -> bool:
        return issubclass(subclass, str)

    def __getattr__(cls, name: str) -> Any:
        return getattr(str, name)

    def __repr__(cls) -> str:
        return "<class 'str'>"


class guarded_str(metaclass=_GuardedStrType):
    """``str`` as bound in contract scope.

    Calls return real ``str`` objects; ``isinstance(x, str)`` and unbound
    methods such as ``str.lower`` behave as with the builtin.
    """

    def __new__(cls, *args: Any, **kwargs: Any) -> str:  # type: ignore[misc]
        if len(args) == 1 and not kwargs:
            check_printable(args[0])
        return str(*args, **kwargs)


def guarded_format_value(value: Any, conversion: int) -> Any:
    """Stands in for the value of an f-string replacement field.

    Applies the field's ``!s``/``!r``/``!a`` conversion itself so the format
    spec is applied to the converted text, as without the guard.
    """
    check_printable(value)
    convert = _CONVERSIONS.get(conversion)
    return convert(value) if convert else value


def guarded_mod(left: Any, right: Any) -> Any:
    """``left % right``, checking the arguments of printf-style formatting."""
    if isinstance(left, (str, bytes)):
        check_printable(right)
    return left % right


class GuardedPrintCollector(PrintCollector):
    """``print`` target for contract code."""

    def _call_print(self, *objects: Any, **kwargs: Any) -> None:
        for obj in objects:
            check_printable(obj)
        super()._call_print(*objects, **kwargs)
