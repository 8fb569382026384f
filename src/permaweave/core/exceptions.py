"""
Exception hierarchy for permaweave.

Provides typed exceptions for contract loading, interaction construction and
ledger access so callers can tell a rejected interaction from a broken
contract from an unreachable gateway.
"""

from __future__ import annotations
from typing import Optional, Any, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from permaweave.contracts.step import ExecutionResult


class WeaveError(Exception):
    """Base exception for all permaweave errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(WeaveError):
    """Raised when caller-supplied data fails validation."""
    pass


class InvalidInputError(ValidationError):
    """Raised when an interaction input is not a truthy JSON value.

    This is a construction-time error: no transaction is created.
    """
    pass


class InvalidQuantityError(ValidationError):
    """Raised when a fee-unit amount cannot be parsed."""
    pass


# ==================== Ledger Errors ====================


class NotFoundError(WeaveError):
    """Raised when a transaction cannot be fetched from the ledger."""

    def __init__(
        self,
        message: str,
        transaction_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.transaction_id = transaction_id


class NetworkError(WeaveError):
    """Raised when the ledger gateway cannot be reached."""
    recoverable = True


class GatewayTimeoutError(NetworkError):
    """Raised when a gateway request times out."""
    pass


class RateLimitError(NetworkError):
    """Raised when the gateway rate-limits the client."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class GatewayError(WeaveError):
    """Raised when the gateway answers with an unexpected error status."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status = status


# ==================== Contract Errors ====================


class ContractLoadError(WeaveError):
    """Raised when a contract's source or initial state is unreachable or unparseable.

    Fatal to that load: no partially built handler is ever returned.
    """

    def __init__(
        self,
        message: str,
        contract_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.contract_id = contract_id


class InteractionRejectedError(WeaveError):
    """Raised by the read flow when the contract rejects the interaction.

    The full execution result is kept on ``result``.
    """

    def __init__(self, message: str, result: "ExecutionResult", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.result = result


class SecurityError(WeaveError):
    """Raised when contract source fails sandbox validation."""
    pass


# ==================== Configuration Errors ====================


class ConfigurationError(WeaveError):
    """Raised when configuration is missing or invalid."""
    pass


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a recoverable error.

    Args:
        exc: The exception to check

    Returns:
        True if the operation can be retried
    """
    if isinstance(exc, WeaveError):
        return exc.recoverable
    return isinstance(exc, (ConnectionError, TimeoutError))


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context: Dict[str, Any] = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, WeaveError):
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, NotFoundError) and exc.transaction_id:
        context["transaction_id"] = exc.transaction_id

    if isinstance(exc, ContractLoadError) and exc.contract_id:
        context["contract_id"] = exc.contract_id

    if isinstance(exc, GatewayError) and exc.status is not None:
        context["status"] = exc.status

    return context
