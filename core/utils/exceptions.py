# Structured exception hierarchy for the trade ledger

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class TradeLedgerException(Exception):
    """Base exception for all trade ledger specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 correlation_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.correlation_id = correlation_id
        self.timestamp = datetime.now(timezone.utc)


# Lookup Errors
class NotFoundError(TradeLedgerException):
    """User, instrument or order id does not resolve"""

    def __init__(self, entity: str, entity_id: Any, **kwargs):
        super().__init__(f"{entity} with ID {entity_id} not found", **kwargs)
        self.entity = entity
        self.entity_id = entity_id


# Order Management Errors
class InvalidTransitionError(TradeLedgerException):
    """Order status change not allowed from the current status"""

    def __init__(self, current_status: str, order_id: Optional[int] = None, **kwargs):
        super().__init__(f"Cannot cancel order with status {current_status}", **kwargs)
        self.current_status = current_status
        self.order_id = order_id


class OrderValidationError(TradeLedgerException):
    """Malformed or inconsistent order input"""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None,
                 details: Optional[Dict[str, Any]] = None, **kwargs):
        details = dict(details or {})
        if field is not None:
            details.setdefault("field", field)
        super().__init__(message, details=details, **kwargs)
        self.field = field
        self.value = value


# Configuration Errors
class SettlementGapError(TradeLedgerException):
    """No cash-equivalent instrument exists to settle a filled trade"""

    def __init__(self, cash_instrument_kind: str, **kwargs):
        super().__init__(
            f"No instrument of kind {cash_instrument_kind} configured; filled trades cannot be settled",
            **kwargs
        )
        self.cash_instrument_kind = cash_instrument_kind


def create_error_context(error: Exception, operation: str,
                         additional_context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Create structured error context for logging

    Args:
        error: The exception that occurred
        operation: The operation that failed
        additional_context: Additional context information

    Returns:
        Structured error context dictionary
    """
    context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "operation": operation,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if isinstance(error, TradeLedgerException):
        if error.correlation_id:
            context["correlation_id"] = error.correlation_id
        if error.details:
            context["error_details"] = error.details

        if isinstance(error, NotFoundError):
            context["entity"] = error.entity
            context["entity_id"] = error.entity_id

        if isinstance(error, InvalidTransitionError):
            context["current_status"] = error.current_status

    if additional_context:
        context.update(additional_context)

    return context
