"""
Correlation ID support for request tracking and log correlation.
"""

import uuid
import contextvars
from typing import Optional, Dict, Any

# Context variable to store correlation ID for the current request/operation
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)

# Context variable to store additional correlation context
_correlation_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    'correlation_context', default={}
)


class CorrelationIdManager:
    """Manager for correlation ID lifecycle and context propagation"""

    @staticmethod
    def generate_correlation_id() -> str:
        """Generate a new correlation ID using UUID4."""
        return str(uuid.uuid4())

    @staticmethod
    def set_correlation_id(correlation_id: str) -> str:
        """Set the correlation ID for the current context."""
        _correlation_id.set(correlation_id)
        return correlation_id

    @staticmethod
    def get_correlation_id() -> Optional[str]:
        """Get the current correlation ID, or None if not set."""
        return _correlation_id.get()

    @staticmethod
    def ensure_correlation_id() -> str:
        """
        Ensure a correlation ID exists, generating one if needed.

        Returns:
            Current or newly generated correlation ID
        """
        current_id = _correlation_id.get()
        if current_id is None:
            current_id = CorrelationIdManager.generate_correlation_id()
            _correlation_id.set(current_id)
        return current_id

    @staticmethod
    def set_correlation_context(**kwargs) -> Dict[str, Any]:
        """
        Set additional correlation context data.

        Args:
            **kwargs: Key-value pairs to add to correlation context

        Returns:
            Updated correlation context
        """
        current_context = _correlation_context.get().copy()
        current_context.update(kwargs)
        _correlation_context.set(current_context)
        return current_context

    @staticmethod
    def get_correlation_context() -> Dict[str, Any]:
        """Get a copy of the current correlation context."""
        return _correlation_context.get().copy()

    @staticmethod
    def clear_correlation() -> None:
        """Clear correlation ID and context from current context"""
        _correlation_id.set(None)
        _correlation_context.set({})
