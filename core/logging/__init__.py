# Structured logging with multi-channel support
from typing import Optional

import structlog

from core.config.settings import Settings
from .enhanced_logging import (
    configure_enhanced_logging,
    get_enhanced_logger,
    get_trading_logger,
    get_api_logger,
    get_audit_logger,
    get_database_logger,
    get_error_logger,
)

# Global flag to prevent duplicate logging configuration
_logging_configured = False


def configure_logging(settings: Settings) -> None:
    """Configure the logging system once per process."""
    global _logging_configured

    if _logging_configured:
        return

    configure_enhanced_logging(settings)
    _logging_configured = True


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return get_enhanced_logger(name, component)


# Channel-specific logger functions
def get_trading_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a trading logger safely."""
    return get_trading_logger(name)


def get_api_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an API logger safely."""
    return get_api_logger(name)


def get_audit_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an audit logger safely."""
    return get_audit_logger(name)


def get_database_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a database logger safely."""
    return get_database_logger(name)


def get_error_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an error logger safely."""
    return get_error_logger(name)


__all__ = [
    "configure_logging",
    "get_logger",
    "get_trading_logger_safe",
    "get_api_logger_safe",
    "get_audit_logger_safe",
    "get_database_logger_safe",
    "get_error_logger_safe",
]
