"""
Configuration validation at application startup.

Validates that critical configuration values and reference data are in place
before the API starts accepting orders, providing clear error messages for
anything missing or invalid.
"""

import logging
from pathlib import Path
from typing import List, Dict, Any
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from core.database.connection import DatabaseManager
from core.database.models import Instrument
from .settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a configuration validation check"""
    is_valid: bool
    component: str
    message: str
    severity: str = "error"  # "error", "warning", "info"


class ConfigurationValidator:
    """
    Startup configuration validator.

    Besides plain settings checks, verifies that the cash-equivalent
    instrument exists: without it every filled trade would fail settlement.
    """

    def __init__(self, settings: Settings, db_manager: DatabaseManager):
        self.settings = settings
        self.db_manager = db_manager
        self.validation_results: List[ValidationResult] = []

    async def validate_all(self) -> bool:
        """
        Run all validation checks.

        Returns:
            bool: True if all critical validations pass
        """
        logger.info("Starting configuration validation...")
        self.validation_results = []

        self._validate_logging_settings()
        self._validate_ledger_settings()
        if await self._validate_database_connection():
            await self._validate_cash_instrument()

        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        if errors:
            logger.error(f"Configuration validation failed: {len(errors)} errors, {len(warnings)} warnings")
            for result in errors:
                logger.error(f"   ERROR [{result.component}]: {result.message}")

        for result in warnings:
            logger.warning(f"   WARNING [{result.component}]: {result.message}")

        if not errors and not warnings:
            logger.info("All configuration validation checks passed")
        elif not errors:
            logger.info(f"Configuration validation passed with {len(warnings)} warnings")

        return len(errors) == 0

    def _validate_logging_settings(self):
        """Validate logging configuration"""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.settings.logging.level.upper() not in valid_levels:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Logging",
                message=f"Invalid log level '{self.settings.logging.level}'. Valid: {sorted(valid_levels)}",
                severity="error"
            ))

        if self.settings.logging.file_enabled:
            logs_dir = Path(self.settings.logs_dir)
            if not logs_dir.parent.exists():
                self.validation_results.append(ValidationResult(
                    is_valid=False,
                    component="File System",
                    message=f"Parent directory for logs does not exist: {logs_dir.parent}",
                    severity="error"
                ))

    def _validate_ledger_settings(self):
        """Validate ledger configuration"""
        if not self.settings.ledger.cash_instrument_kind.strip():
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Ledger",
                message="cash_instrument_kind must not be empty",
                severity="error"
            ))

        if self.settings.ledger.valuation_price_source == "first_position":
            self.validation_results.append(ValidationResult(
                is_valid=True,
                component="Ledger",
                message="Valuation uses the first position's latest close for every position",
                severity="warning"
            ))

    async def _validate_database_connection(self) -> bool:
        """Validate database connection"""
        if await self.db_manager.verify_connection():
            self.validation_results.append(ValidationResult(
                is_valid=True,
                component="Database",
                message="Database connection successful",
                severity="info"
            ))
            return True

        self.validation_results.append(ValidationResult(
            is_valid=False,
            component="Database",
            message="Cannot connect to database",
            severity="error"
        ))
        return False

    async def _validate_cash_instrument(self):
        """Validate that the cash-equivalent instrument is present"""
        kind = self.settings.ledger.cash_instrument_kind
        try:
            async with self.db_manager.get_session() as session:
                result = await session.execute(
                    select(Instrument.id).where(Instrument.kind == kind).limit(1)
                )
                instrument_id = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Ledger",
                message=f"Cannot look up cash instrument: {e}",
                severity="error"
            ))
            return

        if instrument_id is None:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Ledger",
                message=f"No instrument of kind '{kind}' found; filled trades cannot be settled",
                severity="error"
            ))

    def get_validation_summary(self) -> Dict[str, Any]:
        """Get a summary of validation results"""
        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        return {
            "total_checks": len(self.validation_results),
            "errors": len(errors),
            "warnings": len(warnings),
            "is_valid": len(errors) == 0,
            "error_details": [{"component": r.component, "message": r.message} for r in errors],
            "warning_details": [{"component": r.component, "message": r.message} for r in warnings]
        }


async def validate_startup_configuration(settings: Settings, db_manager: DatabaseManager) -> bool:
    """
    Convenience function to run startup configuration validation.

    Args:
        settings: Application settings to validate
        db_manager: Database manager used for connectivity and reference data checks

    Returns:
        bool: True if validation passes (no critical errors)
    """
    validator = ConfigurationValidator(settings, db_manager)
    return await validator.validate_all()
