"""
Logging channel definitions and configuration for the trade ledger.
Provides multi-channel logging with dedicated files for different components.
"""

from enum import Enum
from typing import Dict
from pathlib import Path
from dataclasses import dataclass


class LogChannel(str, Enum):
    """Logging channels for different components."""

    APPLICATION = "application"  # General application logs
    TRADING = "trading"          # Order processing and valuation
    DATABASE = "database"        # Database operations
    API = "api"                  # API requests/responses
    AUDIT = "audit"              # Order audit trail
    ERROR = "error"              # Error logs


@dataclass
class ChannelConfig:
    """Configuration for a logging channel."""

    name: str
    filename: str
    level: str = "INFO"
    max_bytes: str = "50MB"
    backup_count: int = 5

    def get_file_path(self, logs_dir: str) -> Path:
        """Get the full file path for this channel."""
        return Path(logs_dir) / self.filename


# Channel configurations
CHANNEL_CONFIGS: Dict[LogChannel, ChannelConfig] = {
    LogChannel.APPLICATION: ChannelConfig(
        name="application",
        filename="application.log",
        level="INFO",
        max_bytes="100MB",
        backup_count=10,
    ),
    LogChannel.TRADING: ChannelConfig(
        name="trading",
        filename="trading.log",
        level="INFO",
        max_bytes="50MB",
        backup_count=20,
    ),
    LogChannel.DATABASE: ChannelConfig(
        name="database",
        filename="database.log",
        level="WARNING",    # Only warnings and errors
        max_bytes="50MB",
        backup_count=5,
    ),
    LogChannel.API: ChannelConfig(
        name="api",
        filename="api.log",
        level="INFO",
        max_bytes="50MB",
        backup_count=10,
    ),
    LogChannel.AUDIT: ChannelConfig(
        name="audit",
        filename="audit.log",
        level="INFO",
        max_bytes="100MB",
        backup_count=50,    # Order audit trail is kept longest
    ),
    LogChannel.ERROR: ChannelConfig(
        name="error",
        filename="error.log",
        level="ERROR",
        max_bytes="50MB",
        backup_count=20,
    ),
}


def get_channel_for_component(component: str) -> LogChannel:
    """Get the appropriate logging channel for a component."""
    component_mapping = {
        "order_processor": LogChannel.TRADING,
        "portfolio": LogChannel.TRADING,
        "settlement": LogChannel.TRADING,
        "database": LogChannel.DATABASE,
        "api": LogChannel.API,
        "audit": LogChannel.AUDIT,
    }

    return component_mapping.get(component, LogChannel.APPLICATION)


def get_channel_config(channel: LogChannel) -> ChannelConfig:
    """Get configuration for a specific channel."""
    return CHANNEL_CONFIGS[channel]


def create_log_directory_structure(logs_dir: str) -> None:
    """Create the logs directory structure."""
    logs_path = Path(logs_dir)
    logs_path.mkdir(parents=True, exist_ok=True)
    (logs_path / "archived").mkdir(exist_ok=True)
