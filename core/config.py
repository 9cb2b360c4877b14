"""
=========================================
Configuration management for querykit.
=========================================

Loads builder defaults from environment variables (.env file) and provides
a centralized Config singleton for application-wide access.

The configuration system ensures:
- Single source of truth for builder defaults
- Type conversion of boolean and enumerated settings
- Logging settings shared with core.logger

Example:
    >>> from core.config import config
    >>>
    >>> # Default flavor for factories
    >>> print(config.sql_flavor)
    >>>
    >>> # Parameter compaction default
    >>> print(f"Compact: {config.compact_params}, deep: {config.deep_compare}")
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

TRUTHY_VALUES = ('1', 'true', 'yes', 'on')

SUPPORTED_FLAVORS = ('postgres', 'mysql', 'sqlite', 'mssql', 'oracle')


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Convert an environment string into a boolean.

    Args:
        value: Raw environment value (may be None when unset)
        default: Value returned when the variable is unset or blank

    Returns:
        True for 1/true/yes/on (case-insensitive), False otherwise
    """
    if value is None or not value.strip():
        return default
    return value.strip().lower() in TRUTHY_VALUES


@dataclass
class BuilderConfig:
    """Defaults applied to builders produced by the factories.

    Attributes:
        sql_flavor: Flavor tag used for identifier quoting
        compact_params: Collapse repeated bound values when building
        deep_compare: Compare values structurally during compaction
    """

    sql_flavor: str
    compact_params: bool
    deep_compare: bool

    def __post_init__(self):
        self.sql_flavor = self.sql_flavor.strip().lower()
        if self.sql_flavor not in SUPPORTED_FLAVORS:
            raise ValueError(
                f"Unsupported SQL flavor '{self.sql_flavor}'. "
                f"Expected one of: {', '.join(SUPPORTED_FLAVORS)}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration settings.

    Attributes:
        log_level: Root logging level name
        log_file: Optional log file name written under log_dir
        log_dir: Directory for log files
    """

    log_level: str
    log_file: Optional[str]
    log_dir: Path


class Config:
    """Centralized configuration manager.

    Provides access to all configuration settings loaded from environment
    variables (.env file).

    Attributes:
        builder: BuilderConfig instance with builder defaults
        logging: LoggingConfig instance with logging settings

    Properties:
        sql_flavor: Default flavor tag
        compact_params: Default for build(compact=...)
        deep_compare: Structural comparison during compaction
        log_level: Logging level name

    Example:
        >>> config = Config()
        >>> print(f"Building {config.sql_flavor} statements")
    """

    def __init__(self):
        """Initialize configuration from environment variables."""
        self.builder = BuilderConfig(
            sql_flavor=os.getenv('QUERYKIT_SQL_FLAVOR', 'postgres'),
            compact_params=parse_bool(os.getenv('QUERYKIT_COMPACT_PARAMS')),
            deep_compare=parse_bool(os.getenv('QUERYKIT_DEEP_COMPARE')),
        )

        project_root = Path(__file__).parent.parent
        self.logging = LoggingConfig(
            log_level=os.getenv('QUERYKIT_LOG_LEVEL', 'INFO').upper(),
            log_file=os.getenv('QUERYKIT_LOG_FILE') or None,
            log_dir=Path(os.getenv('QUERYKIT_LOG_DIR', str(project_root / 'logs'))),
        )

    @property
    def sql_flavor(self) -> str:
        """Get default SQL flavor tag."""
        return self.builder.sql_flavor

    @property
    def compact_params(self) -> bool:
        """Get default parameter compaction switch."""
        return self.builder.compact_params

    @property
    def deep_compare(self) -> bool:
        """Get structural comparison switch for compaction."""
        return self.builder.deep_compare

    @property
    def log_level(self) -> str:
        """Get logging level name."""
        return self.logging.log_level

    def setup_logging(self, console_output: bool = True, use_colors: bool = True) -> None:
        """Configure logging from the loaded settings.

        Args:
            console_output: If True, output to console (stdout)
            use_colors: If True, use colored output for console

        Example:
            >>> config = Config()
            >>> config.setup_logging(use_colors=False)
        """
        from core.logger import setup_logging

        setup_logging(
            log_level=self.logging.log_level,
            log_file=self.logging.log_file,
            log_dir=str(self.logging.log_dir),
            console_output=console_output,
            use_colors=use_colors
        )


# Global configuration instance
config = Config()
