"""Centralized ACE playbook configuration.

Override via environment variables or a .env file next to the package.

=== ENVIRONMENT VARIABLES ===

1. Playbook storage (ACE_PLAYBOOK_*)
   - ACE_PLAYBOOK_PATH: JSON file backing the store (default: .ace/playbook.json)
   - ACE_PLAYBOOK_AUTOSAVE: Save after every applied delta batch (default: true)
   - ACE_PLAYBOOK_CREATE: Start empty when the file is missing (default: true)

2. Audit trail (ACE_AUDIT_*)
   - ACE_AUDIT_ENABLED: Write JSONL audit entries (default: false)
   - ACE_AUDIT_LOG_DIR: Directory for daily audit files (default: .ace/audit)

3. Logging
   - ACE_LOG_LEVEL: Level used by configure_logging() (default: WARNING)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def _get_env(key: str, default: str) -> str:
    """Get environment variable with default."""
    return os.getenv(key, default)


def _get_env_bool(key: str, default: bool) -> bool:
    """Get boolean environment variable with default."""
    val = os.getenv(key, str(default)).lower()
    return val in ("true", "1", "yes", "on")


@dataclass
class PlaybookConfig:
    """Where the playbook lives and how the store persists it."""

    path: str = field(default_factory=lambda: _get_env("ACE_PLAYBOOK_PATH", ".ace/playbook.json"))
    autosave: bool = field(default_factory=lambda: _get_env_bool("ACE_PLAYBOOK_AUTOSAVE", True))
    create_if_missing: bool = field(default_factory=lambda: _get_env_bool("ACE_PLAYBOOK_CREATE", True))


@dataclass
class AuditConfig:
    """JSONL audit trail of delta batches and load/save events."""

    enabled: bool = field(default_factory=lambda: _get_env_bool("ACE_AUDIT_ENABLED", False))
    log_dir: str = field(default_factory=lambda: _get_env("ACE_AUDIT_LOG_DIR", ".ace/audit"))


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: _get_env("ACE_LOG_LEVEL", "WARNING"))


@dataclass
class ACEPlaybookConfig:
    """Master configuration."""

    playbook: PlaybookConfig = field(default_factory=PlaybookConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global singleton
_config: Optional[ACEPlaybookConfig] = None


def get_config() -> ACEPlaybookConfig:
    """Get the global configuration singleton."""
    global _config
    if _config is None:
        _config = ACEPlaybookConfig()
    return _config


def reset_config() -> None:
    """Reset configuration (for testing)."""
    global _config
    _config = None


def get_playbook_config() -> PlaybookConfig:
    return get_config().playbook


def get_audit_config() -> AuditConfig:
    return get_config().audit


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a stderr handler to the ``ace_playbook`` logger.

    Intended for host applications and scripts; the library itself never
    configures handlers.
    """
    level_name = (level or get_config().logging.level).upper()
    numeric = logging.getLevelName(level_name)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level_name}")

    package_logger = logging.getLogger("ace_playbook")
    package_logger.setLevel(numeric)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        package_logger.addHandler(handler)
