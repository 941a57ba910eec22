"""Persistent playbook store for ACE agents."""

from .applier import apply_delta, apply_operation
from .audit import AuditEntry, AuditLogger
from .config import ACEPlaybookConfig, configure_logging, get_config, reset_config
from .delta import TAG_NAMES, DeltaBatch, DeltaOperation, OperationType
from .errors import (
    BulletNotFoundError,
    DeltaMissingFieldError,
    InvalidDeltaError,
    InvalidOperationTypeError,
    InvalidPlaybookDataError,
    InvalidTagError,
    PlaybookError,
)
from .playbook import EMPTY_PLAYBOOK_PROMPT, Bullet, Playbook, TagCounts
from .store import PlaybookStore

__all__ = [
    # Playbook
    "Bullet",
    "Playbook",
    "TagCounts",
    "EMPTY_PLAYBOOK_PROMPT",
    "PlaybookStore",
    # Delta
    "DeltaOperation",
    "DeltaBatch",
    "OperationType",
    "TAG_NAMES",
    "apply_delta",
    "apply_operation",
    # Errors
    "PlaybookError",
    "BulletNotFoundError",
    "InvalidTagError",
    "DeltaMissingFieldError",
    "InvalidDeltaError",
    "InvalidOperationTypeError",
    "InvalidPlaybookDataError",
    # Audit / config
    "AuditEntry",
    "AuditLogger",
    "ACEPlaybookConfig",
    "get_config",
    "reset_config",
    "configure_logging",
]

__version__ = "0.1.0"
