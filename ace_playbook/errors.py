"""Exception types raised by the playbook store and delta model."""

from __future__ import annotations


class PlaybookError(Exception):
    """Base class for all playbook errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class BulletNotFoundError(PlaybookError, KeyError):
    """Raised when an update or tag references a bullet id that is not stored."""

    def __init__(self, bullet_id: str):
        self.bullet_id = bullet_id
        super().__init__(f"Bullet not found: {bullet_id}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class InvalidTagError(PlaybookError, ValueError):
    """Raised when a tag name is not one of helpful, harmful, neutral."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(
            f"Invalid tag: {tag}. Supported tags: helpful, harmful, neutral"
        )


class DeltaMissingFieldError(PlaybookError, ValueError):
    """Raised when a delta operation lacks a field its kind requires."""

    def __init__(self, field_name: str, op_type: str):
        self.field_name = field_name
        self.op_type = op_type
        super().__init__(
            f"Delta operation missing required field: {field_name} required for {op_type}"
        )


class InvalidDeltaError(PlaybookError, ValueError):
    """Raised when a delta payload is structurally malformed."""


class InvalidOperationTypeError(InvalidDeltaError):
    """Raised when the operation kind string is not recognized."""

    def __init__(self, op_type: object):
        self.op_type = op_type
        super().__init__(f"Invalid operation type: {op_type}")


class InvalidPlaybookDataError(PlaybookError, ValueError):
    """Raised when persisted playbook data cannot be decoded or is inconsistent."""
