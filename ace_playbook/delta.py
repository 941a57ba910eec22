"""Delta operations produced by the ACE Curator."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidDeltaError, InvalidOperationTypeError

logger = logging.getLogger(__name__)


class OperationType(str, Enum):
    """Kinds of mutation a curator can request."""

    ADD = "ADD"
    UPDATE = "UPDATE"
    TAG = "TAG"
    REMOVE = "REMOVE"

    @classmethod
    def parse(cls, value: object) -> "OperationType":
        if isinstance(value, OperationType):
            return value
        if not isinstance(value, str):
            raise InvalidOperationTypeError(value)
        try:
            return cls(value.upper())
        except ValueError:
            raise InvalidOperationTypeError(value) from None


TAG_NAMES = ("helpful", "harmful", "neutral")

OPERATION_FIELDS = frozenset({"type", "section", "content", "bullet_id", "metadata"})
BATCH_FIELDS = frozenset({"reasoning", "operations"})


def _optional_str(payload: Mapping[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidDeltaError(
            f"Field '{key}' must be a string, got {type(value).__name__}"
        )
    return value


def _parse_metadata(raw: object, op_type: OperationType) -> Dict[str, int]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise InvalidDeltaError(
            f"Field 'metadata' must be an object, got {type(raw).__name__}"
        )
    metadata: Dict[str, int] = {}
    for key, value in raw.items():
        # bool is an int subclass but never a counter value
        if isinstance(value, bool) or not isinstance(value, int):
            logger.debug(f"Dropping non-integer metadata {key!r}={value!r}")
            continue
        if op_type is OperationType.TAG and key not in TAG_NAMES:
            logger.debug(f"Dropping unknown tag {key!r} from TAG operation")
            continue
        metadata[str(key)] = value
    return metadata


@dataclass
class DeltaOperation:
    """Single mutation to apply to the playbook.

    Attributes:
        type: Operation type (ADD, UPDATE, TAG, REMOVE)
        section: Section name for the bullet (used by ADD)
        content: Bullet content text (for ADD/UPDATE)
        bullet_id: Target bullet ID (required for UPDATE/TAG/REMOVE)
        metadata: Absolute counter values for ADD/UPDATE, signed
            increments for TAG
    """

    type: OperationType
    section: str = ""
    content: Optional[str] = None
    bullet_id: Optional[str] = None
    metadata: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = OperationType.parse(self.type)

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "DeltaOperation":
        if not isinstance(payload, Mapping):
            raise InvalidDeltaError(
                f"Delta operation must be an object, got {type(payload).__name__}"
            )
        unknown = set(payload) - OPERATION_FIELDS
        if unknown:
            raise InvalidDeltaError(
                f"Unknown delta operation fields: {', '.join(sorted(map(str, unknown)))}"
            )

        op_type = OperationType.parse(payload.get("type"))

        return cls(
            type=op_type,
            section=_optional_str(payload, "section") or "",
            content=_optional_str(payload, "content"),
            bullet_id=_optional_str(payload, "bullet_id"),
            metadata=_parse_metadata(payload.get("metadata"), op_type),
        )

    def to_json(self) -> Dict[str, object]:
        data: Dict[str, object] = {
            "type": self.type.value.lower(),
            "section": self.section,
        }
        if self.content is not None:
            data["content"] = self.content
        if self.bullet_id is not None:
            data["bullet_id"] = self.bullet_id
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


@dataclass
class DeltaBatch:
    """Bundle of curator reasoning and operations."""

    reasoning: str = ""
    operations: List[DeltaOperation] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.operations)

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "DeltaBatch":
        if not isinstance(payload, Mapping):
            raise InvalidDeltaError(
                f"Delta batch must be an object, got {type(payload).__name__}"
            )
        unknown = set(payload) - BATCH_FIELDS
        if unknown:
            raise InvalidDeltaError(
                f"Unknown delta batch fields: {', '.join(sorted(map(str, unknown)))}"
            )

        reasoning = _optional_str(payload, "reasoning") or ""

        ops_payload = payload.get("operations")
        if ops_payload is None:
            ops_payload = []
        if not isinstance(ops_payload, list):
            raise InvalidDeltaError(
                f"Field 'operations' must be an array, got {type(ops_payload).__name__}"
            )

        operations = []
        for index, item in enumerate(ops_payload):
            try:
                operations.append(DeltaOperation.from_json(item))
            except InvalidDeltaError as exc:
                logger.warning(f"Rejecting delta batch: operation {index} is invalid: {exc}")
                raise
        return cls(reasoning=reasoning, operations=operations)

    @classmethod
    def from_json_str(cls, data: str) -> "DeltaBatch":
        try:
            payload = json.loads(data)
        except json.JSONDecodeError as exc:
            raise InvalidDeltaError(f"Failed to parse delta JSON: {exc}") from exc
        return cls.from_json(payload)

    def to_json(self) -> Dict[str, object]:
        return {
            "reasoning": self.reasoning,
            "operations": [op.to_json() for op in self.operations],
        }
