"""Interpretation of delta batches as playbook CRUD calls.

Operations run strictly in order. The first failing operation stops the
batch; operations before it stay applied.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Mapping, Optional

from .delta import DeltaBatch, DeltaOperation, OperationType
from .errors import DeltaMissingFieldError

if TYPE_CHECKING:
    from .playbook import Playbook

logger = logging.getLogger(__name__)


def coerce_counters(metadata: Mapping[str, int]) -> Optional[Dict[str, int]]:
    """Clamp absolute counter values to non-negative ints; None when empty."""
    if not metadata:
        return None
    return {key: max(0, int(value)) for key, value in metadata.items()}


def _require_bullet_id(operation: DeltaOperation) -> str:
    if operation.bullet_id is None:
        raise DeltaMissingFieldError("bullet_id", operation.type.value)
    return operation.bullet_id


def apply_operation(playbook: "Playbook", operation: DeltaOperation) -> None:
    op_type = operation.type
    if op_type is OperationType.ADD:
        bullet = playbook.add_bullet(
            section=operation.section,
            content=operation.content or "",
            bullet_id=operation.bullet_id,
            metadata=coerce_counters(operation.metadata),
        )
        logger.debug(f"ADD {bullet.id} to section {bullet.section!r}")
    elif op_type is OperationType.UPDATE:
        bullet_id = _require_bullet_id(operation)
        playbook.update_bullet(
            bullet_id,
            content=operation.content,
            metadata=coerce_counters(operation.metadata),
        )
        logger.debug(f"UPDATE {bullet_id}")
    elif op_type is OperationType.TAG:
        bullet_id = _require_bullet_id(operation)
        for tag, increment in operation.metadata.items():
            playbook.tag_bullet(bullet_id, tag, increment)
        logger.debug(f"TAG {bullet_id} with {operation.metadata}")
    elif op_type is OperationType.REMOVE:
        bullet_id = _require_bullet_id(operation)
        removed = playbook.remove_bullet(bullet_id)
        if removed is None:
            logger.debug(f"REMOVE {bullet_id}: not present, nothing to do")
        else:
            logger.debug(f"REMOVE {bullet_id}")


def apply_delta(playbook: "Playbook", delta: DeltaBatch) -> int:
    """Apply every operation of ``delta`` to ``playbook`` in order.

    Returns:
        Number of operations applied

    The exception that stops a batch carries an ``applied`` attribute with
    the number of operations that took effect before it.

    Raises:
        DeltaMissingFieldError: UPDATE/TAG/REMOVE without a bullet_id
        BulletNotFoundError: UPDATE/TAG on an unknown bullet
        InvalidTagError: TAG with an unsupported tag name
    """
    applied = 0
    for index, operation in enumerate(delta.operations):
        try:
            apply_operation(playbook, operation)
        except Exception as exc:
            logger.warning(
                f"Delta operation {index} ({operation.type.value}) failed after "
                f"{applied} applied: {exc}"
            )
            exc.applied = applied
            raise
        applied += 1

    logger.info(
        f"Applied {applied} delta operations; playbook now has {len(playbook)} bullets"
    )
    return applied
