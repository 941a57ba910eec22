"""Single-writer wrapper around a Playbook.

The Playbook itself has no locking. ``PlaybookStore`` owns one playbook and
serializes every read and mutation through a single lock, optionally saving
after each batch and recording an audit trail.
"""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Mapping, Optional, Union

from .applier import apply_delta
from .audit import AuditLogger
from .config import ACEPlaybookConfig, get_config
from .delta import DeltaBatch
from .playbook import Bullet, Playbook

logger = logging.getLogger(__name__)


class PlaybookStore:
    """Lock-guarded owner of a playbook and its backing file."""

    def __init__(
        self,
        playbook: Optional[Playbook] = None,
        path: Optional[Union[str, Path]] = None,
        *,
        autosave: bool = False,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        if autosave and path is None:
            raise ValueError("autosave requires a path")
        self._playbook = playbook if playbook is not None else Playbook()
        self._path = Path(path) if path is not None else None
        self._autosave = autosave
        self._audit = audit
        self._lock = Lock()

    @classmethod
    def open(
        cls,
        path: Optional[Union[str, Path]] = None,
        config: Optional[ACEPlaybookConfig] = None,
    ) -> "PlaybookStore":
        """Load the playbook at ``path`` (or the configured path).

        Raises:
            FileNotFoundError: If the file is missing and creation is disabled
            InvalidPlaybookDataError: If the file is not a valid playbook
        """
        config = config or get_config()
        file_path = Path(path if path is not None else config.playbook.path)
        audit = AuditLogger(config.audit.log_dir) if config.audit.enabled else None

        if file_path.exists():
            playbook = Playbook.load_from_file(file_path)
            action = "load"
        elif config.playbook.create_if_missing:
            logger.info(f"No playbook at {file_path}, starting empty")
            playbook = Playbook()
            action = "create"
        else:
            raise FileNotFoundError(f"Playbook file not found: {file_path}")

        if audit is not None:
            audit.log_playbook(str(file_path), action, len(playbook))
        return cls(playbook, file_path, autosave=config.playbook.autosave, audit=audit)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def playbook(self) -> Playbook:
        """The wrapped playbook. Callers mutating it directly bypass the lock."""
        return self._playbook

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #
    def apply(self, delta: DeltaBatch) -> int:
        """Apply a batch under the lock; returns the number of operations applied.

        A failing operation stops the batch. Earlier operations stay applied
        and are still saved when autosave is on; a failure of that save is
        logged and the error that stopped the batch is raised.
        """
        with self._lock:
            try:
                applied = apply_delta(self._playbook, delta)
            except Exception as exc:
                applied = getattr(exc, "applied", 0)
                if self._autosave and applied:
                    try:
                        self._save_locked(self._path)
                    except OSError as save_exc:
                        logger.error(
                            f"Autosave of partially applied batch to {self._path} failed: {save_exc}"
                        )
                self._record(delta, applied, exc)
                raise

            if self._autosave and applied:
                self._save_locked(self._path)
            self._record(delta, applied)
            return applied

    def apply_json(self, payload: Mapping[str, Any]) -> int:
        """Parse a wire-format batch and apply it."""
        return self.apply(DeltaBatch.from_json(payload))

    def _record(
        self, delta: DeltaBatch, applied: int, error: Optional[BaseException] = None
    ) -> None:
        if self._audit is not None:
            self._audit.log_delta(delta.reasoning, delta.operations, applied, error)

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #
    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        target = Path(path) if path is not None else self._path
        if target is None:
            raise ValueError("No path given and store has no default path")
        with self._lock:
            self._save_locked(target)
        return target

    def _save_locked(self, target: Path) -> None:
        self._playbook.save_to_file(target)
        if self._audit is not None:
            self._audit.log_playbook(str(target), "save", len(self._playbook))

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    def get_bullet(self, bullet_id: str) -> Optional[Bullet]:
        with self._lock:
            return self._playbook.get_bullet(bullet_id)

    def as_prompt(self) -> str:
        with self._lock:
            return self._playbook.as_prompt()

    def stats(self) -> Dict[str, object]:
        with self._lock:
            return self._playbook.stats()

    def snapshot(self) -> Playbook:
        """Independent copy of the current playbook."""
        with self._lock:
            return Playbook.from_dict(self._playbook.to_dict())
