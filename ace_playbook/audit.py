"""Audit logging for playbook operations.

Records:
- Delta batches (reasoning, operation kinds, how many were applied, failure)
- Playbook persistence (loading, saving)

Logs are written to daily JSONL files for efficient storage and analysis.
"""

import json
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .delta import DeltaOperation


@dataclass
class AuditEntry:
    """Single audit log entry."""

    id: str
    timestamp: str
    operation: str  # "delta", "playbook"
    reasoning: Optional[str] = None
    operation_types: Optional[List[str]] = None
    bullet_ids: Optional[List[str]] = None
    applied: Optional[int] = None
    error: Optional[str] = None
    path: Optional[str] = None
    action: Optional[str] = None
    bullet_count: Optional[int] = None


class AuditLogger:
    """Logger for playbook operations with JSONL persistence."""

    def __init__(self, log_dir: str):
        """Initialize logger with log directory.

        Args:
            log_dir: Directory path for log files
        """
        self._log_dir = Path(log_dir)
        self._log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def _write_entry(self, entry: AuditEntry) -> None:
        # Daily log file format: YYYY-MM-DD.jsonl
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self._log_dir / f"{today}.jsonl"

        with open(log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")

    def log_delta(
        self,
        reasoning: str,
        operations: Sequence[DeltaOperation],
        applied: int,
        error: Optional[BaseException] = None,
    ) -> AuditEntry:
        """Log the outcome of applying a delta batch.

        Args:
            reasoning: Curator reasoning attached to the batch
            operations: Operations in the batch, in order
            applied: How many operations took effect before any failure
            error: Exception that stopped the batch, if any

        Returns:
            Created audit entry
        """
        entry = AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.now().isoformat(),
            operation="delta",
            reasoning=reasoning,
            operation_types=[op.type.value for op in operations],
            bullet_ids=[op.bullet_id for op in operations if op.bullet_id is not None],
            applied=applied,
            error=f"{type(error).__name__}: {error}" if error is not None else None,
        )
        self._write_entry(entry)
        return entry

    def log_playbook(
        self,
        path: str,
        action: str,
        bullet_count: int,
    ) -> AuditEntry:
        """Log a playbook persistence event.

        Args:
            path: File the playbook was read from or written to
            action: "load", "create" or "save"
            bullet_count: Number of bullets in playbook

        Returns:
            Created audit entry
        """
        entry = AuditEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.now().isoformat(),
            operation="playbook",
            path=path,
            action=action,
            bullet_count=bullet_count,
        )
        self._write_entry(entry)
        return entry

    def read_entries(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> List[Dict]:
        """Read all entries from JSONL files.

        Args:
            start_date: Optional start date filter (YYYY-MM-DD)
            end_date: Optional end date filter (YYYY-MM-DD)

        Returns:
            List of entry dictionaries, oldest file first
        """
        entries = []

        for log_file in sorted(self._log_dir.glob("*.jsonl")):
            file_date = log_file.stem  # YYYY-MM-DD
            if start_date and file_date < start_date:
                continue
            if end_date and file_date > end_date:
                continue

            with open(log_file, "r", encoding="utf-8") as f:
                for line in f:
                    if line.strip():
                        entries.append(json.loads(line))

        return entries

    def export_json(
        self,
        path: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> None:
        entries = self.read_entries(start_date, end_date)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2, ensure_ascii=False)

    def get_metrics(self) -> Dict:
        """Get aggregated delta metrics.

        Returns:
            Dictionary with:
            - total_batches: Number of delta batches logged
            - operations_applied: Sum of applied operations across batches
            - failed_batches: Batches stopped by an error
        """
        deltas = [e for e in self.read_entries() if e.get("operation") == "delta"]

        return {
            "total_batches": len(deltas),
            "operations_applied": sum(e.get("applied") or 0 for e in deltas),
            "failed_batches": sum(1 for e in deltas if e.get("error")),
        }
