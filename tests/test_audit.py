"""Tests for AuditLogger - JSONL audit trail of playbook operations."""

import json
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

import pytest

from ace_playbook.audit import AuditEntry, AuditLogger
from ace_playbook.delta import DeltaOperation
from ace_playbook.errors import BulletNotFoundError


def _ops():
    return [
        DeltaOperation(type="add", section="Retry", content="x"),
        DeltaOperation(type="tag", bullet_id="retry-00001", metadata={"helpful": 1}),
    ]


@pytest.mark.unit
class TestAuditLoggerInit(unittest.TestCase):
    """Test AuditLogger initialization."""

    def test_creates_log_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = Path(tmpdir) / "audit_logs"
            logger = AuditLogger(log_dir=str(log_path))

            self.assertTrue(log_path.exists())
            self.assertEqual(logger.log_dir, log_path)


@pytest.mark.unit
class TestAuditEntries(unittest.TestCase):
    """Test audit log entry creation and persistence."""

    def test_log_delta(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=tmpdir)

            entry = logger.log_delta("learned retry", _ops(), applied=2)

            self.assertIsInstance(entry, AuditEntry)
            self.assertEqual(entry.operation, "delta")
            self.assertEqual(entry.reasoning, "learned retry")
            self.assertEqual(entry.operation_types, ["ADD", "TAG"])
            self.assertEqual(entry.bullet_ids, ["retry-00001"])
            self.assertEqual(entry.applied, 2)
            self.assertIsNone(entry.error)
            datetime.fromisoformat(entry.timestamp)

    def test_log_delta_with_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=tmpdir)

            entry = logger.log_delta("r", _ops(), applied=1, error=BulletNotFoundError("retry-00001"))

            self.assertEqual(entry.error, "BulletNotFoundError: Bullet not found: retry-00001")

    def test_log_playbook(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=tmpdir)

            entry = logger.log_playbook("/tmp/pb.json", "save", 3)

            self.assertEqual(entry.operation, "playbook")
            self.assertEqual(entry.action, "save")
            self.assertEqual(entry.bullet_count, 3)

    def test_entries_have_unique_ids(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=tmpdir)

            first = logger.log_playbook("p", "load", 0)
            second = logger.log_playbook("p", "load", 0)

            self.assertNotEqual(first.id, second.id)

    def test_entries_appended_to_daily_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=tmpdir)

            logger.log_delta("a", _ops(), applied=2)
            logger.log_delta("b", _ops(), applied=0)
            logger.log_playbook("p", "save", 1)

            log_files = list(Path(tmpdir).glob("*.jsonl"))
            self.assertEqual(len(log_files), 1)
            with open(log_files[0], "r", encoding="utf-8") as f:
                lines = f.readlines()
            self.assertEqual(len(lines), 3)
            self.assertEqual(json.loads(lines[0])["reasoning"], "a")


@pytest.mark.unit
class TestAuditQueries(unittest.TestCase):
    """Test reading, filtering, exporting and metrics."""

    def test_date_filter_excludes_other_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=tmpdir)
            old = Path(tmpdir) / "2001-01-01.jsonl"
            old.write_text(json.dumps({"operation": "delta", "applied": 5}) + "\n", encoding="utf-8")
            logger.log_delta("today", _ops(), applied=1)

            today = datetime.now().strftime("%Y-%m-%d")
            self.assertEqual(len(logger.read_entries()), 2)
            self.assertEqual(len(logger.read_entries(start_date=today)), 1)
            self.assertEqual(len(logger.read_entries(end_date="2001-12-31")), 1)

    def test_export_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=str(Path(tmpdir) / "logs"))
            logger.log_delta("r", _ops(), applied=2)

            out = Path(tmpdir) / "export.json"
            logger.export_json(str(out))

            data = json.loads(out.read_text(encoding="utf-8"))
            self.assertEqual(len(data), 1)
            self.assertEqual(data[0]["applied"], 2)

    def test_metrics(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(log_dir=tmpdir)
            logger.log_delta("ok", _ops(), applied=2)
            logger.log_delta("failed", _ops(), applied=1, error=ValueError("bad"))
            logger.log_playbook("p", "save", 1)

            self.assertEqual(
                logger.get_metrics(),
                {"total_batches": 2, "operations_applied": 3, "failed_batches": 1},
            )

    def test_metrics_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertEqual(
                AuditLogger(log_dir=tmpdir).get_metrics(),
                {"total_batches": 0, "operations_applied": 0, "failed_batches": 0},
            )


if __name__ == "__main__":
    unittest.main()
