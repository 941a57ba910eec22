"""Tests for playbook JSON serialization and file persistence."""

import json
import tempfile
import unittest
from pathlib import Path

import pytest

from ace_playbook import Playbook
from ace_playbook.errors import InvalidPlaybookDataError


def _sample_playbook():
    playbook = Playbook()
    playbook.add_bullet("Retry", "Use backoff", metadata={"helpful": 4, "harmful": 1})
    playbook.add_bullet("Retry", "Cap attempts", metadata={"neutral": 2})
    playbook.add_bullet("Parsing", "Validate input")
    playbook.tag_bullet("parsing-00003", "harmful", 3)
    return playbook


@pytest.mark.unit
class TestSerialization(unittest.TestCase):
    """Test to_dict/from_dict and dumps/loads."""

    def test_round_trip_is_lossless(self):
        original = _sample_playbook()
        restored = Playbook.loads(original.dumps())

        self.assertEqual(restored, original)
        self.assertEqual(restored.next_id, 3)
        self.assertEqual(restored.sections, original.sections)
        for bullet in original.bullets():
            copy = restored.get_bullet(bullet.id)
            self.assertEqual(copy, bullet)
            self.assertIsNot(copy, bullet)

    def test_round_trip_keeps_id_generation(self):
        restored = Playbook.loads(_sample_playbook().dumps())
        self.assertEqual(restored.add_bullet("Retry", "more").id, "retry-00004")

    def test_persisted_format(self):
        payload = json.loads(_sample_playbook().dumps())
        self.assertEqual(set(payload), {"bullets", "sections", "next_id"})
        self.assertEqual(payload["sections"]["Retry"], ["retry-00001", "retry-00002"])
        self.assertEqual(payload["bullets"]["parsing-00003"]["harmful"], 3)

    def test_non_ascii_content_preserved(self):
        playbook = Playbook()
        playbook.add_bullet("测试", "测试内容")
        self.assertIn("测试内容", playbook.dumps())
        self.assertEqual(Playbook.loads(playbook.dumps()), playbook)

    def test_empty_round_trip(self):
        self.assertEqual(Playbook.loads(Playbook().dumps()), Playbook())

    def test_invalid_json(self):
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.loads("{broken")

    def test_non_object_payload(self):
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.loads("[1, 2]")

    def _payload(self):
        return _sample_playbook().to_dict()

    def test_rejects_section_with_unknown_bullet(self):
        payload = self._payload()
        payload["sections"]["Retry"].append("ghost")
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_unindexed_bullet(self):
        payload = self._payload()
        del payload["sections"]["Parsing"]
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_section_mismatch(self):
        payload = self._payload()
        payload["bullets"]["parsing-00003"]["section"] = "Retry"
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_duplicate_index_entry(self):
        payload = self._payload()
        payload["sections"]["Retry"].append("retry-00001")
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_empty_section(self):
        payload = self._payload()
        payload["sections"]["Empty"] = []
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_negative_counter(self):
        payload = self._payload()
        payload["bullets"]["retry-00001"]["helpful"] = -1
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_missing_bullet_field(self):
        payload = self._payload()
        del payload["bullets"]["retry-00001"]["created_at"]
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_non_iso_timestamp(self):
        payload = self._payload()
        payload["bullets"]["retry-00001"]["created_at"] = "yesterday"
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_updated_before_created(self):
        payload = self._payload()
        bullet = payload["bullets"]["retry-00001"]
        bullet["created_at"] = "2024-05-02T00:00:00+00:00"
        bullet["updated_at"] = "2024-05-01T00:00:00+00:00"
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_mixed_naive_and_aware_timestamps(self):
        payload = self._payload()
        bullet = payload["bullets"]["retry-00001"]
        bullet["created_at"] = "2024-05-01T00:00:00"
        bullet["updated_at"] = "2024-05-02T00:00:00+00:00"
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_accepts_equal_timestamps(self):
        payload = self._payload()
        bullet = payload["bullets"]["retry-00001"]
        bullet["created_at"] = bullet["updated_at"] = "2024-05-01T00:00:00+00:00"
        restored = Playbook.from_dict(payload)
        self.assertEqual(restored.get_bullet("retry-00001").created_at, "2024-05-01T00:00:00+00:00")

    def test_rejects_key_id_mismatch(self):
        payload = self._payload()
        payload["bullets"]["retry-00001"]["id"] = "other"
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)

    def test_rejects_bad_next_id(self):
        payload = self._payload()
        payload["next_id"] = "3"
        with self.assertRaises(InvalidPlaybookDataError):
            Playbook.from_dict(payload)


@pytest.mark.unit
class TestFilePersistence(unittest.TestCase):
    """Test save_to_file/load_from_file."""

    def test_save_creates_parent_directories(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "dir" / "playbook.json"
            original = _sample_playbook()
            original.save_to_file(str(path))

            self.assertTrue(path.exists())
            self.assertEqual(Playbook.load_from_file(str(path)), original)

    def test_load_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                Playbook.load_from_file(Path(tmpdir) / "missing.json")

    def test_load_corrupt_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.json"
            path.write_text("not json", encoding="utf-8")
            with self.assertRaises(InvalidPlaybookDataError):
                Playbook.load_from_file(path)

    def test_save_overwrites(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "playbook.json"
            _sample_playbook().save_to_file(path)
            Playbook().save_to_file(path)
            self.assertEqual(len(Playbook.load_from_file(path)), 0)


if __name__ == "__main__":
    unittest.main()
