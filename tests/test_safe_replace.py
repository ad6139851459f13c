"""
Tests for the park / write / commit-or-rollback protocol.
"""

import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from export_ops import ArchiveTarget, PARKED_SUFFIX, ReplaceError, SafeReplaceWriter


class TestSafeReplaceWriter(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.final_path = os.path.join(self.temp_dir, "game.zip")
        self.target = ArchiveTarget(self.final_path)
        self.writer = SafeReplaceWriter(self.target)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, path, data):
        with open(path, "wb") as f:
            f.write(data)

    def _read(self, path):
        with open(path, "rb") as f:
            return f.read()

    def test_parked_path_uses_suffix(self):
        self.assertEqual(self.target.parked_path, self.final_path + PARKED_SUFFIX)
        self.assertEqual(self.target.zip_name_without_ext, "game")

    def test_fresh_destination_commit(self):
        self.assertEqual(self.writer.prepare(), [])
        self.assertFalse(self.target.has_parked_original)

        self._write(self.final_path, b"new")
        self.assertEqual(self.writer.commit(), [])

        self.assertEqual(self._read(self.final_path), b"new")
        self.assertFalse(os.path.exists(self.target.parked_path))

    def test_existing_destination_is_parked_then_deleted(self):
        self._write(self.final_path, b"original")

        self.writer.prepare()
        self.assertFalse(os.path.exists(self.final_path))
        self.assertEqual(self._read(self.target.parked_path), b"original")

        self._write(self.final_path, b"replacement")
        self.assertEqual(self.writer.commit(), [])

        self.assertEqual(self._read(self.final_path), b"replacement")
        self.assertFalse(os.path.exists(self.target.parked_path))

    def test_rollback_restores_original(self):
        self._write(self.final_path, b"original")
        self.writer.prepare()
        self._write(self.final_path, b"partial")

        self.assertEqual(self.writer.rollback(), [])

        self.assertEqual(self._read(self.final_path), b"original")
        self.assertFalse(os.path.exists(self.target.parked_path))

    def test_rollback_without_original_removes_partial(self):
        self.writer.prepare()
        self._write(self.final_path, b"partial")

        self.writer.rollback()

        self.assertFalse(os.path.exists(self.final_path))

    def test_stale_parked_file_is_replaced(self):
        self._write(self.target.parked_path, b"stale")
        self._write(self.final_path, b"original")

        self.writer.prepare()

        self.assertEqual(self._read(self.target.parked_path), b"original")

    def test_park_failure_raises_and_leaves_original(self):
        self._write(self.final_path, b"original")

        with patch(
            "export_ops.safe_replace.os.replace", side_effect=PermissionError("locked")
        ):
            with self.assertRaises(ReplaceError) as ctx:
                self.writer.prepare()

        self.assertIn("could not be accessed", str(ctx.exception))
        self.assertEqual(self._read(self.final_path), b"original")
        self.assertFalse(self.target.has_parked_original)

    def test_commit_delete_failure_is_a_warning(self):
        self._write(self.final_path, b"original")
        self.writer.prepare()
        self._write(self.final_path, b"replacement")

        with patch("export_ops.safe_replace.os.remove", side_effect=OSError("busy")):
            warnings = self.writer.commit()

        self.assertEqual(len(warnings), 1)
        self.assertIn("manually", warnings[0])
        self.assertEqual(self._read(self.final_path), b"replacement")

    def test_restore_failure_is_a_warning(self):
        self._write(self.final_path, b"original")
        self.writer.prepare()
        self._write(self.final_path, b"partial")

        with patch("export_ops.safe_replace.os.replace", side_effect=OSError("busy")):
            warnings = self.writer.rollback()

        self.assertEqual(len(warnings), 1)
        self.assertIn("rename", warnings[0])
        self.assertEqual(self._read(self.target.parked_path), b"original")

    def test_undeletable_partial_keeps_original_parked(self):
        self._write(self.final_path, b"original")
        self.writer.prepare()
        self._write(self.final_path, b"partial")

        with patch("export_ops.safe_replace.os.remove", side_effect=OSError("busy")):
            warnings = self.writer.rollback()

        self.assertEqual(len(warnings), 2)
        self.assertEqual(self._read(self.target.parked_path), b"original")

    def test_rollback_before_prepare_leaves_destination_alone(self):
        self._write(self.final_path, b"original")

        self.assertEqual(self.writer.rollback(), [])

        self.assertEqual(self._read(self.final_path), b"original")

    def test_second_rollback_keeps_restored_original(self):
        self._write(self.final_path, b"original")
        self.writer.prepare()
        self._write(self.final_path, b"partial")
        self.writer.rollback()

        self.assertEqual(self.writer.rollback(), [])

        self.assertEqual(self._read(self.final_path), b"original")

    def test_rollback_after_commit_keeps_new_archive(self):
        self._write(self.final_path, b"original")
        self.writer.prepare()
        self._write(self.final_path, b"replacement")
        self.writer.commit()

        self.assertEqual(self.writer.rollback(), [])

        self.assertEqual(self._read(self.final_path), b"replacement")


if __name__ == "__main__":
    unittest.main()
