"""Tests for section stores."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from arrvault.backup.options import BACKUP_SECTIONS
from arrvault.stores import (
    JsonFileStore,
    MemoryStore,
    SectionStore,
    StoreError,
    build_file_stores,
)


class TestMemoryStore(unittest.TestCase):
    """Tests for MemoryStore."""

    def test_empty_by_default(self) -> None:
        """Test a new store holds nothing."""
        self.assertIsNone(MemoryStore("settings").read_snapshot())

    def test_snapshots_are_detached(self) -> None:
        """Test mutating a snapshot does not change the store."""
        store = MemoryStore("settings", {"theme": "dark"})

        snapshot = store.read_snapshot()
        snapshot["theme"] = "light"

        self.assertEqual(store.read_snapshot(), {"theme": "dark"})

    def test_apply_replaces(self) -> None:
        """Test apply_snapshot replaces rather than merges."""
        store = MemoryStore("settings", {"theme": "dark", "language": "en"})

        store.apply_snapshot({"theme": "light"})

        self.assertEqual(store.read_snapshot(), {"theme": "light"})

    def test_apply_none_clears(self) -> None:
        """Test applying None empties the store."""
        store = MemoryStore("recentIPs", ["10.0.0.1"])
        store.apply_snapshot(None)
        self.assertIsNone(store.read_snapshot())

    def test_repr(self) -> None:
        """Test repr names the store."""
        self.assertEqual(repr(MemoryStore("aiConfig")), "MemoryStore('aiConfig')")

    def test_is_section_store(self) -> None:
        """Test MemoryStore implements the store interface."""
        self.assertIsInstance(MemoryStore("x"), SectionStore)


class TestJsonFileStore(unittest.TestCase):
    """Tests for JsonFileStore."""

    def setUp(self) -> None:
        """Set up a temp directory."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        """Clean up temp directory."""
        self.temp_dir.cleanup()

    def test_missing_file_reads_none(self) -> None:
        """Test a store without a file is empty."""
        store = JsonFileStore("settings", self.data_dir / "settings.json")
        self.assertIsNone(store.read_snapshot())

    def test_write_and_read(self) -> None:
        """Test snapshots persist to disk."""
        store = JsonFileStore("serviceConfigs", self.data_dir / "nested" / "s.json")
        configs = [{"id": "radarr-1", "type": "radarr", "name": "Radarr ✓"}]

        store.apply_snapshot(configs)

        self.assertEqual(store.read_snapshot(), configs)
        with open(store.path, encoding="utf-8") as f:
            self.assertEqual(json.load(f), configs)

    def test_no_temp_files_left(self) -> None:
        """Test atomic writes leave only the target file."""
        store = JsonFileStore("settings", self.data_dir / "settings.json")

        store.apply_snapshot({"a": 1})
        store.apply_snapshot({"a": 2})

        self.assertEqual([p.name for p in self.data_dir.iterdir()], ["settings.json"])

    def test_failed_write_keeps_previous_file(self) -> None:
        """Test an unserializable snapshot leaves the old data intact."""
        store = JsonFileStore("settings", self.data_dir / "settings.json")
        store.apply_snapshot({"theme": "dark"})

        with self.assertRaises(TypeError):
            store.apply_snapshot({"bad": object()})

        self.assertEqual(store.read_snapshot(), {"theme": "dark"})
        self.assertEqual([p.name for p in self.data_dir.iterdir()], ["settings.json"])

    def test_apply_none_deletes_file(self) -> None:
        """Test applying None removes the file."""
        store = JsonFileStore("settings", self.data_dir / "settings.json")
        store.apply_snapshot({"a": 1})

        store.apply_snapshot(None)

        self.assertFalse(store.path.exists())
        store.apply_snapshot(None)

    def test_corrupted_file(self) -> None:
        """Test invalid JSON raises StoreError."""
        path = self.data_dir / "settings.json"
        path.write_text("{not json", encoding="utf-8")

        with self.assertRaises(StoreError):
            JsonFileStore("settings", path).read_snapshot()


class TestBuildFileStores(unittest.TestCase):
    """Tests for build_file_stores."""

    def test_one_store_per_section(self) -> None:
        """Test every catalog section gets a file store."""
        with tempfile.TemporaryDirectory() as temp_dir:
            stores = build_file_stores(temp_dir)

            self.assertEqual(set(stores), {s.key for s in BACKUP_SECTIONS})
            self.assertEqual(
                stores["recentIPs"].path, Path(temp_dir) / "recentIPs.json"
            )


if __name__ == "__main__":
    unittest.main()
