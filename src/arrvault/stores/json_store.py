"""
JSON file section stores.

Each section is persisted as one JSON document under the data directory:

    data/
        settings.json
        serviceConfigs.json
        recentIPs.json
        ...

Writes are atomic (temp file in the same directory, then rename), so a
crash mid-write leaves the previous document intact.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from arrvault.backup.options import BACKUP_SECTIONS
from arrvault.stores.base import SectionStore, StoreError

logger = logging.getLogger(__name__)


class JsonFileStore(SectionStore):
    """Section store backed by a single JSON file."""

    def __init__(self, name: str, path: Path | str) -> None:
        """
        Initialize the store.

        Args:
            name: Section key.
            path: JSON file holding the section data.
        """
        super().__init__(name)
        self.path = Path(path)

    def read_snapshot(self) -> Any:
        """
        Load the section data.

        Returns:
            Parsed JSON, or None if the file does not exist.

        Raises:
            StoreError: If the file is not valid JSON.
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupted store file {self.path}: {e}") from e

    def apply_snapshot(self, data: Any) -> None:
        """Replace the section data, deleting the file when data is None."""
        if data is None:
            if self.path.exists():
                self.path.unlink()
            logger.debug(f"Cleared store {self.name}")
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)

        temp_fd, temp_path = tempfile.mkstemp(
            suffix=".tmp",
            dir=str(self.path.parent),
        )
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, self.path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.debug(f"Wrote store {self.name} to {self.path}")


def build_file_stores(data_dir: Path | str) -> dict[str, JsonFileStore]:
    """
    Create a JSON file store for every catalog section.

    Args:
        data_dir: Directory holding the section files.

    Returns:
        Stores keyed by section key.
    """
    data_dir = Path(data_dir)
    return {
        section.key: JsonFileStore(section.key, data_dir / f"{section.key}.json")
        for section in BACKUP_SECTIONS
    }
