"""
Section store interface.

A section store owns one slice of application state (settings, service
configurations, recent IPs, ...) and exposes it to the backup subsystem as
a JSON-serializable snapshot. The assembler reads snapshots; restore applies
them back.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for section store errors."""

    pass


class SectionStore(ABC):
    """
    Abstract base class for backup section stores.

    Implementations must return detached data from read_snapshot so callers
    can mutate it freely, and must replace (not merge) state in
    apply_snapshot.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def read_snapshot(self) -> Any:
        """
        Read the current state.

        Returns:
            JSON-serializable data, or None when the store holds nothing.
        """

    @abstractmethod
    def apply_snapshot(self, data: Any) -> None:
        """
        Replace the current state with a snapshot.

        Args:
            data: Snapshot previously produced by read_snapshot, or None to
                  clear the store.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class MemoryStore(SectionStore):
    """Section store held in process memory."""

    def __init__(self, name: str, data: Any = None) -> None:
        super().__init__(name)
        self._data = copy.deepcopy(data)

    def read_snapshot(self) -> Any:
        return copy.deepcopy(self._data)

    def apply_snapshot(self, data: Any) -> None:
        self._data = copy.deepcopy(data)
        logger.debug(f"Applied snapshot to memory store {self.name}")
