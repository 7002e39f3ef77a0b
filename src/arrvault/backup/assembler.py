"""
Backup payload assembly and validation.

The assembler pulls snapshots from section stores and builds the plain
backup payload for a set of export options. validate_payload checks the
shape of a payload read back from a backup before anything is restored.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from arrvault.backup.options import (
    BACKUP_SECTIONS,
    SECTIONS_BY_PAYLOAD_KEY,
    BackupSection,
    ExportOptions,
)
from arrvault.crypto.codec import SerializationError

if TYPE_CHECKING:
    from arrvault.stores.base import SectionStore

logger = logging.getLogger(__name__)

# Fields removed from service configurations when credentials are excluded
SERVICE_CREDENTIAL_FIELDS = ("apiKey", "username", "password")

VIEW_STATE_DEFAULTS = {
    "viewMode": "grid",
    "sortKey": "name",
    "sortDirection": "asc",
}


class AssemblyError(Exception):
    """Raised when a backup payload cannot be assembled."""

    pass


class BackupAssembler:
    """
    Builds backup payloads from section stores.

    Usage:
        assembler = BackupAssembler(stores)
        payload = assembler.assemble(options)
    """

    def __init__(self, stores: Mapping[str, SectionStore]) -> None:
        """
        Initialize the assembler.

        Args:
            stores: Section stores keyed by section key (see BACKUP_SECTIONS).
        """
        self.stores = stores

    def assemble(self, options: ExportOptions) -> dict[str, Any]:
        """
        Assemble the payload for the selected sections.

        Sections come out in catalog order. A selected section whose store
        is empty is left out, as is every unselected section.

        Args:
            options: Validated export options.

        Returns:
            Backup payload keyed by payload key.

        Raises:
            AssemblyError: If a selected section has no store.
            SerializationError: If a snapshot is not JSON-serializable.
        """
        payload: dict[str, Any] = {}

        for section in options.selected_sections():
            store = self.stores.get(section.key)
            if store is None:
                raise AssemblyError(f"No store registered for section: {section.key}")

            snapshot = store.read_snapshot()
            if _is_empty(snapshot):
                logger.debug(f"Section {section.key} is empty, skipping")
                continue

            snapshot = self._prepare_section(section, snapshot, options)
            if snapshot is None:
                logger.debug(f"Section {section.key} has nothing to export, skipping")
                continue
            _check_serializable(section, snapshot)
            payload[section.payload_key] = snapshot

        logger.info(
            f"Assembled backup payload with sections: {', '.join(payload) or 'none'}"
        )
        return payload

    def _prepare_section(
        self,
        section: BackupSection,
        snapshot: Any,
        options: ExportOptions,
    ) -> Any:
        """Apply per-section shaping rules."""
        if section.key == "serviceConfigs" and not options.include_service_credentials:
            return [_strip_credentials(config) for config in snapshot]
        if section.key == "servicesViewState":
            return _normalize_view_state(snapshot)
        return snapshot


def _is_empty(snapshot: Any) -> bool:
    return snapshot is None or (isinstance(snapshot, (dict, list)) and not snapshot)


def _strip_credentials(config: Any) -> Any:
    if not isinstance(config, dict):
        return config
    return {k: v for k, v in config.items() if k not in SERVICE_CREDENTIAL_FIELDS}


def _normalize_view_state(state: Any) -> Any:
    if not isinstance(state, dict):
        return state
    # Persisted store snapshots may wrap the fields in "state"
    state = state.get("state") or state
    if not isinstance(state, dict) or not (state.get("viewMode") or state.get("sortKey")):
        return None
    return {key: state.get(key) or default for key, default in VIEW_STATE_DEFAULTS.items()}


def _check_serializable(section: BackupSection, snapshot: Any) -> None:
    try:
        json.dumps(snapshot, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Section '{section.key}' is not JSON-serializable: {e}"
        ) from e


def validate_payload(payload: Any) -> list[str]:
    """
    Check that a decoded payload has the backup payload shape.

    Run this on decrypted data before restoring it: a wrong password can
    occasionally decrypt to something that still parses as JSON. Keys with
    no catalog section (widget layouts, voice assistant settings and other
    data of the full client) are not errors; restore skips them.

    Args:
        payload: Parsed payload.

    Returns:
        List of problems, empty when the payload is usable.
    """
    if not isinstance(payload, dict):
        return [f"Backup payload must be an object, got {type(payload).__name__}"]

    errors: list[str] = []

    for key, value in payload.items():
        section = SECTIONS_BY_PAYLOAD_KEY.get(key)
        if section is None:
            continue

        if not isinstance(value, section.payload_type):
            expected = "an array" if section.payload_type is list else "an object"
            errors.append(f"Section '{key}' must be {expected}")
            continue

        if section.key == "serviceConfigs":
            for index, config in enumerate(value):
                if not isinstance(config, dict) or "id" not in config:
                    errors.append(
                        f"Service configuration {index} must be an object with an id"
                    )

    return errors


def payload_sections(payload: Mapping[str, Any]) -> list[str]:
    """Return the payload keys present, in catalog order."""
    return [s.payload_key for s in BACKUP_SECTIONS if s.payload_key in payload]
