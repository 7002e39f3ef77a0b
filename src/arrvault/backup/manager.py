"""
Backup and restore manager for arrvault.

Writes backup documents to disk and restores them into section stores.
A backup is a single JSON document:

    {
      "version": "1.2",
      "timestamp": "2026-01-15T10:30:00+00:00",
      "appVersion": "0.1.0",
      "sections": ["settings", "serviceConfigs"],
      "encrypted": true,
      "encryptionInfo": {"algorithm": "...", "codec": "v2", "salt": "...", "iv": "..."},
      "appData": {"encryptedData": "..."}
    }

Everything outside appData is an unencrypted header. Plaintext backups
(version 1.1) carry the sections directly under appData.

Restores are all-or-nothing: the document is read, decrypted and validated
in full before any store is touched, and stores already written are rolled
back if a later section fails to apply.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from arrvault.backup.assembler import BackupAssembler, payload_sections, validate_payload
from arrvault.backup.options import (
    SECTIONS_BY_KEY,
    SECTIONS_BY_PAYLOAD_KEY,
    ExportOptions,
    validate_export_options,
)
from arrvault.crypto.codec import (
    DECRYPTION_FAILED_MESSAGE,
    PBKDF2_ITERATIONS,
    DecryptionError,
    FernetCodec,
    LegacyXorCodec,
    SecureBackupCodec,
    get_codec_for_algorithm,
)

if TYPE_CHECKING:
    from arrvault.stores.base import SectionStore

logger = logging.getLogger(__name__)


class BackupError(Exception):
    """Error during backup operation."""

    pass


class RestoreError(Exception):
    """Error during restore operation."""

    pass


@dataclass
class BackupHeader:
    """Unencrypted header of a backup document."""

    version: str
    timestamp: str
    sections: list[str]
    encrypted: bool = False
    encryption_info: dict[str, Any] | None = None
    app_version: str = "unknown"

    def to_dict(self) -> dict[str, Any]:
        """Convert header to its document representation."""
        data: dict[str, Any] = {
            "version": self.version,
            "timestamp": self.timestamp,
            "appVersion": self.app_version,
            "sections": list(self.sections),
            "encrypted": self.encrypted,
        }
        if self.encryption_info is not None:
            data["encryptionInfo"] = dict(self.encryption_info)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupHeader:
        """
        Create header from a backup document.

        Older documents have no sections list; it is derived from appData.
        """
        sections = data.get("sections")
        if sections is None:
            app_data = data.get("appData") or {}
            sections = [key for key in app_data if key != "encryptedData"]
        return cls(
            version=data.get("version", "unknown"),
            timestamp=data.get("timestamp", ""),
            sections=list(sections),
            encrypted=bool(data.get("encrypted", False)),
            encryption_info=data.get("encryptionInfo"),
            app_version=data.get("appVersion", "unknown"),
        )


@dataclass
class BackupResult:
    """Result of a backup operation."""

    success: bool
    path: Path | None = None
    header: BackupHeader | None = None
    size_bytes: int = 0
    error: str | None = None
    validation_errors: list[str] = field(default_factory=list)


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    success: bool
    sections_restored: list[str] = field(default_factory=list)
    header: BackupHeader | None = None
    error: str | None = None


class BackupManager:
    """
    Creates, inspects and restores backup documents.

    Usage:
        manager = BackupManager(stores, backup_dir, codec=FernetCodec())
        result = manager.create_backup(options)
        restored = manager.restore_backup(result.path, password="...")
    """

    FILE_PREFIX = "arrvault-backup"
    FILE_SUFFIX = ".json"
    PLAIN_VERSION = "1.1"
    ENCRYPTED_VERSION = "1.2"
    SUPPORTED_VERSIONS = ("1.0", "1.1", "1.2")

    def __init__(
        self,
        stores: Mapping[str, SectionStore],
        backup_dir: Path | str,
        codec: SecureBackupCodec | None = None,
    ) -> None:
        """
        Initialize backup manager.

        Args:
            stores: Section stores keyed by section key.
            backup_dir: Default directory for new backups.
            codec: Codec for new encrypted backups. Defaults to FernetCodec.
                   Restores pick the codec named in each backup header.
        """
        self.stores = stores
        self.backup_dir = Path(backup_dir)
        self.codec = codec or FernetCodec()
        self.assembler = BackupAssembler(stores)

    def create_backup(
        self,
        options: ExportOptions,
        output_path: Path | str | None = None,
    ) -> BackupResult:
        """
        Create a backup file for the selected sections.

        Args:
            options: Export options. Validated before anything is read.
            output_path: Directory to save the backup (default: backup_dir).

        Returns:
            BackupResult with success status and backup details.
        """
        validation = validate_export_options(options)
        if not validation.is_valid:
            return BackupResult(
                success=False,
                error="; ".join(validation.errors),
                validation_errors=validation.errors,
            )

        try:
            output_dir = Path(output_path) if output_path else self.backup_dir

            if output_dir.is_file():
                return BackupResult(
                    success=False,
                    error=f"Output path is a file: {output_dir}",
                )

            output_dir.mkdir(parents=True, exist_ok=True)

            payload = self.assembler.assemble(options)
            if not payload:
                return BackupResult(
                    success=False,
                    error="Nothing to back up: the selected sections are empty",
                )

            document = self.build_document(payload, options)
            header = BackupHeader.from_dict(document)

            backup_path = self._new_backup_path(output_dir, options.encrypt_sensitive)
            self._write_document(backup_path, document)

            size_bytes = backup_path.stat().st_size
            logger.info(f"Backup created: {backup_path} ({size_bytes:,} bytes)")

            return BackupResult(
                success=True,
                path=backup_path,
                header=header,
                size_bytes=size_bytes,
            )

        except Exception as e:
            logger.exception("Backup failed")
            return BackupResult(success=False, error=str(e))

    def build_document(
        self,
        payload: dict[str, Any],
        options: ExportOptions,
    ) -> dict[str, Any]:
        """
        Wrap a payload in a backup document, encrypting it if requested.

        Raises:
            SerializationError: If the payload cannot be serialized.
        """
        timestamp = datetime.now(UTC).isoformat()
        sections = payload_sections(payload)

        if not options.encrypt_sensitive:
            header = BackupHeader(
                version=self.PLAIN_VERSION,
                timestamp=timestamp,
                sections=sections,
                app_version=_get_version(),
            )
            return {**header.to_dict(), "appData": payload}

        if not options.password:
            raise BackupError("Password is required for encrypted backup")

        artifact = self.codec.encrypt_sensitive_data(payload, options.password)
        encryption_info: dict[str, Any] = {
            "algorithm": self.codec.algorithm,
            "codec": self.codec.version,
            "salt": artifact.salt,
            "iv": artifact.iv,
        }
        if isinstance(self.codec, FernetCodec):
            encryption_info["iterations"] = self.codec.iterations

        header = BackupHeader(
            version=self.ENCRYPTED_VERSION,
            timestamp=timestamp,
            sections=sections,
            encrypted=True,
            encryption_info=encryption_info,
            app_version=_get_version(),
        )
        logger.info(
            f"Encrypted {len(sections)} sections with {self.codec.algorithm}"
        )
        return {**header.to_dict(), "appData": {"encryptedData": artifact.encrypted_data}}

    def read_backup(self, backup_path: Path | str) -> dict[str, Any]:
        """
        Load and structurally validate a backup document.

        Args:
            backup_path: Path to the backup file.

        Returns:
            The parsed document.

        Raises:
            RestoreError: If the document is not a supported backup.
            OSError: If the file cannot be read.
        """
        backup_path = Path(backup_path)

        with open(backup_path, encoding="utf-8") as f:
            try:
                document = json.load(f)
            except json.JSONDecodeError as e:
                raise RestoreError(
                    f"Backup file is not valid JSON: {backup_path.name}"
                ) from e
            except UnicodeDecodeError as e:
                raise RestoreError(
                    f"Backup file is not UTF-8 text: {backup_path.name}"
                ) from e

        if not isinstance(document, dict):
            raise RestoreError("Invalid backup file format")

        if not document.get("version") or not document.get("timestamp"):
            raise RestoreError("Invalid backup file format: missing version or timestamp")

        if not isinstance(document.get("appData"), dict):
            raise RestoreError("Invalid backup file format: missing appData")

        if document["version"] not in self.SUPPORTED_VERSIONS:
            raise RestoreError(f"Unsupported backup version: {document['version']}")

        service_configs = document["appData"].get("serviceConfigs")
        if service_configs is not None and not isinstance(service_configs, list):
            raise RestoreError(
                "Invalid backup file format: serviceConfigs must be an array"
            )

        if document.get("encrypted"):
            info = document.get("encryptionInfo")
            if not isinstance(info, dict) or not info.get("salt"):
                raise RestoreError("Encrypted backup is missing encryption info")
            if not isinstance(document["appData"].get("encryptedData"), str):
                raise RestoreError("Encrypted backup is missing encrypted data")
            _check_encryption_info(info)

        return document

    def decrypt_backup(
        self,
        document: dict[str, Any],
        password: str | None = None,
    ) -> dict[str, Any]:
        """
        Recover the full payload of a backup document.

        Plaintext sections under appData are merged with the decrypted
        sections, decrypted values taking precedence.

        Raises:
            RestoreError: If a password is needed but missing, or the
                          algorithm is unknown.
            DecryptionError: Wrong password or corrupted ciphertext.
        """
        app_data = dict(document["appData"])

        if not document.get("encrypted"):
            return app_data

        if not password:
            raise RestoreError("Backup is encrypted: a password is required")

        info = document["encryptionInfo"]
        algorithm = info.get("algorithm", LegacyXorCodec.algorithm)
        try:
            codec = get_codec_for_algorithm(
                algorithm,
                iterations=info.get("iterations", PBKDF2_ITERATIONS),
            )
        except ValueError as e:
            raise RestoreError(str(e)) from e

        encrypted_data = app_data.pop("encryptedData")
        decrypted = codec.decrypt_sensitive_data(
            encrypted_data,
            password,
            info["salt"],
            info.get("iv", ""),
        )

        if not isinstance(decrypted, dict):
            raise DecryptionError(DECRYPTION_FAILED_MESSAGE)

        return {**app_data, **decrypted}

    def restore_backup(
        self,
        backup_path: Path | str,
        password: str | None = None,
        sections: Iterable[str] | None = None,
        verify_only: bool = False,
    ) -> RestoreResult:
        """
        Restore sections from a backup file.

        Args:
            backup_path: Path to the backup file.
            password: Password for encrypted backups.
            sections: Section keys (or payload keys) to restore. Default: all
                      sections present in the backup.
            verify_only: Only decrypt and validate, don't restore.

        Returns:
            RestoreResult with success status and restored sections.
        """
        header = None
        try:
            backup_path = Path(backup_path)

            if not backup_path.exists():
                return RestoreResult(
                    success=False,
                    error=f"Backup file not found: {backup_path}",
                )

            document = self.read_backup(backup_path)
            header = BackupHeader.from_dict(document)

            payload = self.decrypt_backup(document, password)

            errors = validate_payload(payload)
            if errors:
                return RestoreResult(
                    success=False,
                    header=header,
                    error=f"Backup payload failed validation: {'; '.join(errors)}",
                )

            payload = _drop_unknown_sections(payload)

            if sections is not None:
                payload = _select_sections(payload, sections)

            if verify_only:
                return RestoreResult(success=True, header=header)

            missing = [
                key for key in payload
                if SECTIONS_BY_PAYLOAD_KEY[key].key not in self.stores
            ]
            if missing:
                return RestoreResult(
                    success=False,
                    header=header,
                    error=f"No store registered for sections: {', '.join(missing)}",
                )

            restored = self._apply_payload(payload)

            logger.info(f"Restore completed: {len(restored)} sections")

            return RestoreResult(
                success=True,
                sections_restored=restored,
                header=header,
            )

        except DecryptionError as e:
            logger.warning(f"Restore failed: could not decrypt {backup_path}")
            return RestoreResult(success=False, header=header, error=str(e))

        except Exception as e:
            logger.exception("Restore failed")
            return RestoreResult(success=False, header=header, error=str(e))

    def verify_backup(
        self,
        backup_path: Path | str,
        password: str | None = None,
    ) -> tuple[bool, list[str]]:
        """
        Verify a backup file.

        Without a password only the header of an encrypted backup is
        checked. With one, the payload is decrypted and validated too.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        backup_path = Path(backup_path)

        if not backup_path.exists():
            return False, [f"Backup file not found: {backup_path}"]

        try:
            document = self.read_backup(backup_path)
            if document.get("encrypted") and not password:
                return True, []
            payload = self.decrypt_backup(document, password)
        except (RestoreError, DecryptionError, OSError) as e:
            return False, [str(e)]

        errors = validate_payload(payload)
        return not errors, errors

    def get_backup_info(self, backup_path: Path | str) -> BackupHeader | None:
        """
        Get the header of a backup without decrypting it.

        Returns:
            BackupHeader or None if the file is not a readable backup.
        """
        try:
            return BackupHeader.from_dict(self.read_backup(backup_path))
        except (RestoreError, OSError) as e:
            logger.debug(f"Could not read backup header from {backup_path}: {e}")
            return None

    def list_backups(self, directory: Path | str | None = None) -> list[Path]:
        """List backup files in a directory, newest first."""
        directory = Path(directory) if directory else self.backup_dir
        if not directory.is_dir():
            return []
        pattern = f"{self.FILE_PREFIX}-*{self.FILE_SUFFIX}"
        return sorted(directory.glob(pattern), reverse=True)

    def get_backup_file_size(self, backup_path: Path | str) -> int:
        """Return the size of a backup file in bytes, 0 if it is missing."""
        backup_path = Path(backup_path)
        if not backup_path.exists():
            return 0
        return backup_path.stat().st_size

    def delete_backup(self, backup_path: Path | str) -> None:
        """
        Delete a backup file.

        Raises:
            BackupError: If the file does not exist.
        """
        backup_path = Path(backup_path)
        if not backup_path.exists():
            raise BackupError(f"Backup file not found: {backup_path}")
        backup_path.unlink()
        logger.info(f"Deleted backup {backup_path}")

    def _apply_payload(self, payload: dict[str, Any]) -> list[str]:
        """
        Apply every section, rolling back all of them if one fails.

        Returns:
            Section keys restored, in catalog order.
        """
        applied: list[tuple[SectionStore, Any]] = []
        restored: list[str] = []

        try:
            for payload_key in payload_sections(payload):
                section = SECTIONS_BY_PAYLOAD_KEY[payload_key]
                store = self.stores[section.key]
                applied.append((store, store.read_snapshot()))
                store.apply_snapshot(payload[payload_key])
                restored.append(section.key)
                logger.info(f"Restored section {section.key}")
        except Exception:
            logger.error(f"Restore failed after {len(restored)} sections, rolling back")
            self._rollback(applied)
            raise

        return restored

    def _rollback(self, applied: list[tuple[SectionStore, Any]]) -> None:
        for store, snapshot in reversed(applied):
            try:
                store.apply_snapshot(snapshot)
            except Exception:
                logger.exception(f"Rollback failed for store {store.name}")

    def _new_backup_path(self, output_dir: Path, encrypted: bool) -> Path:
        """Pick a backup filename that does not exist yet."""
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        suffix = "-encrypted" if encrypted else ""
        stem = f"{self.FILE_PREFIX}-{timestamp}{suffix}"

        backup_path = output_dir / f"{stem}{self.FILE_SUFFIX}"
        counter = 1
        while backup_path.exists():
            backup_path = output_dir / f"{stem}-{counter}{self.FILE_SUFFIX}"
            counter += 1
        return backup_path

    def _write_document(self, path: Path, document: dict[str, Any]) -> None:
        """
        Write a backup document atomically.

        The document is written to a temp file in the target directory and
        renamed into place, so a failed write never leaves a partial backup.
        """
        temp_fd, temp_path = tempfile.mkstemp(
            prefix=f".{path.stem}-",
            suffix=".tmp",
            dir=str(path.parent),
        )
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            try:
                os.chmod(temp_path, 0o600)
            except OSError:
                # Windows or permission error - continue anyway
                pass
            os.replace(temp_path, path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise


def _check_encryption_info(info: dict[str, Any]) -> None:
    """Reject encryptionInfo values of the wrong type."""
    for key in ("salt", "iv", "algorithm"):
        if key in info and not isinstance(info[key], str):
            raise RestoreError(f"Invalid encryption info: {key} must be a string")

    iterations = info.get("iterations")
    if iterations is not None and (
        isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 1
    ):
        raise RestoreError("Invalid encryption info: iterations must be a positive integer")


def _drop_unknown_sections(payload: dict[str, Any]) -> dict[str, Any]:
    """Remove payload keys this version has no section for."""
    unknown = [key for key in payload if key not in SECTIONS_BY_PAYLOAD_KEY]
    if unknown:
        logger.warning(f"Ignoring unsupported backup sections: {', '.join(unknown)}")
    return {key: value for key, value in payload.items() if key in SECTIONS_BY_PAYLOAD_KEY}


def _select_sections(payload: dict[str, Any], sections: Iterable[str]) -> dict[str, Any]:
    """Filter a payload to the requested sections."""
    wanted = set()
    for name in sections:
        if name in SECTIONS_BY_KEY:
            wanted.add(SECTIONS_BY_KEY[name].payload_key)
        elif name in SECTIONS_BY_PAYLOAD_KEY:
            wanted.add(name)
        else:
            raise RestoreError(f"Unknown backup section: {name}")
    return {key: value for key, value in payload.items() if key in wanted}


def _get_version() -> str:
    """Get arrvault version."""
    try:
        from arrvault import __version__

        return __version__
    except ImportError:
        return "unknown"
