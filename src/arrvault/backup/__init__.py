"""
Backup export and restore for arrvault.

This module selects application state by section, assembles it into a
portable JSON document, optionally encrypts it with a password and restores
it back into the section stores.

Usage:
    from arrvault.backup import BackupManager, get_default_export_options

    options = get_default_export_options()
    options.encrypt_sensitive = True
    options.password = "correct horse battery"

    manager = BackupManager(stores, backup_dir)
    result = manager.create_backup(options)

    # Restore from backup
    result = manager.restore_backup(result.path, password=options.password)
"""

from arrvault.backup.options import (
    BACKUP_SECTIONS,
    BackupSection,
    BackupSectionDescriptor,
    ExportOptions,
    ValidationResult,
    get_backup_selection_config,
    get_default_export_options,
    validate_export_options,
)
from arrvault.backup.assembler import (
    AssemblyError,
    BackupAssembler,
    validate_payload,
)
from arrvault.backup.manager import (
    BackupError,
    BackupHeader,
    BackupManager,
    BackupResult,
    RestoreError,
    RestoreResult,
)

__all__ = [
    # Options and catalog
    "ExportOptions",
    "BackupSection",
    "BackupSectionDescriptor",
    "ValidationResult",
    "BACKUP_SECTIONS",
    "get_default_export_options",
    "get_backup_selection_config",
    "validate_export_options",
    # Assembly
    "BackupAssembler",
    "AssemblyError",
    "validate_payload",
    # Manager
    "BackupManager",
    "BackupHeader",
    "BackupResult",
    "RestoreResult",
    "BackupError",
    "RestoreError",
]
