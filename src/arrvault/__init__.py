"""
arrvault - Backup export and restore for self-hosted media service controllers

Keep your *arr setup one file away from a fresh install.

arrvault assembles the configuration of a media-management controller
(app settings, Sonarr/Radarr/qBittorrent service configurations and their
credentials, network scan history, download settings, view state) into a
portable JSON backup, optionally encrypted with a password.

Key Features:
    - Per-section selection with sensitivity markers
    - Password encryption: PBKDF2 + Fernet, plus the legacy XOR scheme for
      reading older backups
    - Atomic backup writes
    - All-or-nothing restores with rollback
"""

__version__ = "0.1.0"

from arrvault.backup.options import (
    get_backup_selection_config,
    get_default_export_options,
    validate_export_options,
)
from arrvault.crypto.codec import decrypt_sensitive_data, encrypt_sensitive_data

__all__ = [
    "__version__",
    "encrypt_sensitive_data",
    "decrypt_sensitive_data",
    "validate_export_options",
    "get_default_export_options",
    "get_backup_selection_config",
]
