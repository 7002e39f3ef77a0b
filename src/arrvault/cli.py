"""
Command-line interface for arrvault.

Provides commands to initialize configuration, list backup sections, export
and restore backups, and inspect backup files.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import os
import sys
from pathlib import Path
from typing import NoReturn

from arrvault import __version__
from arrvault.backup import (
    BACKUP_SECTIONS,
    BackupManager,
    ExportOptions,
    get_backup_selection_config,
    get_default_export_options,
)
from arrvault.backup.options import SECTIONS_BY_KEY
from arrvault.config.settings import (
    ConfigurationError,
    Settings,
    get_config_path,
    load_config,
    save_config,
)
from arrvault.crypto.codec import get_codec
from arrvault.stores import build_file_stores

# Set up logging
logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "ARRVAULT_BACKUP_PASSWORD"
SECTION_CHOICES = [section.key for section in BACKUP_SECTIONS]

# Global verbosity settings (set during main() based on args)
_quiet_mode = False
_verbose_level = 0


def set_output_mode(quiet: bool = False, verbose: int = 0) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
        verbose: Verbosity level (0=normal, 1+=verbose).
    """
    global _quiet_mode, _verbose_level
    _quiet_mode = quiet
    _verbose_level = verbose


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output like JSON).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for arrvault CLI."""
    parser = argparse.ArgumentParser(
        prog="arrvault",
        description="Backup export and restore for self-hosted media service controllers",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"arrvault {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.arrvault/config.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize arrvault configuration",
        description="Create the config file and data/backup directories.",
    )
    init_parser.set_defaults(func=cmd_init)

    # sections command
    sections_parser = subparsers.add_parser(
        "sections",
        help="List backup sections",
        description="Show every backup section with its default and sensitivity.",
    )
    sections_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    sections_parser.set_defaults(func=cmd_sections)

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Create a backup",
        description="Export the selected sections to a backup file.",
    )
    export_parser.add_argument(
        "-o", "--output",
        metavar="DIR",
        help="Output directory (default: configured backup_dir)",
    )
    export_parser.add_argument(
        "--only",
        nargs="+",
        metavar="SECTION",
        choices=SECTION_CHOICES,
        help="Export only these sections",
    )
    export_parser.add_argument(
        "--exclude",
        nargs="+",
        metavar="SECTION",
        choices=SECTION_CHOICES,
        default=[],
        help="Leave these sections out",
    )
    export_parser.add_argument(
        "--no-credentials",
        action="store_true",
        help="Strip API keys, usernames and passwords from service configurations",
    )
    export_parser.add_argument(
        "--encrypt",
        action="store_true",
        help=f"Encrypt the backup with a password (or ${PASSWORD_ENV_VAR})",
    )
    export_parser.set_defaults(func=cmd_export)

    # restore command
    restore_parser = subparsers.add_parser(
        "restore",
        help="Restore from a backup",
        description="Restore sections from a backup file. Nothing is written unless "
                    "the whole backup decrypts and validates.",
    )
    restore_parser.add_argument(
        "backup_file",
        metavar="BACKUP",
        help="Path to backup file",
    )
    restore_parser.add_argument(
        "--section",
        nargs="+",
        metavar="SECTION",
        choices=SECTION_CHOICES,
        dest="sections",
        help="Restore only these sections",
    )
    restore_parser.add_argument(
        "--verify-only",
        action="store_true",
        help="Decrypt and validate without restoring",
    )
    restore_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompt",
    )
    restore_parser.set_defaults(func=cmd_restore)

    # inspect command
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Show backup header",
        description="Show the unencrypted header of a backup file.",
    )
    inspect_parser.add_argument(
        "backup_file",
        metavar="BACKUP",
        help="Path to backup file",
    )
    inspect_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    inspect_parser.set_defaults(func=cmd_inspect)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="List backup files",
        description="List backups in the backup directory, newest first.",
    )
    list_parser.add_argument(
        "--dir",
        metavar="DIR",
        help="Directory to list (default: configured backup_dir)",
    )
    list_parser.set_defaults(func=cmd_list)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose >= 1:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def load_settings(args: argparse.Namespace) -> Settings:
    """Load settings honoring --config and the configured log level."""
    config_path = Path(args.config) if args.config else None
    settings = load_config(config_path)
    if not args.verbose and not args.quiet:
        logging.getLogger().setLevel(settings.log_level)
    return settings


def build_manager(settings: Settings) -> BackupManager:
    """Wire stores, codec and manager from settings."""
    stores = build_file_stores(Path(settings.data_dir))
    codec = get_codec(settings.codec.version, iterations=settings.codec.kdf_iterations)
    return BackupManager(stores, Path(settings.backup_dir), codec=codec)


def build_export_options(args: argparse.Namespace) -> ExportOptions:
    """Turn export arguments into ExportOptions (password not set)."""
    options = get_default_export_options()

    if args.only:
        for section in BACKUP_SECTIONS:
            setattr(options, section.option, section.key in args.only)

    for key in args.exclude:
        setattr(options, SECTIONS_BY_KEY[key].option, False)

    if args.no_credentials:
        options.include_service_credentials = False

    options.encrypt_sensitive = args.encrypt
    return options


def read_password(confirm: bool = False) -> str:
    """
    Read the backup password.

    Uses $ARRVAULT_BACKUP_PASSWORD when set, otherwise prompts.
    """
    env_password = os.environ.get(PASSWORD_ENV_VAR)
    if env_password:
        return env_password

    password = getpass.getpass("Backup password: ")
    if confirm:
        again = getpass.getpass("Confirm password: ")
        if password != again:
            raise ValueError("Passwords do not match")
    return password


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize arrvault configuration."""
    config_path = Path(args.config) if args.config else get_config_path()

    output("arrvault Initialization")
    output("=" * 50)
    output()

    if config_path.exists():
        output(f"arrvault is already initialized: {config_path}")
        return 0

    settings = Settings()
    try:
        save_config(settings, config_path)
    except ConfigurationError as e:
        output_error(f"Error creating configuration: {e}")
        return 1

    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.backup_dir).mkdir(parents=True, exist_ok=True)

    output(f"Configuration file created: {config_path}")
    output(f"Data directory: {settings.data_dir}")
    output(f"Backup directory: {settings.backup_dir}")
    output()
    output("Next steps:")
    output("  1. Run 'arrvault sections' to see what can be backed up")
    output("  2. Run 'arrvault export --encrypt' to create an encrypted backup")
    return 0


def cmd_sections(args: argparse.Namespace) -> int:
    """List backup sections."""
    config = get_backup_selection_config()

    if args.json:
        data = {key: descriptor.to_dict() for key, descriptor in config.items()}
        output(json.dumps(data, indent=2), force=True)
        return 0

    output(f"{'Section':<24} {'Default':<9} {'Sensitive':<10} Description")
    output("-" * 72)
    for section in BACKUP_SECTIONS:
        descriptor = config[section.key]
        default = "on" if descriptor.enabled else "off"
        sensitive = "yes" if descriptor.sensitive else "no"
        output(f"{section.key:<24} {default:<9} {sensitive:<10} {section.label}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Create a backup."""
    settings = load_settings(args)
    manager = build_manager(settings)
    options = build_export_options(args)

    output("arrvault Export")
    output("=" * 50)
    output()

    selected = [section.key for section in options.selected_sections()]
    output(f"Sections: {', '.join(selected) or 'none'}")
    output(f"Include credentials: {options.include_service_credentials}")
    output(f"Encrypt: {options.encrypt_sensitive}")
    output()

    if options.encrypt_sensitive:
        try:
            options.password = read_password(confirm=True)
        except ValueError as e:
            output_error(f"Error: {e}")
            return 1

    result = manager.create_backup(
        options,
        output_path=Path(args.output) if args.output else None,
    )

    if not result.success:
        if result.validation_errors:
            output_error("Invalid export options:")
            for error in result.validation_errors:
                output_error(f"  - {error}")
        else:
            output_error(f"Backup failed: {result.error}")
        return 1

    output("Backup created successfully!")
    output()
    output(f"  File: {result.path}")
    output(f"  Size: {result.size_bytes:,} bytes")
    if result.header:
        output(f"  Sections: {', '.join(result.header.sections)}")
        if result.header.encrypted and result.header.encryption_info:
            output(f"  Encryption: {result.header.encryption_info['algorithm']}")
    output()
    output("To restore from this backup, run:")
    output(f"  arrvault restore {result.path}")
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore from a backup file."""
    backup_path = Path(args.backup_file)

    if not backup_path.exists():
        output_error(f"Error: Backup file not found: {backup_path}")
        return 1

    settings = load_settings(args)
    manager = build_manager(settings)

    header = manager.get_backup_info(backup_path)
    if header is None:
        output_error(f"Error: Not a valid backup file: {backup_path}")
        return 1

    output("arrvault Restore")
    output("=" * 50)
    output()
    output(f"Backup file: {backup_path}")
    output(f"  Created: {header.timestamp}")
    output(f"  Version: {header.version}")
    output(f"  Sections: {', '.join(header.sections)}")
    output(f"  Encrypted: {header.encrypted}")
    output()

    password = None
    if header.encrypted:
        password = read_password()

    if not args.verify_only and not args.force:
        output("WARNING: This will overwrite the restored sections.")
        response = input("Proceed with restore? [y/N]: ").strip().lower()
        if response not in ("y", "yes"):
            output("Restore cancelled.")
            return 0

    result = manager.restore_backup(
        backup_path,
        password=password,
        sections=args.sections,
        verify_only=args.verify_only,
    )

    if not result.success:
        output_error(f"Restore failed: {result.error}")
        return 1

    if args.verify_only:
        output("Backup verified successfully (--verify-only specified)")
        return 0

    output("Restore completed successfully!")
    output(f"  Sections restored: {', '.join(result.sections_restored) or 'none'}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show the header of a backup file."""
    settings = load_settings(args)
    manager = build_manager(settings)

    header = manager.get_backup_info(Path(args.backup_file))
    if header is None:
        output_error(f"Error: Not a valid backup file: {args.backup_file}")
        return 1

    if args.json:
        data = header.to_dict()
        info = data.get("encryptionInfo")
        if info:
            data["encryptionInfo"] = {k: v for k, v in info.items() if k not in ("salt", "iv")}
        output(json.dumps(data, indent=2), force=True)
        return 0

    output(f"Version:     {header.version}")
    output(f"Created:     {header.timestamp}")
    output(f"App version: {header.app_version}")
    output(f"Sections:    {', '.join(header.sections) or 'none'}")
    output(f"Encrypted:   {header.encrypted}")
    if header.encryption_info:
        output(f"Algorithm:   {header.encryption_info.get('algorithm', 'unknown')}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List backup files."""
    settings = load_settings(args)
    manager = build_manager(settings)

    backups = manager.list_backups(Path(args.dir) if args.dir else None)
    if not backups:
        output("No backups found.")
        return 0

    for path in backups:
        size = manager.get_backup_file_size(path)
        output(f"{path.name:<60} {size:>12,} bytes")
    return 0


def main() -> NoReturn:
    """Main entry point for arrvault CLI."""
    parser = create_parser()
    args = parser.parse_args()

    # Set up logging and output mode
    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet, args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
