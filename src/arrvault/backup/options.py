"""
Export options and the backup section catalog.

The catalog is the single registry of optional backup sections. Each entry
ties together the export option flag, the key used in the backup payload,
the default selection and whether the section holds credentials.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from typing import Any

MIN_PASSWORD_LENGTH = 8

NO_SECTION_ERROR = "Please select at least one section to back up"
PASSWORD_LENGTH_ERROR = (
    f"Password must be at least {MIN_PASSWORD_LENGTH} characters long "
    "when encryption is enabled"
)


@dataclass(frozen=True)
class BackupSection:
    """Catalog entry for one optional backup section."""

    key: str
    option: str
    payload_key: str
    label: str
    enabled_by_default: bool
    sensitive: bool
    payload_type: type = dict


# Order is the field order of assembled payloads.
BACKUP_SECTIONS: tuple[BackupSection, ...] = (
    BackupSection(
        key="settings",
        option="include_settings",
        payload_key="settings",
        label="App settings",
        enabled_by_default=True,
        sensitive=True,
    ),
    BackupSection(
        key="serviceConfigs",
        option="include_service_configs",
        payload_key="serviceConfigs",
        label="Service configurations",
        enabled_by_default=True,
        sensitive=True,
        payload_type=list,
    ),
    BackupSection(
        key="tmdbCredentials",
        option="include_tmdb_credentials",
        payload_key="tmdbCredentials",
        label="TMDB credentials",
        enabled_by_default=True,
        sensitive=True,
    ),
    BackupSection(
        key="networkHistory",
        option="include_network_history",
        payload_key="networkScanHistory",
        label="Network scan history",
        enabled_by_default=True,
        sensitive=False,
        payload_type=list,
    ),
    BackupSection(
        key="recentIPs",
        option="include_recent_ips",
        payload_key="recentIPs",
        label="Recently used IP addresses",
        enabled_by_default=True,
        sensitive=False,
        payload_type=list,
    ),
    BackupSection(
        key="downloadConfig",
        option="include_download_config",
        payload_key="downloadConfig",
        label="Download configuration",
        enabled_by_default=True,
        sensitive=False,
    ),
    BackupSection(
        key="servicesViewState",
        option="include_services_view_state",
        payload_key="servicesViewState",
        label="Services view state",
        enabled_by_default=True,
        sensitive=False,
    ),
    BackupSection(
        key="libraryFilters",
        option="include_library_filters",
        payload_key="libraryFilters",
        label="Library filters",
        enabled_by_default=True,
        sensitive=False,
    ),
    BackupSection(
        key="bookmarkHealthChecks",
        option="include_bookmark_health_checks",
        payload_key="bookmarkHealthChecks",
        label="Bookmark health checks",
        enabled_by_default=True,
        sensitive=False,
        payload_type=list,
    ),
    BackupSection(
        key="byokConfig",
        option="include_byok_config",
        payload_key="byokConfig",
        label="Bring-your-own API keys",
        enabled_by_default=True,
        sensitive=True,
    ),
    BackupSection(
        key="aiConfig",
        option="include_ai_config",
        payload_key="aiConfig",
        label="AI feature toggles",
        enabled_by_default=True,
        sensitive=False,
    ),
)

SECTIONS_BY_KEY: dict[str, BackupSection] = {s.key: s for s in BACKUP_SECTIONS}
SECTIONS_BY_PAYLOAD_KEY: dict[str, BackupSection] = {
    s.payload_key: s for s in BACKUP_SECTIONS
}

# Flags that select a section on their own. include_service_credentials only
# modifies serviceConfigs and does not count.
SECTION_OPTIONS: tuple[str, ...] = tuple(s.option for s in BACKUP_SECTIONS)


def _to_camel(name: str) -> str:
    head, *rest = name.split("_")
    camel = head + "".join(part.capitalize() for part in rest)
    # includeRecentIps -> includeRecentIPs to match existing backups
    return camel.replace("Ips", "IPs")


@dataclass
class ExportOptions:
    """
    User choices for a backup export.

    Attributes:
        include_*: Section selection flags, see BACKUP_SECTIONS.
        include_service_credentials: Keep API keys, usernames and passwords
            on exported service configurations.
        encrypt_sensitive: Encrypt the assembled payload with a password.
        password: Backup password, required when encrypting.
    """

    include_settings: bool = False
    include_service_configs: bool = False
    include_service_credentials: bool = False
    include_tmdb_credentials: bool = False
    include_network_history: bool = False
    include_recent_ips: bool = False
    include_download_config: bool = False
    include_services_view_state: bool = False
    include_library_filters: bool = False
    include_bookmark_health_checks: bool = False
    include_byok_config: bool = False
    include_ai_config: bool = False
    encrypt_sensitive: bool = False
    password: str | None = field(default=None, repr=False)

    def selected_sections(self) -> list[BackupSection]:
        """Return the catalog sections selected by these options."""
        return [s for s in BACKUP_SECTIONS if getattr(self, s.option)]

    def to_dict(self) -> dict[str, Any]:
        """Convert options to the camelCase wire representation."""
        data = {_to_camel(name): value for name, value in asdict(self).items()}
        if self.password is None:
            del data["password"]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExportOptions:
        """
        Create options from a camelCase or snake_case mapping.

        Unknown keys are ignored and missing flags default to False.
        """
        values: dict[str, Any] = {}
        for f in fields(cls):
            camel = _to_camel(f.name)
            if camel in data:
                values[f.name] = data[camel]
            elif f.name in data:
                values[f.name] = data[f.name]
        return cls(**values)


@dataclass(frozen=True)
class BackupSectionDescriptor:
    """Default selection and sensitivity of a section, for rendering."""

    enabled: bool
    sensitive: bool

    def to_dict(self) -> dict[str, bool]:
        """Convert descriptor to dictionary."""
        return {"enabled": self.enabled, "sensitive": self.sensitive}


@dataclass
class ValidationResult:
    """Result of validating export options."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)


def get_default_export_options() -> ExportOptions:
    """Return the catalog defaults: every section on, encryption off."""
    options = ExportOptions(include_service_credentials=True)
    for section in BACKUP_SECTIONS:
        setattr(options, section.option, section.enabled_by_default)
    return options


def get_backup_selection_config() -> dict[str, BackupSectionDescriptor]:
    """Return the default state and sensitivity of every section."""
    return {
        section.key: BackupSectionDescriptor(
            enabled=section.enabled_by_default,
            sensitive=section.sensitive,
        )
        for section in BACKUP_SECTIONS
    }


def validate_export_options(
    options: ExportOptions | Mapping[str, Any],
) -> ValidationResult:
    """
    Validate export options before assembling a backup.

    Rules:
        - At least one section flag must be set.
        - When encrypting, the password must be at least
          MIN_PASSWORD_LENGTH characters. Without encryption the
          password is not checked.

    Args:
        options: ExportOptions or a camelCase mapping.

    Returns:
        ValidationResult listing every failed rule.
    """
    if not isinstance(options, ExportOptions):
        options = ExportOptions.from_dict(options)

    errors: list[str] = []

    if not any(getattr(options, name) for name in SECTION_OPTIONS):
        errors.append(NO_SECTION_ERROR)

    if options.encrypt_sensitive and len(options.password or "") < MIN_PASSWORD_LENGTH:
        errors.append(PASSWORD_LENGTH_ERROR)

    return ValidationResult(is_valid=not errors, errors=errors)
