# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving and parsing Ticket-Folders configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/ticket-folders/  (default: ~/.config/ticket-folders/)
#
# The config file is a small key-value store on top of TOML. Each top-level
# table is one key:
#
#   [general]
#   default_account = "work"
#
#   [accounts.work]
#   email = "support@example.com"
#   imap_host = "imap.example.com"
#
#   [tickets-settings]
#   ticketURL = "https://support.example.com/ticket/"
#   openedFolder = "Tickets/Open"
#   closedFolder = "Tickets/Closed"
#   syncFolders = "INBOX; Support"
#   openFoldersAutoSync = "true"
#   autoSyncTime = "5"
#   debugMode = false
#
# The [tickets-settings] table is kept in its raw, loosely typed form (values
# may be strings or booleans) and parsed into TicketSettings on every read.
# =============================================================================

import asyncio
import logging
import os
import re
import tomllib  # Built into Python 3.11+
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import tomli_w  # For writing TOML (tomllib is read-only)

from ticket_folders.core import Account, normalize_path
from ticket_folders.errors import ConfigurationError


logger = logging.getLogger(__name__)


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "ticket-folders"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for Ticket-Folders.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/ticket-folders/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


def config_file_path() -> Path:
    """Returns the path to the main config file."""
    return get_xdg_config_home() / "config.toml"


# =============================================================================
# Ticket Settings
# =============================================================================

# Key of the settings table inside the store
SETTINGS_KEY = "tickets-settings"

DEFAULT_AUTO_SYNC_MINUTES = 5
DEFAULT_SYNC_FOLDERS = ("INBOX",)


def _parse_flag(value: Any) -> bool:
    """Only an explicit True or "true" switches a flag on."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def parse_sync_folders(value: Any) -> tuple[str, ...]:
    """
    Split the comma/semicolon separated sync folder setting.

    Example:
        >>> parse_sync_folders(" INBOX ; /Support/ ,, ")
        ('INBOX', 'Support')
    """
    if isinstance(value, (list, tuple)):
        parts = [str(part) for part in value]
    else:
        parts = re.split(r"[,;]", str(value or ""))
    folders = tuple(p for p in (normalize_path(part) for part in parts) if p)
    return folders or DEFAULT_SYNC_FOLDERS


@dataclass(frozen=True)
class TicketSettings:
    """
    Parsed snapshot of the ticket settings.

    Attributes:
        ticket_url: Ticket system URL the ticket ID is appended to (or
                    substituted into, see core.ticket.ticket_url).
        opened_folder: Root folder of open case folders (e.g. "Tickets/Open").
        closed_folder: Root folder of closed case folders.
        sync_folders: Folders scanned for ticket mail (default: INBOX).
        auto_sync_minutes: Auto-sync period in minutes (>= 1).
        auto_sync_enabled: Whether the periodic auto-sync runs at all.
        debug_mode: Enables debug logging.
    """
    ticket_url: str = ""
    opened_folder: str = ""
    closed_folder: str = ""
    sync_folders: tuple[str, ...] = DEFAULT_SYNC_FOLDERS
    auto_sync_minutes: int = DEFAULT_AUTO_SYNC_MINUTES
    auto_sync_enabled: bool = False
    debug_mode: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> "TicketSettings":
        """
        Parse the raw [tickets-settings] table.

        Missing keys fall back to the defaults above.

        Raises:
            ConfigurationError: If autoSyncTime is not a positive integer.
        """
        if not raw:
            return cls()

        period_raw = raw.get("autoSyncTime")
        if period_raw in (None, ""):
            period = DEFAULT_AUTO_SYNC_MINUTES
        else:
            try:
                period = int(str(period_raw).strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid auto-sync period {period_raw!r}: expected a whole number of minutes"
                ) from e
            if period < 1:
                raise ConfigurationError(
                    f"Invalid auto-sync period {period}: must be at least 1 minute"
                )

        return cls(
            ticket_url=str(raw.get("ticketURL") or "").strip(),
            opened_folder=normalize_path(raw.get("openedFolder")),
            closed_folder=normalize_path(raw.get("closedFolder")),
            sync_folders=parse_sync_folders(raw.get("syncFolders")),
            auto_sync_minutes=period,
            auto_sync_enabled=_parse_flag(raw.get("openFoldersAutoSync")),
            debug_mode=_parse_flag(raw.get("debugMode")),
        )

    def require_roots(self) -> None:
        """
        Raises:
            ConfigurationError: If the opened or closed folder is not set.
        """
        if not self.opened_folder or not self.closed_folder:
            raise ConfigurationError(
                "Opened/Closed folder paths are not configured in settings."
            )


# =============================================================================
# Account Configuration
# =============================================================================

@dataclass
class Config:
    """
    Account configuration read from the config file.

    Attributes:
        default_account: Name of the account new case folders go to.
        accounts: Configured IMAP accounts, keyed by name.
    """
    default_account: str = ""
    accounts: dict[str, Account] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from the config file.

        If the config file doesn't exist, returns default configuration.

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or config_file_path()
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        """
        Create a Config from the parsed TOML document.

        The default account is the one named in [general], or the first
        configured account if none is named.
        """
        config = cls()

        general = data.get("general", {})
        config.default_account = general.get("default_account", "")

        # Accounts - each key under [accounts] is an account name
        accounts_data = data.get("accounts", {})
        for name, acct_data in accounts_data.items():
            config.accounts[name] = Account(
                name=name,
                email=acct_data.get("email", ""),
                imap_host=acct_data.get("imap_host", ""),
                imap_port=acct_data.get("imap_port", 993),
                imap_security=acct_data.get("imap_security", "ssl"),
                enabled=acct_data.get("enabled", True),
            )

        if not config.default_account and config.accounts:
            config.default_account = next(iter(config.accounts))
        if config.default_account in config.accounts:
            config.accounts[config.default_account].is_default = True

        return config


# =============================================================================
# Settings Store
# =============================================================================

# Called with (key, new_value); new_value is None when the key was removed
ChangeCallback = Callable[[str, Any], None]


class SettingsStore:
    """
    Key-value settings store persisted as a TOML file.

    Every write goes straight to disk and notifies the change listeners.
    Edits made to the file by someone else are picked up by `reload()`,
    which `watch()` calls whenever the file's modification time changes.

    Usage:
        >>> store = SettingsStore()
        >>> store.on_change(lambda key, value: print(key, "changed"))
        >>> store.set("tickets-settings", {"openedFolder": "Tickets/Open"})
        tickets-settings changed
        >>> store.settings().opened_folder
        'Tickets/Open'
    """

    # How often watch() polls the file (seconds)
    WATCH_INTERVAL = 2.0

    def __init__(self, path: Path | None = None) -> None:
        """
        Args:
            path: Config file location (default: XDG config file).
        """
        self.path = path or config_file_path()
        self._listeners: list[ChangeCallback] = []
        self._mtime = self._stat()
        self._data = self._read()

    # -------------------------------------------------------------------------
    # Key-value interface
    # -------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for `key`."""
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store `value` under `key` and notify listeners."""
        self._data[key] = value
        self._write()
        self._notify(key, value)

    def remove(self, key: str) -> None:
        """Delete `key` (no-op if absent) and notify listeners."""
        if key not in self._data:
            return
        del self._data[key]
        self._write()
        self._notify(key, None)

    def on_change(self, callback: ChangeCallback) -> None:
        """Register a listener called after every change."""
        self._listeners.append(callback)

    # -------------------------------------------------------------------------
    # Typed views
    # -------------------------------------------------------------------------

    def settings(self) -> TicketSettings:
        """Parse the current ticket settings snapshot."""
        return TicketSettings.from_raw(self.get(SETTINGS_KEY))

    def update_settings(self, **values: Any) -> None:
        """
        Merge raw values into the ticket settings table.

        A value of None removes that setting.
        """
        raw = dict(self.get(SETTINGS_KEY) or {})
        for key, value in values.items():
            if value is None:
                raw.pop(key, None)
            else:
                raw[key] = value
        self.set(SETTINGS_KEY, raw)

    def config(self) -> Config:
        """Account configuration from the same file."""
        return Config.from_dict(self._data)

    # -------------------------------------------------------------------------
    # External changes
    # -------------------------------------------------------------------------

    def reload(self) -> list[str]:
        """
        Re-read the file and notify listeners of every key that changed.

        Returns:
            The changed keys.
        """
        self._mtime = self._stat()
        new_data = self._read()
        changed = [
            key for key in set(self._data) | set(new_data)
            if self._data.get(key) != new_data.get(key)
        ]
        self._data = new_data
        for key in sorted(changed):
            self._notify(key, new_data.get(key))
        return changed

    async def watch(self, interval: float | None = None) -> None:
        """
        Poll the config file and reload it when it was modified.

        Runs until cancelled. A broken file is logged and skipped; the last
        good values stay in effect.
        """
        interval = interval or self.WATCH_INTERVAL
        logger.debug(f"Watching {self.path} for changes")
        while True:
            await asyncio.sleep(interval)
            if self._stat() == self._mtime:
                continue
            try:
                changed = self.reload()
            except ConfigError as e:
                logger.error(f"Ignoring invalid config change: {e}")
                continue
            if changed:
                logger.info(f"Config file changed: {', '.join(sorted(changed))}")

    # -------------------------------------------------------------------------
    # File access
    # -------------------------------------------------------------------------

    def _stat(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except FileNotFoundError:
            return None

    def _read(self) -> dict[str, Any]:
        """
        Load the TOML file. A missing file is an empty store.

        Raises:
            ConfigError: If the file exists but is not valid TOML.
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "rb") as f:
                return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid config file {self.path}: {e}") from e

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "wb") as f:
            tomli_w.dump(self._data, f)
        self._mtime = self._stat()

    def _notify(self, key: str, value: Any) -> None:
        for callback in list(self._listeners):
            try:
                callback(key, value)
            except Exception as e:
                logger.error(f"Error in settings change listener: {e}")


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(ConfigurationError):
    """Raised when the config file cannot be loaded or parsed."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print the config paths for debugging.
    Useful for users wondering where their config is stored.
    """
    print(f"Config:       {get_xdg_config_home()}")
    print(f"Config file:  {config_file_path()}")
