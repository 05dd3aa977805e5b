# =============================================================================
# Ticket-Folders Command Line
# =============================================================================
# Thin front end over TicketService:
#
#   ticket-folders check "Tickets/Open"
#   ticket-folders new "Acme printer" --subject "Re: Ticket ID: 12345"
#   ticket-folders sync --folder "Tickets/Open/12345 - Acme printer"
#   ticket-folders close --folder "Tickets/Open/12345 - Acme printer"
#   ticket-folders settings set autoSyncTime 10
#   ticket-folders run                  # auto-sync until interrupted
#
# There is no mail client window to ask for the displayed folder, so the
# commands that act on it take it as --folder.
#
# The app manages:
#   - Logging setup (and the debugMode setting)
#   - Building the IMAP provider from the configured accounts
#   - Printing results; exit status 1 when an operation fails
# =============================================================================

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from ticket_folders import __app_name__, __version__
from ticket_folders.config import (
    SETTINGS_KEY,
    ConfigError,
    SettingsStore,
    print_paths,
)
from ticket_folders.errors import ConfigurationError
from ticket_folders.providers.imap import IMAPProvider
from ticket_folders.sync import FolderResolver, ResolvedCurrentFolder, TicketService


logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] [ticket-folders] [%(name)s] %(levelname)s: %(message)s"

# Raw keys of the [tickets-settings] table
SETTING_NAMES = (
    "ticketURL",
    "openedFolder",
    "closedFolder",
    "syncFolders",
    "openFoldersAutoSync",
    "autoSyncTime",
    "debugMode",
)

# sub-command -> (action name, {action parameter: argument attribute})
COMMANDS = {
    "check": ("checkFolderExists", {"folderPath": "path"}),
    "create": ("createCaseFolder", {"folderPath": "path"}),
    "new": ("newCaseFolder", {"folderName": "name", "subject": "subject"}),
    "sync": ("syncFolderMails", {}),
    "sync-all": ("syncAllFolders", {}),
    "close": ("closeCaseFolder", {}),
    "restore": ("restoreArchivedFolder", {}),
    "case-id": ("getCaseID", {"subject": "subject"}),
    "open-url": ("openTicketURL", {"subject": "subject"}),
}


# =============================================================================
# Logging
# =============================================================================

def configure_logging(debug: bool = False) -> None:
    """Send the package's log records to stderr."""
    package_logger = logging.getLogger("ticket_folders")
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
        package_logger.propagate = False
    package_logger.setLevel(logging.DEBUG if debug else logging.INFO)


def _debug_mode_listener(store: SettingsStore):
    """Follow the debugMode setting while the app runs."""
    state = {"debug": logging.getLogger("ticket_folders").isEnabledFor(logging.DEBUG)}

    def on_change(key: str, value: Any) -> None:
        if key != SETTINGS_KEY:
            return
        try:
            debug = store.settings().debug_mode
        except ConfigurationError:
            return
        if debug == state["debug"]:
            return
        state["debug"] = debug
        configure_logging(debug)
        logger.info(f"Debug mode has been {'ENABLED' if debug else 'DISABLED'}")

    return on_change


# =============================================================================
# Commands
# =============================================================================

def settings_command(args: argparse.Namespace, store: SettingsStore) -> int:
    """show / set / reset the ticket settings."""
    if args.settings_action == "show":
        raw = store.get(SETTINGS_KEY) or {}
        for name in SETTING_NAMES:
            print(f"{name} = {raw.get(name, '')}")
        try:
            store.settings()
        except ConfigurationError as e:
            print(f"Warning: {e}", file=sys.stderr)
            return 1
        return 0

    if args.settings_action == "set":
        store.update_settings(**{args.key: args.value})
        print(f"{args.key} = {args.value}")
        return 0

    store.remove(SETTINGS_KEY)
    print("Settings reset")
    return 0


async def run_command(args: argparse.Namespace, store: SettingsStore) -> int:
    """Run one service action, or the auto-sync loop for `run`."""
    config = store.config()
    async with IMAPProvider(config.accounts.values()) as provider:
        current = ResolvedCurrentFolder(FolderResolver(provider), getattr(args, "folder", None))
        service = TicketService(provider, store, current)

        if args.command == "run":
            await serve(service, store)
            return 0

        action, params = COMMANDS[args.command]
        result = await service.dispatch(
            action, **{param: getattr(args, attr) for param, attr in params.items()}
        )

    print(json.dumps(result, indent=2))
    return 0 if result.get("success") else 1


async def serve(service: TicketService, store: SettingsStore) -> None:
    """Keep the auto-sync alarm going until cancelled (Ctrl-C)."""
    await service.start()
    watcher = asyncio.create_task(store.watch(), name="settings-watch")
    logger.info("Ticket-Folders running; press Ctrl-C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        watcher.cancel()
        await service.stop()


# =============================================================================
# CLI Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    """
    Build the command-line parser.

    Returns:
        Parser with one sub-command per operation.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="Ticket-Folders: keep ticket mail in its case folder",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    check = commands.add_parser("check", help="Check whether a folder exists")
    check.add_argument("path")

    create = commands.add_parser("create", help="Create a folder path")
    create.add_argument("path")

    new = commands.add_parser("new", help="Create a case folder under the opened root")
    new.add_argument("name")
    new.add_argument("--subject", help="Mail subject carrying the ticket ID")

    for name, help_text in (
        ("sync", "Pull a case folder's mail in from the sync folders"),
        ("close", "Move a case folder to the closed root"),
        ("restore", "Move a case folder back to the opened root"),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--folder", required=True, help="Case folder path")

    commands.add_parser("sync-all", help="Pull mail into every case folder")

    case_id = commands.add_parser("case-id", help="Print the ticket ID of a subject")
    case_id.add_argument("subject")

    open_url = commands.add_parser("open-url", help="Open a subject's ticket in the browser")
    open_url.add_argument("subject")

    settings = commands.add_parser("settings", help="Show or change the ticket settings")
    settings_actions = settings.add_subparsers(dest="settings_action", required=True)
    settings_actions.add_parser("show")
    set_parser = settings_actions.add_parser("set")
    set_parser.add_argument("key", choices=SETTING_NAMES)
    set_parser.add_argument("value")
    settings_actions.add_parser("reset")

    commands.add_parser("run", help="Run the periodic auto-sync until interrupted")

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for Ticket-Folders.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle --paths flag
    if args.paths:
        print_paths()
        return 0

    if not args.command:
        parser.print_help()
        return 1

    try:
        store = SettingsStore(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    try:
        debug = args.debug or store.settings().debug_mode
    except ConfigurationError:
        debug = args.debug
    configure_logging(debug)
    if not args.debug:
        store.on_change(_debug_mode_listener(store))

    if args.command == "settings":
        return settings_command(args, store)

    try:
        return asyncio.run(run_command(args, store))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
