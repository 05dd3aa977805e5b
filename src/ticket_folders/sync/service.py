# =============================================================================
# Ticket Service
# =============================================================================
# The operations offered to the outside world (CLI, or any other front end),
# wired on top of the resolver, scanner, lifecycle and scheduler:
#
#   create_case_folder(path)     check_folder_exists(path)
#   sync_folder_mails()          sync_all_folders()
#   close_case_folder()          restore_archived_folder()
#   new_case_folder(name, subject)
#   get_case_id(subject)         open_ticket_url(subject)
#
# Each returns an ActionResult or raises a TicketFolderError. dispatch()
# wraps them behind action names and turns errors into
# {"success": False, "error": "..."} responses.
#
# Manual syncs run through the scheduler, which pauses the auto-sync alarm
# for their duration and re-arms it afterwards.
# =============================================================================

import asyncio
import logging
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable

from ticket_folders.config import SETTINGS_KEY, SettingsStore
from ticket_folders.core import Folder, ticket
from ticket_folders.errors import (
    ConfigurationError,
    PreconditionError,
    TicketFolderError,
)
from ticket_folders.providers.base import CurrentFolderProvider, MailProvider
from ticket_folders.sync.alarms import AlarmService
from ticket_folders.sync.lifecycle import CaseFolderLifecycle
from ticket_folders.sync.resolver import FolderResolver
from ticket_folders.sync.scanner import MessageScanner
from ticket_folders.sync.scheduler import SyncScheduler


logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """
    Outcome of a service operation.

    Only the fields relevant to the operation are set; to_dict() drops the
    others.
    """
    success: bool = True
    exists: bool | None = None
    folder: Folder | None = None
    folder_name: str | None = None
    messages_count: int | None = None
    case_id: str | None = None
    url: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Response shape used by dispatch()."""
        data: dict[str, Any] = {"success": self.success}
        if self.exists is not None:
            data["exists"] = self.exists
        if self.exists is not None or self.folder is not None:
            data["folder"] = self.folder.path if self.folder else None
        if self.folder_name is not None:
            data["folderName"] = self.folder_name
        if self.messages_count is not None:
            data["messagesCount"] = self.messages_count
        if self.case_id is not None:
            data["caseID"] = self.case_id
        if self.url is not None:
            data["url"] = self.url
        if self.error is not None:
            data["error"] = self.error
        return data


class TicketService:
    """
    Entry point for all ticket folder operations.

    Usage:
        >>> service = TicketService(provider, store, current)
        >>> await service.start()           # arms the auto-sync alarm
        >>> await service.dispatch("syncAllFolders")
        {'success': True, 'messagesCount': 3}
        >>> await service.stop()

    Attributes:
        provider: Mail provider (folders and messages).
        store: Settings store; settings are re-read for every operation.
        current: Provider of the currently displayed folder.
    """

    def __init__(
        self,
        provider: MailProvider,
        store: SettingsStore,
        current: CurrentFolderProvider | None = None,
        *,
        alarms: AlarmService | None = None,
        scanner_timeout: float | None = None,
        open_url: Callable[[str], Any] = webbrowser.open,
    ) -> None:
        self.provider = provider
        self.store = store
        self.resolver = FolderResolver(provider)
        self.current = current
        self.scanner = MessageScanner(provider, timeout=scanner_timeout)
        self.lifecycle = CaseFolderLifecycle(provider, self.resolver, self)
        self.alarms = alarms or AlarmService()
        self.scheduler = SyncScheduler(self.alarms, store.settings, self.auto_sync_open_folders)
        self.open_url = open_url
        self._tasks: set[asyncio.Task] = set()

        self._actions = {
            "createCaseFolder": lambda p: self.create_case_folder(p.get("folderPath")),
            "checkFolderExists": lambda p: self.check_folder_exists(p.get("folderPath")),
            "syncAllFolders": lambda p: self.sync_all_folders(),
            "closeCaseFolder": lambda p: self.close_case_folder(),
            "syncFolderMails": lambda p: self.sync_folder_mails(),
            "restoreArchivedFolder": lambda p: self.restore_archived_folder(),
            "newCaseFolder": lambda p: self.new_case_folder(p.get("folderName"), p.get("subject")),
            "openTicketURL": lambda p: self.open_ticket_url(p.get("subject")),
            "getCaseID": lambda p: self.get_case_id(p.get("subject")),
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Arm the auto-sync alarm and start following settings changes."""
        self.alarms.on_fire(self.scheduler.alarm_fired)
        self.store.on_change(self._settings_changed)
        await self.scheduler.configure()

    async def stop(self) -> None:
        """Cancel a running sync, disarm the alarm and wait for pending reconfigurations."""
        self.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.alarms.close()

    def cancel(self) -> None:
        """
        Stop the running sync before its next page, source folder or case
        folder. Moves already issued are not rolled back.
        """
        logger.info("Cancelling the running sync.")
        self.scanner.cancel()

    def _settings_changed(self, key: str, value: Any) -> None:
        if key != SETTINGS_KEY:
            return
        logger.info("Settings have changed, re-evaluating alarms.")
        task = asyncio.get_running_loop().create_task(self.scheduler.configure())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def current_folder(self) -> Folder | None:
        """The displayed folder, if a current-folder provider is attached."""
        if self.current is None:
            return None
        return await self.current.current_folder()

    # =========================================================================
    # Dispatch
    # =========================================================================

    async def dispatch(self, action: str, **params: Any) -> dict[str, Any]:
        """
        Run an operation by action name.

        Returns:
            The operation's response, or {"success": False, "error": ...}
            if it failed or the action is unknown.
        """
        logger.debug(f"Handling action: {action} {params}")
        handler = self._actions.get(action)
        if handler is None:
            logger.warning(f"Unknown action received: {action}")
            return ActionResult(success=False, error=f"Unknown action: {action}").to_dict()

        try:
            result = await handler(params)
        except TicketFolderError as e:
            logger.error(f"{action} failed: {e}")
            return ActionResult(success=False, error=str(e)).to_dict()
        except Exception as e:
            logger.exception(f"{action} failed unexpectedly: {e}")
            return ActionResult(success=False, error=str(e) or type(e).__name__).to_dict()
        return result.to_dict()

    # =========================================================================
    # Folder Operations
    # =========================================================================

    async def check_folder_exists(self, path: str | None) -> ActionResult:
        """Resolve a path; never fails."""
        resolution = await self.resolver.resolve(path)
        return ActionResult(exists=resolution.exists, folder=resolution.folder)

    async def create_case_folder(self, path: str | None) -> ActionResult:
        """Create a folder path (no-op if it already exists)."""
        folder = await self.lifecycle.create_case_folder(path)
        return ActionResult(folder=folder, folder_name=folder.name)

    async def new_case_folder(self, name: str | None, subject: str | None = None) -> ActionResult:
        """
        Create a case folder below the opened root.

        The folder is named "<ticket id> - <name>" when the subject carries a
        ticket ID, otherwise just "<name>".
        """
        name = (name or "").strip()
        if not name:
            raise ConfigurationError("Folder name not provided.")

        settings = self.store.settings()
        if not settings.opened_folder:
            raise ConfigurationError("Opened folder path not configured in settings.")

        case_id = ticket.from_subject(subject)
        if case_id:
            name = f"{case_id} - {name}"
        else:
            logger.warning("Could not get Ticket ID from subject. Creating folder without it.")

        return await self.create_case_folder(f"{settings.opened_folder}/{name}")

    async def close_case_folder(self) -> ActionResult:
        """Archive the displayed case folder (opened -> closed)."""
        outcome = await self.lifecycle.archive(self.store.settings())
        return ActionResult(success=outcome.success, folder_name=outcome.folder_name)

    async def restore_archived_folder(self) -> ActionResult:
        """Restore the displayed case folder (closed -> opened)."""
        outcome = await self.lifecycle.restore(self.store.settings())
        return ActionResult(success=outcome.success, folder_name=outcome.folder_name)

    # =========================================================================
    # Ticket Lookup
    # =========================================================================

    async def get_case_id(self, subject: str | None) -> ActionResult:
        """Extract the ticket ID from a message subject (None if absent)."""
        case_id = ticket.from_subject(subject)
        logger.info(f"Extracted Case ID: {case_id}")
        return ActionResult(case_id=case_id)

    async def open_ticket_url(self, subject: str | None) -> ActionResult:
        """
        Open the ticket system page of the ticket named in `subject`.

        Raises:
            ConfigurationError: If no ticket URL is configured.
            PreconditionError: If there is no subject or no ticket ID in it.
        """
        settings = self.store.settings()
        if not settings.ticket_url:
            raise ConfigurationError("Ticket URL is not configured in settings.")
        if not subject:
            raise PreconditionError("Could not retrieve the subject from the selected email.")

        case_id = ticket.from_subject(subject)
        if not case_id:
            raise PreconditionError("No ticket ID found in the email subject.")

        url = ticket.ticket_url(settings.ticket_url, case_id)
        logger.info(f"Opening URL: {url}")
        self.open_url(url)
        return ActionResult(case_id=case_id, url=url)

    async def reset_settings(self) -> ActionResult:
        """Remove all ticket settings."""
        self.store.remove(SETTINGS_KEY)
        logger.info("Settings reset")
        return ActionResult()

    # =========================================================================
    # Mail Synchronization
    # =========================================================================

    async def sync_folder_mails(self) -> ActionResult:
        """Pull the displayed case folder's mail in from the sync folders."""
        moved = await self.scheduler.run_manual(self._sync_current_folder)
        return ActionResult(messages_count=moved)

    async def sync_all_folders(self) -> ActionResult:
        """Pull mail into every case folder under both roots."""
        moved = await self.scheduler.run_manual(self._sync_all_case_folders)
        return ActionResult(messages_count=moved)

    async def auto_sync_open_folders(self) -> int:
        """
        Alarm routine: pull mail into every case folder under the opened
        root. Never raises; problems are logged and the run is skipped.
        """
        try:
            logger.info("Auto-sync process started.")
            self.scanner.reset()
            settings = self.store.settings()
            if not settings.opened_folder:
                logger.info("Auto-sync skipped: 'Opened' folder path is not configured.")
                return 0

            opened = (await self.resolver.resolve(settings.opened_folder)).folder
            if opened is None:
                logger.info(
                    f"Auto-sync skipped: Configured 'Opened' folder "
                    f"\"{settings.opened_folder}\" does not exist."
                )
                return 0

            case_folders = await self.provider.get_subfolders(opened)
            if not case_folders:
                logger.info("No subfolders found in the 'Opened' directory to sync.")
                return 0

            moved = await self._sync_case_folders(case_folders, settings.sync_folders)
            logger.info(f"Auto-sync process finished. Moved {moved} messages.")
            return moved
        except Exception as e:
            logger.error(f"Error during auto-sync: {e}")
            return 0

    async def _sync_current_folder(self) -> int:
        self.scanner.reset()
        current = await self.current_folder()
        if current is None:
            raise PreconditionError("No folder is currently selected.")

        ticket_id = ticket.from_folder_name(current.name)
        if not ticket_id:
            raise PreconditionError(
                "The selected folder does not appear to be a ticket folder (no ID in name)."
            )

        settings = self.store.settings()
        logger.info(f"Syncing mails for ticket \"{ticket_id}\" into folder \"{current.path}\".")
        logger.info(f"Searching in paths: {', '.join(settings.sync_folders)}.")

        sources = await self.resolver.match_all(settings.sync_folders)
        moved = await self.scanner.scan_and_move(ticket_id, current, sources)
        logger.info(f"Sync complete. Moved {moved} messages for ticket \"{ticket_id}\".")
        return moved

    async def _sync_all_case_folders(self) -> int:
        logger.info("Starting sync for ALL ticket folders.")
        self.scanner.reset()
        settings = self.store.settings()
        if not settings.opened_folder or not settings.closed_folder:
            raise ConfigurationError("Opened and/or Closed folders are not configured in settings.")

        case_folders: list[Folder] = []
        for root_path in (settings.opened_folder, settings.closed_folder):
            root = (await self.resolver.resolve(root_path)).folder
            if root is None:
                logger.warning(f"Ticket root \"{root_path}\" does not exist, skipping it.")
                continue
            case_folders.extend(await self.provider.get_subfolders(root))

        if not case_folders:
            logger.info("No ticket folders found to sync.")
            return 0

        logger.info(f"Found {len(case_folders)} ticket folders to process.")
        moved = await self._sync_case_folders(case_folders, settings.sync_folders)
        logger.info(f"Finished sync for ALL folders. Total messages moved: {moved}.")
        return moved

    async def _sync_case_folders(self, case_folders: list[Folder], sync_paths: tuple[str, ...]) -> int:
        """Scan the sync folders once per case folder that has a ticket ID."""
        logger.info(f"Searching for messages in paths: {', '.join(sync_paths)}.")
        sources = await self.resolver.match_all(sync_paths)

        total = 0
        for case_folder in case_folders:
            if self.scanner.cancelled:
                logger.info("Sync cancelled, remaining ticket folders skipped.")
                break
            ticket_id = ticket.from_folder_name(case_folder.name)
            if not ticket_id:
                continue

            logger.debug(f"Processing folder: {case_folder.path} for ticket ID {ticket_id}")
            moved = await self.scanner.scan_and_move(ticket_id, case_folder, sources)
            if moved:
                logger.info(
                    f"Moved {moved} messages for ticket \"{ticket_id}\" "
                    f"to folder \"{case_folder.name}\"."
                )
                total += moved
        return total

