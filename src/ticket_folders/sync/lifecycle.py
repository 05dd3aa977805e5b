# =============================================================================
# Case Folder Lifecycle
# =============================================================================
# Case folders live under one of two configured roots:
#
#       Opened root                       Closed root
#   Tickets/Open/12345 - Acme  --archive-->  Tickets/Closed/12345 - Acme
#   Tickets/Open/12345 - Acme  <--restore--  Tickets/Closed/12345 - Acme
#
# A transition moves the currently displayed folder from the source root to
# the destination root. Some providers report errors for moves that did
# succeed, so the move's own outcome is not trusted: after the move the
# folder is looked up at its new location and only that lookup decides.
#
# Creating case folders is idempotent and works segment by segment, so a
# partially existing path only gets its missing tail created.
# =============================================================================

import logging
from dataclasses import dataclass

from ticket_folders.config import TicketSettings
from ticket_folders.core import Account, Folder, normalize_path, split_path
from ticket_folders.errors import (
    ConfigurationError,
    PreconditionError,
    ResolutionError,
    VerificationError,
)
from ticket_folders.providers.base import CurrentFolderProvider, FolderProvider
from ticket_folders.sync.resolver import FolderResolver


logger = logging.getLogger(__name__)


@dataclass
class Transition:
    """
    Describes one direction of the open/closed state machine.

    Attributes:
        verb: Used in log messages ("Archiving", "Restoring").
        source_label: Settings label of the source root.
        destination_label: Settings label of the destination root.
    """
    verb: str
    source_label: str
    destination_label: str


ARCHIVE = Transition(verb="Archiving", source_label="Opened", destination_label="Closed")
RESTORE = Transition(verb="Restoring", source_label="Closed", destination_label="Opened")


@dataclass
class MoveOutcome:
    """Result of a successful archive or restore."""
    success: bool
    folder_name: str
    folder: Folder | None = None


class CaseFolderLifecycle:
    """
    Creates case folders and moves them between the opened and closed roots.

    Usage:
        >>> lifecycle = CaseFolderLifecycle(provider, resolver, current)
        >>> outcome = await lifecycle.archive(store.settings())
        >>> outcome.folder_name
        '12345 - Acme'
    """

    def __init__(
        self,
        provider: FolderProvider,
        resolver: FolderResolver,
        current: CurrentFolderProvider,
    ) -> None:
        self.provider = provider
        self.resolver = resolver
        self.current = current

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_case_folder(self, path: str | None) -> Folder:
        """
        Make sure the folder `path` exists, creating missing segments in the
        default account.

        Returns:
            The existing folder, or the deepest folder created.

        Raises:
            ConfigurationError: If no path was given.
            ResolutionError: If there is no account to create it in.
        """
        if not normalize_path(path):
            raise ConfigurationError("Folder path not provided.")

        existing = await self.resolver.resolve(path)
        if existing.exists:
            logger.info(f"Folder \"{path}\" already exists.")
            return existing.folder

        account = await self.provider.get_default_account()
        if account is None:
            raise ResolutionError("No default account available to create folders in.")

        parts = split_path(path)
        # An account-qualified path names the default account first
        if len(parts) > 1 and parts[0] == account.name:
            parts = parts[1:]

        logger.info(
            f"Folder does not exist. Creating \"{'/'.join(parts)}\" "
            f"in default account \"{account.name}\"."
        )

        parent: Account | Folder = account
        siblings = account.folders
        target: Folder | None = None
        for part in parts:
            found = next((f for f in siblings if f.name == part), None)
            if found is None:
                logger.info(f"Creating folder part: \"{part}\" in parent: \"{parent.name}\"")
                found = await self.provider.create_folder(parent, part)
            target = found
            parent = found
            siblings = await self.provider.get_subfolders(found)

        logger.info(f"Full folder path created successfully: \"{target.path}\"")
        return target

    # =========================================================================
    # Transitions
    # =========================================================================

    async def archive(self, settings: TicketSettings) -> MoveOutcome:
        """Move the displayed case folder from the opened to the closed root."""
        settings.require_roots()
        return await self._transition(
            ARCHIVE, settings.opened_folder, settings.closed_folder
        )

    async def restore(self, settings: TicketSettings) -> MoveOutcome:
        """Move the displayed case folder from the closed to the opened root."""
        settings.require_roots()
        return await self._transition(
            RESTORE, settings.closed_folder, settings.opened_folder
        )

    async def _transition(
        self,
        transition: Transition,
        source_path: str,
        destination_path: str,
    ) -> MoveOutcome:
        """
        Move-and-verify shared by archive and restore.

        Raises:
            ResolutionError: If a configured root does not exist.
            PreconditionError: If nothing is displayed, or the displayed
                folder is not under the source root, or the destination
                root already holds a folder of the same name.
            VerificationError: If the folder is not found at its destination
                after the move.
        """
        source_root = (await self.resolver.resolve(source_path)).folder
        if source_root is None:
            raise ResolutionError(
                f"The source \"{transition.source_label}\" folder \"{source_path}\" does not exist."
            )

        destination_root = (await self.resolver.resolve(destination_path)).folder
        if destination_root is None:
            raise ResolutionError(
                f"The destination \"{transition.destination_label}\" folder "
                f"\"{destination_path}\" does not exist."
            )

        current = await self.current.current_folder()
        if current is None:
            raise PreconditionError("No folder is currently selected/displayed.")

        if not current.is_within(source_root):
            raise PreconditionError(
                f"Current folder \"{current.name}\" is not in the configured "
                f"\"{transition.source_label}\" directory."
            )

        siblings = await self.provider.get_subfolders(destination_root)
        if any(f.name == current.name for f in siblings):
            raise PreconditionError(
                f"A folder named \"{current.name}\" already exists in \"{destination_root.path}\"."
            )

        logger.info(
            f"{transition.verb} folder \"{current.name}\" from "
            f"\"{source_root.path}\" to \"{destination_root.path}\"."
        )
        try:
            await self.provider.move_folder(current.id, destination_root.id)
        except Exception as e:
            logger.warning(f"Error reported during the move operation, verifying: {e}")

        moved = await self.resolver.resolve(f"{destination_root.path}/{current.name}")
        if not moved.exists:
            raise VerificationError(
                f"Verification failed: Could not find folder \"{current.name}\" "
                f"in \"{destination_root.path}\" after move."
            )

        logger.info(
            f"Verification successful: Folder \"{current.name}\" moved to "
            f"\"{destination_root.path}\"."
        )
        return MoveOutcome(success=True, folder_name=current.name, folder=moved.folder)
