# =============================================================================
# Folder Resolver
# =============================================================================
# Maps a configured path string to a concrete folder.
#
# Users configure folders by a readable suffix ("Tickets/Open") rather than
# the full, account-qualified path ("Work/Tickets/Open"). Resolution
# therefore has two tiers:
#
#   1. Exact match on the full path.
#   2. Suffix match: the full path equals the input or ends with "/" + input.
#
# The same suffix can exist in several accounts. In that case the first
# folder in index order wins and a warning tells the user to prefix the
# account name. Picking deterministically is preferred over failing.
# =============================================================================

import logging
from dataclasses import dataclass

from ticket_folders.core import Folder, normalize_path
from ticket_folders.providers.base import CurrentFolderProvider, FolderProvider
from ticket_folders.sync.index import build_index


logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    """Result of resolving a path: whether it exists, and which folder."""
    exists: bool = False
    folder: Folder | None = None


class FolderResolver:
    """
    Resolves user-supplied paths against a freshly built folder index.

    Usage:
        >>> resolver = FolderResolver(provider)
        >>> result = await resolver.resolve("Tickets/Open")
        >>> if result.exists:
        ...     print(result.folder.path)
        Work/Tickets/Open
    """

    def __init__(self, provider: FolderProvider) -> None:
        self.provider = provider

    async def resolve(self, path_spec: str | None) -> Resolution:
        """
        Resolve `path_spec` to a folder.

        Never raises: a failed folder enumeration resolves nothing.
        """
        wanted = normalize_path(path_spec)
        if not wanted:
            return Resolution()

        folders = await build_index(self.provider)
        logger.debug(f"Checking for sanitized path: '{wanted}'")

        # First, try a direct match on the full path (account included)
        for folder in folders:
            if normalize_path(folder.path) == wanted:
                logger.debug(f"Found exact folder match for '{wanted}'")
                return Resolution(exists=True, folder=folder)

        logger.debug("No exact match found. Checking for suffix match...")
        candidates = [folder for folder in folders if folder.matches(wanted)]
        if not candidates:
            logger.debug(f"No folder found for '{wanted}'.")
            return Resolution()

        found = candidates[0]
        if len(candidates) > 1:
            logger.warning(
                f"Found {len(candidates)} folders for ambiguous setting '{wanted}'. "
                f"Using the first one found: '{found.path}' in account "
                f"'{found.account_id}'. Prefix the path with the account name "
                f"to pick a specific one."
            )
        logger.debug(f"Found suffix match for '{wanted}'. Path: '{found.path}'")
        return Resolution(exists=True, folder=found)

    async def match_all(self, path_specs: tuple[str, ...] | list[str]) -> list[Folder]:
        """
        Return every folder matching any of the given paths.

        Unlike resolve(), ambiguity is not an issue here: a sync folder
        setting of "INBOX" deliberately selects the inbox of every account.
        Folders are returned once each, in index order.
        """
        wanted = [p for p in (normalize_path(spec) for spec in path_specs) if p]
        if not wanted:
            return []
        folders = await build_index(self.provider)
        return [f for f in folders if any(f.matches(spec) for spec in wanted)]


class ResolvedCurrentFolder(CurrentFolderProvider):
    """
    Current-folder provider for non-interactive use: the "displayed" folder
    is whatever a fixed path resolves to at the time of the call.
    """

    def __init__(self, resolver: FolderResolver, path: str | None) -> None:
        self.resolver = resolver
        self.path = path

    async def current_folder(self) -> Folder | None:
        result = await self.resolver.resolve(self.path)
        return result.folder
