# =============================================================================
# Folder Index
# =============================================================================
# Flattens every account's folder tree into one list so folders can be
# searched by path.
#
# The index is rebuilt on every call: folders get created, moved and renamed
# behind our back (by the user, by other clients, by our own lifecycle
# operations), so a cached copy would go stale quickly.
# =============================================================================

import logging

from ticket_folders.core import Folder
from ticket_folders.providers.base import FolderProvider


logger = logging.getLogger(__name__)


def flatten(roots: list[Folder]) -> list[Folder]:
    """
    Pre-order (parent, then children) flattening of a folder forest.

    Uses an explicit stack so deep trees can't exhaust the recursion limit.
    """
    flat: list[Folder] = []
    stack = list(reversed(roots))
    while stack:
        folder = stack.pop()
        flat.append(folder)
        # Push children reversed so the first child is visited next
        stack.extend(reversed(folder.children))
    return flat


async def build_index(provider: FolderProvider) -> list[Folder]:
    """
    Build a flat list of all folders across all accounts.

    Accounts come in provider order, folders in pre-order within each
    account.

    Returns:
        All folders, or an empty list if enumeration failed. The failure is
        logged, not raised; callers treat an empty index as "nothing found".
    """
    try:
        accounts = await provider.list_accounts(include_folders=True)
    except Exception as e:
        logger.error(f"Error retrieving folders: {e}")
        return []

    folders: list[Folder] = []
    for account in accounts:
        folders.extend(flatten(account.folders))

    logger.debug(f"Indexed {len(folders)} folders across {len(accounts)} accounts")
    return folders
