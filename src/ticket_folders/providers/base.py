# =============================================================================
# Provider Interfaces
# =============================================================================
# The synchronization engine never talks to a mail server directly. It goes
# through these interfaces, which the IMAP provider (and the in-memory fake
# used by the test suite) implement:
#
#   - FolderProvider: account/folder tree enumeration and folder mutations
#   - MessageProvider: paginated message listing and message moves
#   - CurrentFolderProvider: "the folder the user is looking at"
#
# All methods are async. Implementations raise ProviderError (or a subclass)
# when the underlying operation fails.
# =============================================================================

from abc import ABC, abstractmethod

from ticket_folders.core import Account, Folder, MessagePage


class FolderProvider(ABC):
    """
    Access to accounts and their folder trees.

    Folder mutations take and return Folder objects whose `id` is the
    provider's own handle.
    """

    @abstractmethod
    async def list_accounts(self, include_folders: bool = True) -> list[Account]:
        """
        List all accounts in a stable order.

        Args:
            include_folders: If True, each account's `folders` holds its full
                             folder tree (children populated recursively).
        """

    async def get_default_account(self) -> Account | None:
        """
        Return the default account with its folder tree.

        Falls back to the first account when none is flagged as default.
        """
        accounts = await self.list_accounts(include_folders=True)
        for account in accounts:
            if account.is_default:
                return account
        return accounts[0] if accounts else None

    @abstractmethod
    async def create_folder(self, parent: Account | Folder, name: str) -> Folder:
        """
        Create a folder named `name` directly below `parent`.

        `parent` is either an account (top-level folder) or a folder.
        """

    @abstractmethod
    async def get_subfolders(self, parent: Account | Folder) -> list[Folder]:
        """Return the current direct children of `parent`."""

    @abstractmethod
    async def move_folder(self, folder_id: str, destination_id: str) -> None:
        """
        Move a folder (with its content) below another folder.

        Some providers report errors for moves that actually succeeded;
        callers that care verify the result afterwards.
        """


class MessageProvider(ABC):
    """Paginated message listing and bulk moves."""

    @abstractmethod
    async def list_messages(self, folder_id: str) -> MessagePage:
        """Return the first page of messages in a folder."""

    @abstractmethod
    async def continue_list(self, page_token: str) -> MessagePage:
        """Return the page chained to `page_token`."""

    async def release(self, page_token: str) -> None:
        """
        Drop a page token that will not be continued.

        Providers that keep listing state per token free it here. Unknown
        or already consumed tokens are ignored.
        """

    @abstractmethod
    async def move_messages(self, message_ids: list[str], destination_id: str) -> None:
        """Move the given messages into the destination folder."""


class MailProvider(FolderProvider, MessageProvider):
    """Convenience base for providers implementing both interfaces."""


class CurrentFolderProvider(ABC):
    """Source of the folder currently displayed to the user."""

    @abstractmethod
    async def current_folder(self) -> Folder | None:
        """Return the displayed folder, or None if there isn't one."""
