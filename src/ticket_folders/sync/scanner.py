# =============================================================================
# Message Scanner
# =============================================================================
# Finds the messages belonging to a ticket and moves them into the ticket's
# case folder.
#
# For every source folder, independently:
#   1. Page through the folder (each page token chains to the next).
#   2. Keep messages whose subject contains the ticket ID anywhere.
#   3. Move all matches of that folder to the case folder in one call.
#
# A folder that fails (special/inaccessible folder, server error, timeout)
# is logged and skipped; it contributes nothing to the moved count and the
# remaining folders are still processed.
# =============================================================================

import asyncio
import logging
from typing import Awaitable, TypeVar

from ticket_folders.core import Folder, Message
from ticket_folders.errors import SyncTimeoutError
from ticket_folders.providers.base import MessageProvider


logger = logging.getLogger(__name__)

T = TypeVar("T")


class MessageScanner:
    """
    Scans source folders for a ticket's messages and relocates them.

    Usage:
        >>> scanner = MessageScanner(provider)
        >>> moved = await scanner.scan_and_move("123456", case_folder, [inbox])

    Attributes:
        provider: Message provider used for listing and moving.
        timeout: Seconds allowed for each page fetch and each move call.
    """

    # Default per page/batch timeout (seconds)
    TIMEOUT = 60.0

    def __init__(self, provider: MessageProvider, timeout: float | None = None) -> None:
        self.provider = provider
        self.timeout = timeout or self.TIMEOUT
        self._cancelled = False

    def cancel(self) -> None:
        """
        Stop the running scan before its next page or folder.

        A move that was already issued is not rolled back. The flag stays set
        until reset(), so callers running several scans in a row stop too.
        """
        self._cancelled = True

    def reset(self) -> None:
        """Clear a previous cancel() before starting a new run."""
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def scan_and_move(
        self,
        ticket_id: str,
        destination: Folder,
        sources: list[Folder],
    ) -> int:
        """
        Move every message mentioning `ticket_id` from `sources` to
        `destination`.

        Returns:
            Total number of messages moved.
        """
        moved_count = 0
        logger.debug(f"Searching for ticket ID \"{ticket_id}\" in {len(sources)} folder(s).")

        for folder in sources:
            if self._cancelled:
                logger.info("Scan cancelled")
                break
            if folder.id == destination.id:
                continue

            try:
                moved_count += await self._process_folder(ticket_id, destination, folder)
            except Exception as e:
                logger.warning(
                    f"Could not process folder \"{folder.path}\". "
                    f"It might be a special or inaccessible folder: {e}"
                )

        return moved_count

    async def _process_folder(self, ticket_id: str, destination: Folder, folder: Folder) -> int:
        """Scan one folder and move its matches. Errors propagate."""
        logger.debug(f"Scanning folder: \"{folder.path}\"")

        matches = [
            message.id
            for message in await self._collect(folder)
            if ticket_id in message.subject
        ]

        if not matches:
            logger.debug(f"No matching messages found in \"{folder.path}\".")
            return 0

        logger.debug(
            f"Moving {len(matches)} message(s) for ticket \"{ticket_id}\" "
            f"from \"{folder.path}\" to \"{destination.path}\"."
        )
        await self._bounded(
            self.provider.move_messages(matches, destination.id),
            f"moving messages to {destination.path}",
        )
        return len(matches)

    async def _collect(self, folder: Folder) -> list[Message]:
        """
        List every message in a folder, page by page.

        A page token left unconsumed when listing stops early is released
        before returning or raising.
        """
        messages: list[Message] = []
        token: str | None = None
        try:
            page = await self._bounded(
                self.provider.list_messages(folder.id),
                f"listing {folder.path}",
            )
            token = page.page_token
            while page.messages:
                logger.debug(f"Found {len(page.messages)} message(s) on this page in \"{folder.path}\".")
                messages.extend(page.messages)

                if not token or self._cancelled:
                    break
                page = await self._bounded(
                    self.provider.continue_list(token),
                    f"listing {folder.path}",
                )
                token = page.page_token
        finally:
            if token:
                await self.provider.release(token)
        return messages

    async def _bounded(self, operation: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise SyncTimeoutError(f"Timed out after {self.timeout}s {what}") from e
