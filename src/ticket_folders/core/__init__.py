# =============================================================================
# Ticket-Folders Core Module
# =============================================================================
# Core domain models. These are plain dataclasses with no external
# dependencies, so they can be imported anywhere without causing circular
# imports:
#   - Account: A mail account and its folder tree
#   - Folder: A folder inside an account
#   - Message: A message handle plus its subject
#   - TicketId: The digit string identifying a support case
# =============================================================================

from ticket_folders.core.account import Account
from ticket_folders.core.folder import Folder, normalize_path, split_path
from ticket_folders.core.message import Message, MessagePage
from ticket_folders.core.ticket import TicketId

__all__ = [
    "Account",
    "Folder",
    "Message",
    "MessagePage",
    "TicketId",
    "normalize_path",
    "split_path",
]
