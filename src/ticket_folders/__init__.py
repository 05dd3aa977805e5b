# =============================================================================
# Ticket-Folders: Ticket Mail Folder Synchronization
# =============================================================================
#
# Ticket-Folders keeps the mail of support tickets together: every ticket
# gets a case folder named after its ticket ID, and mail mentioning that ID
# is moved there from the configured sync folders, on demand or periodically.
#
# Features:
#   - Case folders under an "opened" and a "closed" root, with archive/restore
#   - Folder paths resolved by readable suffix across all accounts
#   - Periodic auto-sync of open case folders
#   - IMAP support with STARTTLS, passwords in the system keyring
#   - XDG Base Directory compliant
#
# =============================================================================

__version__ = "0.1.0"
__app_name__ = "ticket-folders"

# Main entry point - this is what gets called by the 'ticket-folders' command
from ticket_folders.app import main

__all__ = ["main", "__version__", "__app_name__"]
