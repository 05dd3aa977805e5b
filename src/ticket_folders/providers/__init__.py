# =============================================================================
# Providers Module
# =============================================================================
# Interfaces the sync engine uses to reach mail accounts, and the IMAP
# implementation of them.
#
# The IMAP provider (ticket_folders.providers.imap) uses aioimaplib for async
# IMAP operations and keyring for passwords. It is not imported here, so the
# engine can run against any other provider without loading those libraries.
# =============================================================================

from ticket_folders.providers.base import (
    CurrentFolderProvider,
    FolderProvider,
    MailProvider,
    MessageProvider,
)

__all__ = [
    "CurrentFolderProvider",
    "FolderProvider",
    "MailProvider",
    "MessageProvider",
]
