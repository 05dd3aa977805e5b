# =============================================================================
# Ticket-Folders Entry Point for `python -m ticket_folders`
# =============================================================================
# This is equivalent to running the 'ticket-folders' command after
# installation.
# =============================================================================

import sys

from ticket_folders.app import main

if __name__ == "__main__":
    sys.exit(main())
