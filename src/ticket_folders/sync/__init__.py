# =============================================================================
# Sync Module
# =============================================================================
# The ticket folder synchronization engine:
#   - Flattening the account/folder trees into a searchable index
#   - Resolving configured paths (exact, then suffix match)
#   - Scanning source folders and moving a ticket's mail into its case folder
#   - Archiving/restoring case folders with move verification
#   - Periodic auto-sync, paused while manual syncs run
#
# Everything is async and talks to mail servers only through the provider
# interfaces in ticket_folders.providers.
# =============================================================================

from ticket_folders.sync.alarms import AlarmService
from ticket_folders.sync.index import build_index, flatten
from ticket_folders.sync.lifecycle import CaseFolderLifecycle, MoveOutcome
from ticket_folders.sync.resolver import FolderResolver, Resolution, ResolvedCurrentFolder
from ticket_folders.sync.scanner import MessageScanner
from ticket_folders.sync.scheduler import ALARM_NAME, SchedulerState, SyncScheduler
from ticket_folders.sync.service import ActionResult, TicketService

__all__ = [
    # Index and resolution
    "build_index",
    "flatten",
    "FolderResolver",
    "Resolution",
    "ResolvedCurrentFolder",
    # Scanning and lifecycle
    "MessageScanner",
    "CaseFolderLifecycle",
    "MoveOutcome",
    # Scheduling
    "AlarmService",
    "SyncScheduler",
    "SchedulerState",
    "ALARM_NAME",
    # Service
    "TicketService",
    "ActionResult",
]
