# =============================================================================
# Exceptions
# =============================================================================
# Error kinds raised by the synchronization engine.
#
# Propagation rules:
#   - ConfigurationError, ResolutionError, PreconditionError and
#     VerificationError abort the requested operation. The service turns
#     them into {"success": False, "error": "..."} responses.
#   - ProviderError (and SyncTimeoutError) coming from a single folder during
#     a bulk scan are logged and that folder contributes nothing; the scan
#     carries on with the next folder.
# =============================================================================


class TicketFolderError(Exception):
    """Base exception for all ticket folder operations."""
    pass


class ConfigurationError(TicketFolderError):
    """A required setting is missing or invalid."""
    pass


class ResolutionError(TicketFolderError):
    """A required folder path does not resolve to an existing folder."""
    pass


class PreconditionError(TicketFolderError):
    """The current folder is missing or not under the expected root."""
    pass


class ProviderError(TicketFolderError):
    """An underlying folder or message operation failed."""
    pass


class SyncTimeoutError(ProviderError):
    """A page fetch or batch move did not complete in time."""
    pass


class VerificationError(TicketFolderError):
    """A folder move could not be confirmed after the fact."""
    pass
