# =============================================================================
# Account Model
# =============================================================================
# Represents a mail account and the root of its folder tree.
#
# The synchronization engine only needs `id`, `name`, `is_default` and the
# folder tree. The IMAP connection fields are used by the IMAP provider when
# the account comes from the config file.
#
# IMPORTANT: Passwords are NOT stored here. They are retrieved from the system
# keyring at runtime using the 'keyring' library.
# =============================================================================

from dataclasses import dataclass, field

from ticket_folders.core.folder import Folder


@dataclass
class Account:
    """
    A mail account owning a tree of folders.

    Attributes:
        name: Unique account name (e.g., "work"). Also the first segment of
              every folder path in this account.
        id: Provider identifier for the account. Defaults to `name`.
        is_default: Whether new case folders are created in this account.
        folders: Top-level folders of the account, in provider order.
                 Empty when accounts were listed without folders.

        email: Login / address used for the IMAP connection.
        imap_host: Hostname of the IMAP server (e.g., "imap.example.com").
        imap_port: Port for the IMAP connection (993 for SSL, 143 for STARTTLS).
        imap_security: Connection security method ("ssl" or "starttls").
        enabled: Disabled accounts are not listed by the IMAP provider.

    Example:
        >>> account = Account(
        ...     name="work",
        ...     email="support@example.com",
        ...     imap_host="imap.example.com",
        ...     is_default=True,
        ... )
    """

    # Account identification
    name: str
    id: str = ""
    is_default: bool = False
    folders: list[Folder] = field(default_factory=list)

    # IMAP configuration
    email: str = ""
    imap_host: str = ""
    imap_port: int = 993                # Default to SSL port
    imap_security: str = "ssl"          # "ssl" or "starttls"
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.id:
            self.id = self.name

    @property
    def keyring_service(self) -> str:
        """
        Returns the service name used for keyring password storage:

            keyring set ticket-folders:work support@example.com
        """
        return f"ticket-folders:{self.name}"

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>" if self.email else self.name

    def __repr__(self) -> str:
        return (
            f"Account(name={self.name!r}, default={self.is_default}, "
            f"imap={self.imap_host}:{self.imap_port})"
        )
