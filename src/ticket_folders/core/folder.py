# =============================================================================
# Folder Model
# =============================================================================
# Represents a mail folder inside an account's folder tree.
#
# Paths are always "/"-delimited and rooted at the account, so the first
# segment is the account name:
#
#   Work/INBOX
#   Work/Tickets/Open/12345 - Acme
#
# Providers whose servers use a different hierarchy delimiter (e.g. ".")
# translate to "/" when building Folder objects. The opaque `id` is what
# gets handed back to the provider for operations on the folder.
# =============================================================================

from dataclasses import dataclass, field


PATH_SEPARATOR = "/"


def normalize_path(path: str | None) -> str:
    """
    Normalize a user-supplied folder path.

    Trims surrounding whitespace and strips leading/trailing slashes.

    Example:
        >>> normalize_path("  /Tickets/Open/ ")
        'Tickets/Open'
    """
    if not path:
        return ""
    return path.strip().strip(PATH_SEPARATOR)


def split_path(path: str) -> list[str]:
    """Split a path into its non-empty segments."""
    return [part for part in normalize_path(path).split(PATH_SEPARATOR) if part]


@dataclass
class Folder:
    """
    A folder in an account's folder tree.

    Attributes:
        path: Full "/"-delimited path, first segment is the account name.
        name: The folder's own name (last path segment).
        account_id: Identifier of the owning account.
        id: Opaque provider handle for the folder.
        children: Direct subfolders, in provider order.

    Example:
        >>> folder = Folder(
        ...     path="Work/Tickets/Open",
        ...     name="Open",
        ...     account_id="work",
        ...     id="work:Tickets/Open",
        ... )
    """

    path: str
    name: str
    account_id: str
    id: str
    children: list["Folder"] = field(default_factory=list)

    @property
    def relative_path(self) -> str:
        """
        Returns the path without the leading account segment.

        Example:
            >>> Folder(path="Work/Tickets/Open", ...).relative_path
            "Tickets/Open"
        """
        parts = normalize_path(self.path).split(PATH_SEPARATOR, 1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def parent_path(self) -> str | None:
        """Returns the parent folder path, or None for a top-level folder."""
        normalized = normalize_path(self.path)
        if PATH_SEPARATOR in normalized:
            return normalized.rsplit(PATH_SEPARATOR, 1)[0]
        return None

    def matches(self, path_spec: str) -> bool:
        """
        True if this folder's path equals `path_spec` or ends with it on a
        segment boundary. `path_spec` must already be normalized.
        """
        own = normalize_path(self.path)
        return own == path_spec or own.endswith(PATH_SEPARATOR + path_spec)

    def is_within(self, root: "Folder") -> bool:
        """
        True if this folder is `root` itself or lives somewhere below it.

        The comparison is segment-aware: "Tickets/Open2" is not within
        "Tickets/Open".
        """
        if self.account_id != root.account_id:
            return False
        own = normalize_path(self.path)
        root_path = normalize_path(root.path)
        return own == root_path or own.startswith(root_path + PATH_SEPARATOR)

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return (
            f"Folder(path={self.path!r}, account={self.account_id!r}, "
            f"children={len(self.children)})"
        )
