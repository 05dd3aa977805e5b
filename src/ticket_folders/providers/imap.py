# =============================================================================
# IMAP Provider
# =============================================================================
# Implements the folder and message provider interfaces on top of IMAP, one
# connection per configured account.
#
# Key responsibilities:
#   - Connection management (SSL or STARTTLS, password from keyring)
#   - Turning the flat LIST response into per-account folder trees
#   - Paging through a mailbox's subjects (UID SEARCH + UID FETCH)
#   - Moving messages (MOVE, or COPY + \Deleted + EXPUNGE)
#   - Creating and moving (renaming) mailboxes
#
# Handles:
#   - Folder id:   "<account>:<mailbox>"        e.g. "work:Tickets/Open"
#   - Message id:  "<folder id>#<uid>"          e.g. "work:INBOX#4711"
#   - Folder path: "<account>/<segments...>"    server delimiter mapped to "/"
#
# This module uses aioimaplib for async IMAP operations.
# =============================================================================

import asyncio
import email
import email.header
import logging
import re
import uuid
from dataclasses import dataclass, field, replace

import keyring
from aioimaplib import aioimaplib

from ticket_folders.core import Account, Folder, Message, MessagePage
from ticket_folders.errors import ProviderError
from ticket_folders.providers.base import MailProvider

# Set up logging for this module
logger = logging.getLogger(__name__)


def _quote_folder_name(name: str) -> str:
    """
    Quote an IMAP folder name if it contains special characters.

    IMAP folder names with spaces or special characters must be quoted.
    This function wraps folder names in double quotes and escapes
    any internal quotes or backslashes.
    """
    if ' ' in name or '"' in name or '\\' in name or any(c in name for c in '(){}[]'):
        escaped = name.replace('\\', '\\\\').replace('"', '\\"')
        return f'"{escaped}"'
    return name


def _decode(line: bytes | bytearray | str) -> str:
    if isinstance(line, (bytes, bytearray)):
        return bytes(line).decode("utf-8", errors="replace")
    return str(line)


def _decode_header(value: str) -> str:
    """Decode an RFC 2047 encoded header value."""
    if not value:
        return ""
    try:
        decoded_parts = email.header.decode_header(value)
        result = ""
        for part, charset in decoded_parts:
            if isinstance(part, bytes):
                result += part.decode(charset or "utf-8", errors="replace")
            else:
                result += part
        return result
    except Exception:
        return value


@dataclass
class Mailbox:
    """
    One entry of a LIST response.

    Attributes:
        name: Server-side mailbox name (e.g., "Tickets.Open").
        delimiter: Hierarchy delimiter ("/" or "."), empty for flat servers.
        flags: Mailbox attributes (e.g., ["\\HasChildren"]).
    """
    name: str
    delimiter: str = "/"
    flags: list[str] = field(default_factory=list)

    @property
    def segments(self) -> list[str]:
        if not self.delimiter:
            return [self.name]
        return self.name.split(self.delimiter)


@dataclass
class ConnectionState:
    """
    Tracks the current state of an IMAP connection.

    Attributes:
        connected: Whether we have an active connection.
        authenticated: Whether we've successfully logged in.
        selected_folder: Currently selected folder, if any.
    """
    connected: bool = False
    authenticated: bool = False
    selected_folder: str | None = None


class IMAPClient:
    """
    Async IMAP client for a single account.

    Usage:
        >>> client = IMAPClient(account)
        >>> await client.connect()
        >>> mailboxes = await client.list_mailboxes()
        >>> uids = await client.search_uids("INBOX")
        >>> subjects = await client.fetch_subjects("INBOX", uids[:100])
        >>> await client.disconnect()
    """

    # Timeout for IMAP operations (seconds)
    TIMEOUT = 30

    # Largest UID set sent in one command
    BATCH_SIZE = 100

    def __init__(self, account: Account) -> None:
        self.account = account
        self.state = ConnectionState()
        self._client: aioimaplib.IMAP4_SSL | aioimaplib.IMAP4 | None = None

    @property
    def is_connected(self) -> bool:
        """Check if client is connected and authenticated."""
        return self.state.connected and self.state.authenticated and self._client is not None

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def connect(self) -> None:
        """
        Establish connection to the IMAP server.

        Raises:
            IMAPConnectionError: If unable to connect to server.
            IMAPAuthenticationError: If login fails.
        """
        logger.info(f"Connecting to {self.account.imap_host}:{self.account.imap_port}")

        try:
            if self.account.imap_security == "ssl":
                self._client = aioimaplib.IMAP4_SSL(
                    host=self.account.imap_host,
                    port=self.account.imap_port,
                    timeout=self.TIMEOUT,
                )
            else:
                # Plain connection, upgraded with STARTTLS below
                self._client = aioimaplib.IMAP4(
                    host=self.account.imap_host,
                    port=self.account.imap_port,
                    timeout=self.TIMEOUT,
                )

            await self._client.wait_hello_from_server()
            self.state.connected = True

            if self.account.imap_security == "starttls":
                if not self._client.has_capability("STARTTLS"):
                    raise IMAPConnectionError("Server does not support STARTTLS")
                logger.debug("Upgrading to TLS via STARTTLS")
                await self._client.starttls()

            await self._authenticate()
            logger.info(f"Successfully connected to {self.account.imap_host}")

        except asyncio.TimeoutError as e:
            self.state.connected = False
            raise IMAPConnectionError(
                f"Connection timed out to {self.account.imap_host}:{self.account.imap_port}"
            ) from e
        except OSError as e:
            self.state.connected = False
            raise IMAPConnectionError(
                f"Failed to connect to {self.account.imap_host}:{self.account.imap_port}: {e}"
            ) from e

    async def _authenticate(self) -> None:
        """
        Authenticate with the IMAP server using credentials from keyring.

        Raises:
            IMAPAuthenticationError: If login fails or password not found.
        """
        password = keyring.get_password(self.account.keyring_service, self.account.email)

        if not password:
            raise IMAPAuthenticationError(
                f"No password found in keyring for {self.account.email}. "
                f"Set it with: keyring set {self.account.keyring_service} {self.account.email}"
            )

        logger.debug(f"Authenticating as {self.account.email}")
        response = await self._client.login(self.account.email, password)

        if response.result != "OK":
            raise IMAPAuthenticationError(
                f"Authentication failed for {self.account.email}: {response.lines}"
            )

        self.state.authenticated = True

    async def disconnect(self) -> None:
        """Send LOGOUT and close the connection."""
        if self._client and self.state.connected:
            try:
                await self._client.logout()
            except Exception as e:
                logger.warning(f"Error during logout: {e}")
            finally:
                self._client = None
                self.state = ConnectionState()

    async def ensure_connected(self) -> None:
        """Connect if we aren't already."""
        if not self.state.connected or not self._client:
            await self.connect()

    # =========================================================================
    # Mailbox Operations
    # =========================================================================

    async def list_mailboxes(self) -> list[Mailbox]:
        """
        Fetch all mailboxes, in server order.

        Raises:
            IMAPError: If the LIST command fails.
        """
        await self.ensure_connected()

        response = await self._client.list('""', "*")
        if response.result != "OK":
            raise IMAPError(f"Failed to list folders: {response.lines}")

        mailboxes = []
        for line in response.lines:
            mailbox = self._parse_list_line(line)
            if mailbox:
                mailboxes.append(mailbox)

        logger.debug(f"Found {len(mailboxes)} mailboxes for {self.account.name}")
        return mailboxes

    def _parse_list_line(self, line: bytes | str) -> Mailbox | None:
        """
        Parse a single LIST response line.

        LIST response format:
            (\\HasNoChildren) "/" "INBOX"
            (\\HasChildren) "." Tickets
            (\\Noselect) NIL "Shared"
        """
        line = _decode(line)

        # Mailbox lines open with their flag list; anything else is status text
        if not line or not line.lstrip().startswith("("):
            return None

        match = re.match(r'\(([^)]*)\)\s+(?:"([^"]*)"|NIL)\s+(.+)$', line, re.IGNORECASE)
        if not match:
            logger.warning(f"Could not parse folder line: {line}")
            return None

        flags_str, delimiter, name = match.groups()
        name = name.strip()
        if len(name) >= 2 and name.startswith('"') and name.endswith('"'):
            name = name[1:-1].replace('\\"', '"').replace('\\\\', '\\')

        return Mailbox(
            name=name,
            delimiter=delimiter or "",
            flags=flags_str.split() if flags_str else [],
        )

    async def select_folder(self, folder_name: str) -> None:
        """
        Select a folder for subsequent operations.

        Raises:
            IMAPError: If folder selection fails.
        """
        await self.ensure_connected()
        if self.state.selected_folder == folder_name:
            return

        logger.debug(f"Selecting folder: {folder_name}")
        response = await self._client.select(_quote_folder_name(folder_name))
        if response.result != "OK":
            raise IMAPError(f"Failed to select folder '{folder_name}': {response.lines}")
        self.state.selected_folder = folder_name

    async def create_mailbox(self, name: str) -> None:
        """Create a mailbox. Raises IMAPError on failure."""
        await self.ensure_connected()
        logger.debug(f"Creating mailbox: {name}")
        response = await self._client.create(_quote_folder_name(name))
        if response.result != "OK":
            raise IMAPError(f"Failed to create folder '{name}': {response.lines}")

    async def rename_mailbox(self, old_name: str, new_name: str) -> None:
        """Rename (move) a mailbox. Raises IMAPError on failure."""
        await self.ensure_connected()

        # Renaming the selected mailbox is refused by some servers
        if self.state.selected_folder == old_name:
            await self._client.close()
            self.state.selected_folder = None

        logger.debug(f"Renaming mailbox: {old_name} -> {new_name}")
        response = await self._client.rename(
            _quote_folder_name(old_name), _quote_folder_name(new_name)
        )
        if response.result != "OK":
            raise IMAPError(f"Failed to move folder '{old_name}': {response.lines}")

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def search_uids(self, folder_name: str) -> list[int]:
        """Return all UIDs in a folder, ascending."""
        await self.select_folder(folder_name)

        response = await self._client.uid_search("ALL")
        if response.result != "OK":
            raise IMAPError(f"UID search failed in '{folder_name}': {response.lines}")

        uids: list[int] = []
        for line in response.lines:
            text = _decode(line).strip()
            if "completed" in text.lower():
                continue
            if text.upper().startswith("SEARCH"):
                text = text[len("SEARCH"):]
            uids.extend(int(n) for n in re.findall(r"\d+", text))
        return sorted(set(uids))

    async def fetch_subjects(self, folder_name: str, uids: list[int]) -> dict[int, str]:
        """
        Fetch the Subject header of the given messages.

        Returns:
            {uid: decoded subject}; messages without a subject map to "".
        """
        if not uids:
            return {}
        await self.select_folder(folder_name)

        uid_set = ",".join(str(u) for u in uids)
        response = await self._client.uid(
            "FETCH", uid_set, "(UID BODY.PEEK[HEADER.FIELDS (SUBJECT)])"
        )
        if response.result != "OK":
            raise IMAPError(f"Fetch failed in '{folder_name}': {response.lines}")

        return self._parse_subjects(response.lines)

    def _parse_subjects(self, lines: list) -> dict[int, str]:
        """
        Parse a UID FETCH response for header fields.

        aioimaplib returns the FETCH line and the header literal as separate
        items; the literal is a bytearray:

            b'3 FETCH (UID 42 BODY[HEADER.FIELDS (SUBJECT)] {27}'
            bytearray(b'Subject: Ticket ID: 12345\\r\\n\\r\\n')
            b')'

        The UID may also come after the literal, so items are grouped per
        FETCH first.
        """
        groups: list[dict] = []
        for item in lines:
            if isinstance(item, bytearray):
                if groups:
                    groups[-1]["literal"] = bytes(item)
                continue
            text = _decode(item)
            if re.match(r"^\d+\s+FETCH\s*\(", text, re.IGNORECASE):
                groups.append({"text": text, "literal": None})
            elif groups:
                groups[-1]["text"] += " " + text

        subjects: dict[int, str] = {}
        for group in groups:
            uid_match = re.search(r"UID\s+(\d+)", group["text"], re.IGNORECASE)
            if not uid_match:
                continue
            subject = ""
            if group["literal"]:
                headers = email.message_from_bytes(group["literal"])
                subject = _decode_header(headers.get("Subject", ""))
            subjects[int(uid_match.group(1))] = " ".join(subject.split())
        return subjects

    async def move_messages(self, source_folder: str, dest_folder: str, uids: list[int]) -> None:
        """
        Move messages from one folder to another.

        Uses MOVE command if supported, otherwise COPY + DELETE. Without MOVE,
        servers with UIDPLUS expunge only the moved UIDs.
        Processes in batches to avoid command size limits.
        """
        await self.select_folder(source_folder)
        quoted_dest = _quote_folder_name(dest_folder)

        for i in range(0, len(uids), self.BATCH_SIZE):
            batch = uids[i:i + self.BATCH_SIZE]
            uid_set = ",".join(str(u) for u in batch)

            if self._client.has_capability("MOVE"):
                logger.debug(f"Moving {len(batch)} messages to {dest_folder} using MOVE")
                response = await self._client.uid("MOVE", uid_set, quoted_dest)
                if response.result != "OK":
                    raise IMAPError(f"Move failed: {response.lines}")
            else:
                logger.debug(f"Moving {len(batch)} messages to {dest_folder} using COPY+DELETE")
                response = await self._client.uid("COPY", uid_set, quoted_dest)
                if response.result != "OK":
                    raise IMAPError(f"Copy failed: {response.lines}")

                response = await self._client.uid("STORE", uid_set, "+FLAGS (\\Deleted)")
                if response.result != "OK":
                    raise IMAPError(f"Failed to set flags: {response.lines}")

                if self._client.has_capability("UIDPLUS"):
                    response = await self._client.uid("EXPUNGE", uid_set)
                    if response.result != "OK":
                        raise IMAPError(f"Expunge failed: {response.lines}")
                else:
                    await self._client.expunge()


class IMAPProvider(MailProvider):
    """
    Mail provider spanning every enabled IMAP account.

    Usage:
        >>> async with IMAPProvider(config.accounts.values()) as provider:
        ...     accounts = await provider.list_accounts()

    Attributes:
        accounts: Enabled accounts, in config order.
    """

    # Messages per page when listing a folder
    PAGE_SIZE = 100

    def __init__(self, accounts) -> None:
        self.accounts: list[Account] = [a for a in accounts if a.enabled]
        self._clients = {a.name: IMAPClient(a) for a in self.accounts}
        self._delimiters: dict[str, str] = {}
        # page token -> (folder id, UIDs not yet returned)
        self._pages: dict[str, tuple[str, list[int]]] = {}

    async def __aenter__(self) -> "IMAPProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    async def disconnect(self) -> None:
        """Log out of every account."""
        for client in self._clients.values():
            await client.disconnect()

    # =========================================================================
    # Handles
    # =========================================================================

    def _client_for(self, folder_id: str) -> tuple[IMAPClient, str]:
        """Split a folder id into (client, mailbox name)."""
        account_name, sep, mailbox = folder_id.partition(":")
        client = self._clients.get(account_name)
        if not sep or client is None:
            raise ProviderError(f"Unknown folder id: {folder_id!r}")
        return client, mailbox

    def _delimiter(self, account_name: str) -> str:
        return self._delimiters.get(account_name) or "/"

    def _build_tree(self, account: Account, mailboxes: list[Mailbox]) -> list[Folder]:
        """Turn a flat LIST result into the account's folder tree."""
        by_path: dict[str, Folder] = {}
        for mailbox in mailboxes:
            if mailbox.delimiter and account.name not in self._delimiters:
                self._delimiters[account.name] = mailbox.delimiter
            segments = mailbox.segments
            path = "/".join([account.name, *segments])
            by_path[path] = Folder(
                path=path,
                name=segments[-1],
                account_id=account.id,
                id=f"{account.name}:{mailbox.name}",
            )

        roots: list[Folder] = []
        for path, folder in by_path.items():
            parent = by_path.get(folder.parent_path or "")
            if parent is not None:
                parent.children.append(folder)
            else:
                roots.append(folder)
        return roots

    async def _tree(self, account: Account) -> list[Folder]:
        client = self._clients[account.name]
        try:
            mailboxes = await client.list_mailboxes()
        except IMAPError:
            raise
        except Exception as e:
            raise IMAPError(f"Failed to list folders of {account.name}: {e}") from e
        return self._build_tree(account, mailboxes)

    # =========================================================================
    # FolderProvider
    # =========================================================================

    async def list_accounts(self, include_folders: bool = True) -> list[Account]:
        accounts = []
        for account in self.accounts:
            folders = await self._tree(account) if include_folders else []
            accounts.append(replace(account, folders=folders))
        return accounts

    async def create_folder(self, parent: Account | Folder, name: str) -> Folder:
        if isinstance(parent, Account):
            account_name = parent.name
            mailbox = name
            path = f"{parent.name}/{name}"
        else:
            client, parent_mailbox = self._client_for(parent.id)
            account_name = client.account.name
            mailbox = f"{parent_mailbox}{self._delimiter(account_name)}{name}"
            path = f"{parent.path}/{name}"

        client = self._clients.get(account_name)
        if client is None:
            raise ProviderError(f"Unknown account: {account_name!r}")

        await client.create_mailbox(mailbox)
        return Folder(
            path=path,
            name=name,
            account_id=client.account.id,
            id=f"{account_name}:{mailbox}",
        )

    async def get_subfolders(self, parent: Account | Folder) -> list[Folder]:
        if isinstance(parent, Account):
            account = next((a for a in self.accounts if a.name == parent.name), None)
            if account is None:
                raise ProviderError(f"Unknown account: {parent.name!r}")
            return await self._tree(account)

        client, _ = self._client_for(parent.id)
        stack = await self._tree(client.account)
        while stack:
            folder = stack.pop()
            if folder.id == parent.id:
                return folder.children
            stack.extend(folder.children)
        return []

    async def move_folder(self, folder_id: str, destination_id: str) -> None:
        client, mailbox = self._client_for(folder_id)
        dest_client, dest_mailbox = self._client_for(destination_id)
        if client is not dest_client:
            raise ProviderError("Folders can only be moved within one account.")

        delimiter = self._delimiter(client.account.name)
        leaf = mailbox.rsplit(delimiter, 1)[-1]
        await client.rename_mailbox(mailbox, f"{dest_mailbox}{delimiter}{leaf}")

    # =========================================================================
    # MessageProvider
    # =========================================================================

    async def list_messages(self, folder_id: str) -> MessagePage:
        client, mailbox = self._client_for(folder_id)
        uids = await client.search_uids(mailbox)
        return await self._page(folder_id, uids)

    async def continue_list(self, page_token: str) -> MessagePage:
        try:
            folder_id, uids = self._pages.pop(page_token)
        except KeyError:
            raise ProviderError(f"Unknown or expired page token: {page_token!r}") from None
        return await self._page(folder_id, uids)

    async def release(self, page_token: str) -> None:
        self._pages.pop(page_token, None)

    async def _page(self, folder_id: str, uids: list[int]) -> MessagePage:
        client, mailbox = self._client_for(folder_id)
        batch, rest = uids[:self.PAGE_SIZE], uids[self.PAGE_SIZE:]

        subjects = await client.fetch_subjects(mailbox, batch)
        messages = [
            Message(id=f"{folder_id}#{uid}", subject=subjects.get(uid, ""), folder_id=folder_id)
            for uid in batch
        ]

        token = None
        if rest:
            token = uuid.uuid4().hex
            self._pages[token] = (folder_id, rest)
        return MessagePage(messages=messages, page_token=token)

    async def move_messages(self, message_ids: list[str], destination_id: str) -> None:
        dest_client, dest_mailbox = self._client_for(destination_id)

        # Group by source folder, keeping first-seen order
        by_folder: dict[str, list[int]] = {}
        for message_id in message_ids:
            folder_id, sep, uid = message_id.rpartition("#")
            if not sep or not uid.isdigit():
                raise ProviderError(f"Unknown message id: {message_id!r}")
            by_folder.setdefault(folder_id, []).append(int(uid))

        for folder_id, uids in by_folder.items():
            client, mailbox = self._client_for(folder_id)
            if client is not dest_client:
                raise ProviderError("Messages can only be moved within one account.")
            await client.move_messages(mailbox, dest_mailbox, uids)


# =============================================================================
# Exceptions
# =============================================================================

class IMAPError(ProviderError):
    """Base exception for IMAP operations."""
    pass


class IMAPConnectionError(IMAPError):
    """Raised when unable to connect to IMAP server."""
    pass


class IMAPAuthenticationError(IMAPError):
    """Raised when IMAP authentication fails."""
    pass
