"""Tests for the IMAP provider (parsing and handle bookkeeping, no network)."""

import types

import pytest

from ticket_folders.core import Account
from ticket_folders.errors import ProviderError
from ticket_folders.providers.imap import (
    IMAPClient,
    IMAPProvider,
    Mailbox,
    _quote_folder_name,
)
from ticket_folders.sync import MessageScanner


class FakeIMAPClient:
    """Stands in for IMAPClient; mailboxes and messages live in dicts."""

    def __init__(self, account, mailboxes, messages=None):
        self.account = account
        self.mailboxes = mailboxes
        self.messages = messages or {}
        self.calls = []

    async def list_mailboxes(self):
        return list(self.mailboxes)

    async def search_uids(self, folder_name):
        return sorted(self.messages.get(folder_name, {}))

    async def fetch_subjects(self, folder_name, uids):
        self.calls.append(("fetch", folder_name, list(uids)))
        return {uid: self.messages[folder_name][uid] for uid in uids}

    async def move_messages(self, source, dest, uids):
        self.calls.append(("move", source, dest, list(uids)))

    async def create_mailbox(self, name):
        self.calls.append(("create", name))

    async def rename_mailbox(self, old, new):
        self.calls.append(("rename", old, new))

    async def disconnect(self):
        pass


@pytest.fixture
def work():
    return Account(name="work", email="support@example.com", is_default=True)


@pytest.fixture
def imap(work):
    provider = IMAPProvider([work, Account(name="home"), Account(name="old", enabled=False)])
    provider._clients["work"] = FakeIMAPClient(
        work,
        [
            Mailbox("INBOX", "."),
            Mailbox("Tickets", "."),
            Mailbox("Tickets.Open", "."),
            Mailbox("Tickets.Open.12345 - Acme", "."),
            Mailbox("Tickets.Closed", "."),
        ],
        {
            "INBOX": {
                1: "Ticket ID: 12345 printer",
                2: "Lunch",
                3: "Ticket ID: 12345 again",
            },
        },
    )
    provider._clients["home"] = FakeIMAPClient(provider.accounts[1], [Mailbox("INBOX", "/")])
    return provider


class TestParsing:

    def test_quote_folder_name(self):
        assert _quote_folder_name("INBOX") == "INBOX"
        assert _quote_folder_name("12345 - Acme") == '"12345 - Acme"'
        assert _quote_folder_name('say "hi"') == '"say \\"hi\\""'

    def test_parse_list_line(self, work):
        client = IMAPClient(work)
        mailbox = client._parse_list_line(b'(\\HasChildren) "." "Tickets.Open"')
        assert mailbox == Mailbox("Tickets.Open", ".", ["\\HasChildren"])
        assert mailbox.segments == ["Tickets", "Open"]

    def test_parse_list_line_unquoted_and_nil(self, work):
        client = IMAPClient(work)
        assert client._parse_list_line(b'(\\HasNoChildren) "/" INBOX').name == "INBOX"
        flat = client._parse_list_line(b'(\\Noselect) NIL "Shared"')
        assert flat.delimiter == ""
        assert flat.segments == ["Shared"]

    def test_parse_list_line_skips_status(self, work):
        assert IMAPClient(work)._parse_list_line(b"LIST completed.") is None

    def test_parse_list_line_name_mentioning_completed(self, work):
        mailbox = IMAPClient(work)._parse_list_line(b'(\\HasNoChildren) "/" "Tickets/Completed"')
        assert mailbox.name == "Tickets/Completed"
        assert mailbox.segments == ["Tickets", "Completed"]

    def test_parse_subjects(self, work):
        lines = [
            b"1 FETCH (UID 41 BODY[HEADER.FIELDS (SUBJECT)] {33}",
            bytearray(b"Subject: Ticket ID: 12345 help\r\n\r\n"),
            b")",
            b"2 FETCH (BODY[HEADER.FIELDS (SUBJECT)] {47}",
            bytearray(b"Subject: =?utf-8?q?Ticket_ID=3A_777777_caf=C3=A9?=\r\n\r\n"),
            b" UID 42)",
            b"3 FETCH (UID 43 BODY[HEADER.FIELDS (SUBJECT)] {2}",
            bytearray(b"\r\n"),
            b")",
            b"Fetch completed.",
        ]
        subjects = IMAPClient(work)._parse_subjects(lines)
        assert subjects == {
            41: "Ticket ID: 12345 help",
            42: "Ticket ID: 777777 café",
            43: "",
        }


class TestFolders:
    """Test folder trees and folder operations."""

    async def test_disabled_accounts_are_skipped(self, imap):
        assert [a.name for a in imap.accounts] == ["work", "home"]

    async def test_tree_uses_slash_paths(self, imap):
        accounts = await imap.list_accounts()
        work = accounts[0]

        assert [f.path for f in work.folders] == ["work/INBOX", "work/Tickets"]
        tickets = work.folders[1]
        assert [f.path for f in tickets.children] == ["work/Tickets/Open", "work/Tickets/Closed"]
        case = tickets.children[0].children[0]
        assert case.name == "12345 - Acme"
        assert case.id == "work:Tickets.Open.12345 - Acme"
        assert case.account_id == "work"

    async def test_list_without_folders(self, imap):
        accounts = await imap.list_accounts(include_folders=False)
        assert all(a.folders == [] for a in accounts)

    async def test_create_folder_uses_server_delimiter(self, imap):
        accounts = await imap.list_accounts()
        opened = accounts[0].folders[1].children[0]

        folder = await imap.create_folder(opened, "55555 - Initech")

        assert folder.path == "work/Tickets/Open/55555 - Initech"
        assert folder.id == "work:Tickets.Open.55555 - Initech"
        assert imap._clients["work"].calls == [("create", "Tickets.Open.55555 - Initech")]

    async def test_create_top_level_folder(self, imap, work):
        folder = await imap.create_folder(work, "Projects")
        assert folder.id == "work:Projects"

    async def test_get_subfolders(self, imap, work):
        accounts = await imap.list_accounts()
        tickets = accounts[0].folders[1]

        assert [f.name for f in await imap.get_subfolders(tickets)] == ["Open", "Closed"]
        assert [f.name for f in await imap.get_subfolders(work)] == ["INBOX", "Tickets"]

    async def test_move_folder_renames(self, imap):
        await imap.list_accounts()
        await imap.move_folder("work:Tickets.Open.12345 - Acme", "work:Tickets.Closed")
        assert imap._clients["work"].calls == [
            ("rename", "Tickets.Open.12345 - Acme", "Tickets.Closed.12345 - Acme")
        ]

    async def test_move_folder_across_accounts(self, imap):
        with pytest.raises(ProviderError):
            await imap.move_folder("work:Tickets.Open", "home:INBOX")

    async def test_unknown_folder_id(self, imap):
        with pytest.raises(ProviderError):
            await imap.list_messages("nobody:INBOX")


class TestMessages:
    """Test message paging and moves."""

    async def test_pages_chain(self, imap, monkeypatch):
        monkeypatch.setattr(IMAPProvider, "PAGE_SIZE", 2)

        first = await imap.list_messages("work:INBOX")
        assert [m.id for m in first.messages] == ["work:INBOX#1", "work:INBOX#2"]
        assert first.messages[0].subject == "Ticket ID: 12345 printer"
        assert first.page_token

        second = await imap.continue_list(first.page_token)
        assert [m.id for m in second.messages] == ["work:INBOX#3"]
        assert second.page_token is None

    async def test_page_token_is_single_use(self, imap, monkeypatch):
        monkeypatch.setattr(IMAPProvider, "PAGE_SIZE", 2)
        first = await imap.list_messages("work:INBOX")
        await imap.continue_list(first.page_token)

        with pytest.raises(ProviderError):
            await imap.continue_list(first.page_token)

    async def test_release_drops_page_token(self, imap, monkeypatch):
        monkeypatch.setattr(IMAPProvider, "PAGE_SIZE", 2)
        first = await imap.list_messages("work:INBOX")

        await imap.release(first.page_token)

        assert imap._pages == {}
        with pytest.raises(ProviderError):
            await imap.continue_list(first.page_token)

    async def test_failed_paging_leaves_no_tokens(self, imap, monkeypatch):
        monkeypatch.setattr(IMAPProvider, "PAGE_SIZE", 2)

        async def broken_continue(page_token):
            raise RuntimeError("connection reset by peer")

        monkeypatch.setattr(imap, "continue_list", broken_continue)
        accounts = await imap.list_accounts()
        inbox = accounts[0].folders[0]
        case = accounts[0].folders[1].children[0].children[0]

        moved = await MessageScanner(imap).scan_and_move("12345", case, [inbox])

        assert moved == 0
        assert imap._pages == {}

    async def test_move_messages_groups_by_folder(self, imap):
        await imap.move_messages(
            ["work:INBOX#1", "work:Tickets.Open#7", "work:INBOX#3"],
            "work:Tickets.Open.12345 - Acme",
        )
        assert imap._clients["work"].calls == [
            ("move", "INBOX", "Tickets.Open.12345 - Acme", [1, 3]),
            ("move", "Tickets.Open", "Tickets.Open.12345 - Acme", [7]),
        ]

    async def test_move_messages_across_accounts(self, imap):
        with pytest.raises(ProviderError):
            await imap.move_messages(["home:INBOX#1"], "work:INBOX")

    async def test_bad_message_id(self, imap):
        with pytest.raises(ProviderError):
            await imap.move_messages(["work:INBOX"], "work:INBOX")


class FakeServerConnection:
    """Stands in for the aioimaplib client underneath IMAPClient."""

    def __init__(self, capabilities):
        self.capabilities = set(capabilities)
        self.commands = []

    def has_capability(self, capability):
        return capability in self.capabilities

    async def uid(self, command, *args):
        self.commands.append((command, *args))
        return types.SimpleNamespace(result="OK", lines=[])

    async def expunge(self):
        self.commands.append(("EXPUNGE-ALL",))
        return types.SimpleNamespace(result="OK", lines=[])


class TestMoveCommands:
    """Test which IMAP commands a message move issues."""

    def connected(self, work, capabilities):
        client = IMAPClient(work)
        client._client = FakeServerConnection(capabilities)
        client.state.connected = True
        client.state.selected_folder = "INBOX"
        return client

    async def test_move_capability(self, work):
        client = self.connected(work, ["MOVE"])

        await client.move_messages("INBOX", "Tickets.Open", [4, 9])

        assert client._client.commands == [("MOVE", "4,9", "Tickets.Open")]

    async def test_copy_fallback_expunges_only_moved_uids(self, work):
        client = self.connected(work, ["UIDPLUS"])

        await client.move_messages("INBOX", "Tickets.Open", [4, 9])

        assert client._client.commands == [
            ("COPY", "4,9", "Tickets.Open"),
            ("STORE", "4,9", "+FLAGS (\\Deleted)"),
            ("EXPUNGE", "4,9"),
        ]

    async def test_copy_fallback_without_uidplus(self, work):
        client = self.connected(work, [])

        await client.move_messages("INBOX", "Tickets.Open", [4])

        assert client._client.commands[-1] == ("EXPUNGE-ALL",)
