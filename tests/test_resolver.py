"""Tests for folder indexing and path resolution."""

import logging

from ticket_folders.core import Folder
from ticket_folders.sync import FolderResolver, ResolvedCurrentFolder, build_index, flatten


def paths(folders):
    return [f.path for f in folders]


class TestIndex:

    def test_flatten_is_pre_order(self):
        leaf = Folder(path="A/B/C", name="C", account_id="A", id="c")
        b = Folder(path="A/B", name="B", account_id="A", id="b", children=[leaf])
        d = Folder(path="A/D", name="D", account_id="A", id="d")
        assert paths(flatten([b, d])) == ["A/B", "A/B/C", "A/D"]

    async def test_build_index_spans_accounts(self, provider):
        index = await build_index(provider)
        assert paths(index) == [
            "Work/INBOX",
            "Work/Support",
            "Work/Tickets",
            "Work/Tickets/Open",
            "Work/Tickets/Open/12345 - Acme",
            "Work/Tickets/Open/Notes",
            "Work/Tickets/Closed",
            "Work/Tickets/Closed/67890 - Globex",
            "Home/INBOX",
            "Home/Tickets",
            "Home/Tickets/Open",
        ]

    async def test_build_index_failure_is_empty(self, provider, caplog):
        provider.fail_listing = True
        assert await build_index(provider) == []
        assert "Error retrieving folders" in caplog.text


class TestResolve:
    """Test the exact-then-suffix resolution."""

    async def test_exact_match(self, provider, caplog):
        result = await FolderResolver(provider).resolve("Home/Tickets/Open")
        assert result.exists
        assert result.folder.path == "Home/Tickets/Open"
        assert "ambiguous" not in caplog.text

    async def test_suffix_match(self, provider):
        result = await FolderResolver(provider).resolve("Tickets/Closed")
        assert result.folder.path == "Work/Tickets/Closed"

    async def test_input_is_normalized(self, provider):
        result = await FolderResolver(provider).resolve("  /Tickets/Closed/ ")
        assert result.folder.path == "Work/Tickets/Closed"

    async def test_ambiguous_suffix_picks_first_and_warns_once(self, provider, caplog):
        with caplog.at_level(logging.WARNING):
            result = await FolderResolver(provider).resolve("Tickets/Open")

        assert result.folder.path == "Work/Tickets/Open"
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "Found 2 folders for ambiguous setting 'Tickets/Open'" in warnings[0].getMessage()

    async def test_not_found(self, provider):
        result = await FolderResolver(provider).resolve("Tickets/Pending")
        assert not result.exists
        assert result.folder is None

    async def test_suffix_must_start_at_segment(self, provider):
        result = await FolderResolver(provider).resolve("ickets/Open")
        assert not result.exists

    async def test_empty_input_does_not_enumerate(self, provider):
        resolver = FolderResolver(provider)
        assert not (await resolver.resolve("")).exists
        assert not (await resolver.resolve(None)).exists
        assert not (await resolver.resolve(" / ")).exists
        assert provider.calls_to("list_accounts") == []

    async def test_enumeration_failure_resolves_nothing(self, provider):
        provider.fail_listing = True
        result = await FolderResolver(provider).resolve("Work/INBOX")
        assert not result.exists

    async def test_resolution_is_stable(self, provider):
        resolver = FolderResolver(provider)
        first = await resolver.resolve("Tickets/Open")
        second = await resolver.resolve("Tickets/Open")
        assert first.folder.id == second.folder.id

    async def test_index_is_rebuilt_every_time(self, provider):
        resolver = FolderResolver(provider)
        assert not (await resolver.resolve("Tickets/Pending")).exists

        provider.add_path(provider.accounts[0], "Tickets/Pending")
        assert (await resolver.resolve("Tickets/Pending")).exists


class TestMatchAll:

    async def test_every_account_in_index_order(self, provider):
        folders = await FolderResolver(provider).match_all(("INBOX", "Support"))
        assert paths(folders) == ["Work/INBOX", "Work/Support", "Home/INBOX"]

    async def test_no_duplicates(self, provider):
        folders = await FolderResolver(provider).match_all(["INBOX", "Work/INBOX"])
        assert paths(folders) == ["Work/INBOX", "Home/INBOX"]

    async def test_nothing_wanted(self, provider):
        assert await FolderResolver(provider).match_all(["", " "]) == []


async def test_resolved_current_folder(provider):
    current = ResolvedCurrentFolder(FolderResolver(provider), "Open/12345 - Acme")
    folder = await current.current_folder()
    assert folder.path == "Work/Tickets/Open/12345 - Acme"

    assert await ResolvedCurrentFolder(FolderResolver(provider), None).current_folder() is None
