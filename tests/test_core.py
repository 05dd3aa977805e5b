"""Tests for the core models and ticket ID extraction."""

from ticket_folders.core import Account, Folder, TicketId, normalize_path, split_path
from ticket_folders.core import ticket


def make_folder(path: str, account_id: str = "Work") -> Folder:
    return Folder(path=path, name=path.rsplit("/", 1)[-1], account_id=account_id, id=path)


class TestTicketFromSubject:
    """Ticket IDs in message subjects need the "Ticket ID:" label."""

    def test_labelled_id(self):
        assert ticket.from_subject("Re: [Support] Ticket ID: 123456 printer on fire") == "123456"

    def test_no_space_after_label(self):
        assert ticket.from_subject("Ticket ID:98765") == "98765"

    def test_unlabelled_number_is_ignored(self):
        assert ticket.from_subject("Order 123456 shipped") is None

    def test_number_before_label_is_skipped(self):
        assert ticket.from_subject("Order 555 / Ticket ID: 42") == "42"

    def test_empty_subject(self):
        assert ticket.from_subject("") is None
        assert ticket.from_subject(None) is None

    def test_returns_ticket_id(self):
        result = ticket.from_subject("Ticket ID: 12345")
        assert isinstance(result, TicketId)
        assert repr(result) == "TicketId('12345')"


class TestTicketFromFolderName:
    """Case folder names carry an unlabelled run of five or more digits."""

    def test_leading_id(self):
        assert ticket.from_folder_name("12345 - Acme") == "12345"

    def test_id_inside_name(self):
        assert ticket.from_folder_name("Case 1234567 (Globex)") == "1234567"

    def test_short_number_is_not_an_id(self):
        assert ticket.from_folder_name("1234 - too short") is None

    def test_plain_folder(self):
        assert ticket.from_folder_name("Notes") is None
        assert ticket.from_folder_name(None) is None


class TestTicketUrl:

    def test_id_is_appended(self):
        url = ticket.ticket_url("https://support.example.com/ticket/", "123456")
        assert url == "https://support.example.com/ticket/123456"

    def test_placeholder_is_substituted(self):
        url = ticket.ticket_url("https://support.example.com/t?id={ticket_id}&view=full", "77777")
        assert url == "https://support.example.com/t?id=77777&view=full"


class TestPaths:

    def test_normalize_path(self):
        assert normalize_path("  /Tickets/Open/ ") == "Tickets/Open"
        assert normalize_path("") == ""
        assert normalize_path(None) == ""

    def test_split_path_drops_empty_segments(self):
        assert split_path("/Tickets//Open/") == ["Tickets", "Open"]


class TestFolder:
    """Test path handling on Folder."""

    def test_relative_and_parent_path(self):
        folder = make_folder("Work/Tickets/Open")
        assert folder.relative_path == "Tickets/Open"
        assert folder.parent_path == "Work/Tickets"
        assert make_folder("Work").parent_path is None

    def test_matches_on_segment_boundary(self):
        folder = make_folder("Work/Tickets/Open")
        assert folder.matches("Work/Tickets/Open")
        assert folder.matches("Tickets/Open")
        assert folder.matches("Open")
        assert not folder.matches("ickets/Open")
        assert not make_folder("Work/MyTickets/Open").matches("Tickets/Open")

    def test_is_within(self):
        root = make_folder("Work/Tickets/Open")
        assert make_folder("Work/Tickets/Open/12345 - Acme").is_within(root)
        assert make_folder("Work/Tickets/Open/a/b").is_within(root)
        assert root.is_within(root)

    def test_is_within_respects_segments(self):
        root = make_folder("Work/Tickets/Open")
        assert not make_folder("Work/Tickets/Open2/12345 - Acme").is_within(root)

    def test_is_within_respects_accounts(self):
        root = make_folder("Work/Tickets/Open")
        other = Folder(
            path="Work/Tickets/Open/12345 - Acme",
            name="12345 - Acme",
            account_id="other",
            id="x",
        )
        assert not other.is_within(root)


class TestAccount:

    def test_id_defaults_to_name(self):
        assert Account(name="work").id == "work"
        assert Account(name="work", id="acct-1").id == "acct-1"

    def test_keyring_service(self):
        assert Account(name="work").keyring_service == "ticket-folders:work"
