# =============================================================================
# Pytest Configuration and Fixtures
# =============================================================================
# Shared fixtures for the Ticket-Folders test suite.
#
# The `provider` fixture holds two accounts:
#
#   Work (default)                      Home
#   ├── INBOX                           ├── INBOX
#   ├── Support                         └── Tickets
#   └── Tickets                             └── Open
#       ├── Open
#       │   ├── 12345 - Acme
#       │   └── Notes
#       └── Closed
#           └── 67890 - Globex
#
# so "Tickets/Open" is ambiguous and resolves to Work's folder.
# =============================================================================

import pytest

from ticket_folders.config import SETTINGS_KEY, SettingsStore
from ticket_folders.sync import AlarmService, TicketService
from tests.fakes import FakeMailProvider, StaticCurrentFolder


@pytest.fixture
def provider():
    """In-memory provider with the Work/Home folder trees above."""
    fake = FakeMailProvider()

    work = fake.add_account("Work", default=True)
    fake.add_path(work, "INBOX")
    fake.add_path(work, "Support")
    fake.add_path(work, "Tickets/Open/12345 - Acme")
    fake.add_path(work, "Tickets/Open/Notes")
    fake.add_path(work, "Tickets/Closed/67890 - Globex")

    home = fake.add_account("Home")
    fake.add_path(home, "INBOX")
    fake.add_path(home, "Tickets/Open")

    return fake


@pytest.fixture
def raw_settings():
    """Ticket settings as they are stored in the config file."""
    return {
        "ticketURL": "https://support.example.com/ticket/",
        "openedFolder": "Tickets/Open",
        "closedFolder": "Tickets/Closed",
        "syncFolders": "INBOX; Support",
        "openFoldersAutoSync": "false",
        "autoSyncTime": "5",
    }


@pytest.fixture
def store(tmp_path, raw_settings):
    """Settings store backed by a config file in a temporary directory."""
    settings_store = SettingsStore(tmp_path / "config.toml")
    settings_store.set(SETTINGS_KEY, raw_settings)
    return settings_store


@pytest.fixture
def current():
    """Current-folder provider; tests assign the displayed folder."""
    return StaticCurrentFolder()


@pytest.fixture
def opened_urls():
    """URLs the service asked the browser to open."""
    return []


@pytest.fixture
async def service(provider, store, current, opened_urls):
    """TicketService on the fake provider, with fast alarms."""
    ticket_service = TicketService(
        provider,
        store,
        current,
        alarms=AlarmService(minute=0.01),
        scanner_timeout=1.0,
        open_url=opened_urls.append,
    )
    yield ticket_service
    await ticket_service.stop()
