# =============================================================================
# Ticket IDs
# =============================================================================
# A ticket ID is a run of digits identifying a support case. It shows up in
# two differently formatted places:
#
#   - Message subjects carry an explicit label:  "Re: Ticket ID: 123456 ..."
#   - Case folder names just embed the number:   "123456 - Acme printer"
#
# The two extractors stay separate on purpose: a folder name has no label,
# and a subject may contain unrelated numbers before the label.
# =============================================================================

import re


SUBJECT_PATTERN = re.compile(r"Ticket ID:\s*(\d+)")
FOLDER_PATTERN = re.compile(r"(\d{5,})")

# Placeholder accepted in the ticket URL setting
URL_PLACEHOLDER = "{ticket_id}"


class TicketId(str):
    """A ticket identifier: the digit string itself."""

    def __repr__(self) -> str:
        return f"TicketId({str(self)!r})"


def from_subject(subject: str | None) -> TicketId | None:
    """
    Extract the ticket ID from a message subject.

    Example:
        >>> from_subject("[Support] Ticket ID: 123456 printer on fire")
        TicketId('123456')
        >>> from_subject("Lunch?") is None
        True
    """
    if not subject:
        return None
    match = SUBJECT_PATTERN.search(subject)
    return TicketId(match.group(1)) if match else None


def from_folder_name(name: str | None) -> TicketId | None:
    """
    Extract the ticket ID from a case folder name: the first run of five
    or more digits. Folders without one are not case folders.
    """
    if not name:
        return None
    match = FOLDER_PATTERN.search(name)
    return TicketId(match.group(1)) if match else None


def ticket_url(template: str, ticket_id: str) -> str:
    """
    Build the ticket system URL for a ticket.

    The ID replaces a "{ticket_id}" placeholder if the template has one,
    otherwise it is appended:

        >>> ticket_url("https://support.example.com/ticket/", "123456")
        'https://support.example.com/ticket/123456'
        >>> ticket_url("https://support.example.com/t?id={ticket_id}&v=1", "123456")
        'https://support.example.com/t?id=123456&v=1'
    """
    if URL_PLACEHOLDER in template:
        return template.replace(URL_PLACEHOLDER, ticket_id)
    return f"{template}{ticket_id}"
