# =============================================================================
# Message Model
# =============================================================================
# The synchronization engine never looks past the subject line, so a message
# is just an opaque handle, its subject and the folder it was listed from.
# =============================================================================

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Message:
    """
    A message as seen while scanning a folder.

    Attributes:
        id: Provider handle, only meaningful together with its folder.
        subject: Decoded Subject header ("" when missing).
        folder_id: Id of the folder the message was listed from.
    """
    id: str
    subject: str
    folder_id: str


@dataclass
class MessagePage:
    """
    One page of a folder listing.

    `page_token` chains to the next page; None means this is the last one.
    """
    messages: list[Message] = field(default_factory=list)
    page_token: str | None = None
