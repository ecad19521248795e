"""
Data models for the mailbox domain.

These type-safe data structures define clear contracts between the batch
executor, the message builder and the orchestration layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ValidationError


class ContentMode(Enum):
    """Body content type requested by the caller."""
    PLAIN = 'text/plain'
    HTML = 'text/html'
    MULTIPART = 'multipart/alternative'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'ContentMode':
        """
        Parse a MIME type string into a ContentMode.

        Args:
            value: MIME type string, a ContentMode, or None (defaults to plain)

        Returns:
            ContentMode matching the value

        Raises:
            ValidationError: If the value is not a supported MIME type
        """
        if value is None:
            return cls.PLAIN
        if isinstance(value, cls):
            return value
        for mode in cls:
            if mode.value == value.strip().lower():
                return mode
        raise ValidationError(
            f"Unsupported mimeType: {value!r}. "
            f"Expected one of: {', '.join(m.value for m in cls)}"
        )


class BuildMode(Enum):
    """Assembly strategy chosen for a single build call."""
    ATTACHMENT = 'attachment'
    MULTIPART = 'multipart'
    HTML = 'html'
    PLAIN = 'plain'


@dataclass
class MessageSpec:
    """
    Structured parameters for sending or drafting a message.

    Attributes:
        to: Recipient addresses (must be non-empty)
        subject: Subject line (may contain non-ASCII characters)
        body: Plain text body
        html_body: Optional HTML body
        content_mode: Requested content type (defaults to plain)
        cc: Optional CC addresses
        bcc: Optional BCC addresses
        in_reply_to: Optional Message-ID being replied to
        thread_id: Optional remote thread ID (used by transport, not headers)
        attachments: Optional list of local file paths
    """
    to: List[str]
    subject: str
    body: str
    html_body: Optional[str] = None
    content_mode: ContentMode = ContentMode.PLAIN
    cc: Optional[List[str]] = None
    bcc: Optional[List[str]] = None
    in_reply_to: Optional[str] = None
    thread_id: Optional[str] = None
    attachments: Optional[List[str]] = None

    @property
    def has_attachments(self) -> bool:
        """Check if any attachment paths were given."""
        return bool(self.attachments)

    @property
    def all_recipients(self) -> List[str]:
        """All addresses across to, cc and bcc, in that order."""
        return list(self.to) + list(self.cc or []) + list(self.bcc or [])


@dataclass
class AttachmentFile:
    """
    Local file loaded for embedding in a message.

    Attributes:
        filename: Base name used in Content-Disposition
        content_type: MIME type (e.g., "image/png", "application/pdf")
        content: Raw file bytes
    """
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        """Size in bytes."""
        return len(self.content)

    @property
    def maintype(self) -> str:
        return self.content_type.split('/', 1)[0]

    @property
    def subtype(self) -> str:
        parts = self.content_type.split('/', 1)
        return parts[1] if len(parts) > 1 else 'octet-stream'


@dataclass
class BatchFailure:
    """
    A single item that could not be applied.

    Attributes:
        item: Item identifier (e.g. message ID)
        error: Human-readable reason
    """
    item: str
    error: str


@dataclass
class BatchResult:
    """
    Aggregated outcome of a batch run.

    Every input item is counted exactly once: either in success_count or
    as an entry in failures (kept in original item order).

    Attributes:
        success_count: Number of items applied successfully
        failures: Items that failed, each with a reason
    """
    success_count: int = 0
    failures: List[BatchFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def total(self) -> int:
        """Total number of items accounted for."""
        return self.success_count + len(self.failures)

    @property
    def all_succeeded(self) -> bool:
        return not self.failures

    def merge(self, other: 'BatchResult') -> None:
        """Fold another result into this one, preserving failure order."""
        self.success_count += other.success_count
        self.failures.extend(other.failures)

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        return (
            f"BatchResult(success_count={self.success_count}, "
            f"failure_count={self.failure_count})"
        )


@dataclass
class EmailSummary:
    """
    One search hit.

    Attributes:
        id: Gmail message ID
        subject: Subject header ("" when missing)
        sender: From header
        date: Date header as sent
    """
    id: str
    subject: str
    sender: str
    date: str


@dataclass
class AttachmentInfo:
    """
    Attachment metadata found in a received message.

    Attributes:
        id: Gmail attachment ID (used to download the bytes)
        filename: Original file name, or attachment-<id> when unnamed
        mime_type: Part content type
        size: Size in bytes as reported by Gmail
    """
    id: str
    filename: str
    mime_type: str
    size: int = 0


@dataclass
class EmailContent:
    """A received message reduced to headers, bodies and attachment metadata."""
    subject: str
    sender: str
    to: str
    date: str
    text: str = ''
    html: str = ''
    cc: Optional[str] = None
    bcc: Optional[str] = None
    thread_id: Optional[str] = None
    attachments: List[AttachmentInfo] = field(default_factory=list)

    @property
    def html_only(self) -> bool:
        """True when the message has an html body but no plain text part."""
        return not self.text and bool(self.html)

    @property
    def display_body(self) -> str:
        return self.text or self.html


@dataclass
class LabelListing:
    """Mailbox labels split by type."""
    system: List[Dict[str, Any]] = field(default_factory=list)
    user: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.system) + len(self.user)
