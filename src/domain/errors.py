"""
Exception types for mailbox operations.

Validation and build failures are raised synchronously, before any remote
effect. Per-item batch failures are never raised; they are recorded in a
BatchResult instead.
"""


class MailboxError(Exception):
    """Base class for errors raised by the mailbox core."""
    pass


class ValidationError(MailboxError):
    """Raised when input is malformed (bad address, missing field, bad chunk size)."""
    pass


class BuildError(MailboxError):
    """Raised when a message document cannot be assembled (e.g. missing attachment)."""
    pass


class StorageError(MailboxError):
    """Raised when a downloaded attachment cannot be written to disk."""
    pass
