"""
Service functions used by the mailbox domain.

This package contains reusable helpers for input validation, header
encoding and message-part parsing, attachment loading and saving, and
result formatting.
"""

__all__ = ['attachment', 'email', 'formatting', 'validation']
