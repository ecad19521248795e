"""
Domain layer for mailbox operations.

This layer contains:
- Data models (type-safe structures)
- Batch executor (chunked bulk calls with per-item fallback)
- Message builder (RFC 822 document assembly)
- Mailbox service (orchestration over the Gmail API)
- Label and filter services (mailbox settings management)
"""
