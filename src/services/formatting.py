"""
Text formatting of operation results for the caller.
"""

from typing import Any, Dict, List

from domain.models import BatchResult, EmailContent, EmailSummary, LabelListing

# Failed IDs are truncated in summaries to keep output readable
ID_PREVIEW_LENGTH = 16


def format_send_result(message_id: str) -> str:
    return f"Email sent successfully with ID: {message_id}"


def format_draft_result(draft_id: str) -> str:
    return f"Email draft created successfully with ID: {draft_id}"


def format_batch_modify_result(result: BatchResult) -> str:
    """Summary for a batch label modification."""
    return _format_batch(
        result,
        title="Batch label modification complete.",
        success_label="Successfully processed",
        failure_label="Failed to process"
    )


def format_batch_delete_result(result: BatchResult) -> str:
    """Summary for a batch delete."""
    return _format_batch(
        result,
        title="Batch delete operation complete.",
        success_label="Successfully deleted",
        failure_label="Failed to delete"
    )


def _format_batch(
    result: BatchResult,
    title: str,
    success_label: str,
    failure_label: str
) -> str:
    """
    Render counts plus an itemized failure list.

    Example output:
        Batch delete operation complete.
        Successfully deleted: 3 messages
        Failed to delete: 1 messages

        Failed message IDs:
        - 18c2f0a9b7d4e1f2... (Requested entity was not found.)
    """
    lines: List[str] = [
        title,
        f"{success_label}: {result.success_count} messages",
    ]
    if result.failures:
        lines.append(f"{failure_label}: {result.failure_count} messages")
        lines.append("")
        lines.append("Failed message IDs:")
        lines.extend(
            f"- {failure.item[:ID_PREVIEW_LENGTH]}... ({failure.error})"
            for failure in result.failures
        )
    return "\n".join(lines)


def format_search_results(results: List[EmailSummary]) -> str:
    """One block per hit, separated by blank lines."""
    if not results:
        return "No emails found."
    return "\n".join(
        f"ID: {r.id}\nSubject: {r.subject}\nFrom: {r.sender}\nDate: {r.date}\n"
        for r in results
    )


def format_email(content: EmailContent) -> str:
    """
    Headers, body and attachment list of a read message.

    Example output:
        Thread ID: 18c2f0a9b7d4e1f2
        Subject: Quarterly report
        From: alice@example.com
        To: bob@example.com
        Date: Mon, 6 Jan 2025 10:00:00 +0000

        Numbers attached.

        Attachments (1):
        - report.pdf (application/pdf, 120 KB, ID: ANGjdJ8)
    """
    lines = [
        f"Thread ID: {content.thread_id or 'N/A'}",
        f"Subject: {content.subject}",
        f"From: {content.sender}",
        f"To: {content.to}",
    ]
    if content.cc:
        lines.append(f"Cc: {content.cc}")
    lines.append(f"Date: {content.date}")
    lines.append("")
    if content.html_only:
        lines.append("[Note: This email is HTML-formatted. Plain text version not available.]")
        lines.append("")
    lines.append(content.display_body)

    if content.attachments:
        lines.append("")
        lines.append(f"Attachments ({len(content.attachments)}):")
        lines.extend(
            f"- {a.filename} ({a.mime_type}, {round(a.size / 1024)} KB, ID: {a.id})"
            for a in content.attachments
        )
    return "\n".join(lines)


def format_modify_result(message_id: str) -> str:
    return f"Email {message_id} labels updated successfully"


def format_delete_result(message_id: str) -> str:
    return f"Email {message_id} deleted successfully"


def format_download_result(path: str) -> str:
    return f"Attachment downloaded successfully:\nSaved to: {path}"


def format_label_list(listing: LabelListing) -> str:
    """System and user labels with their IDs."""
    lines = [
        f"Found {listing.total} labels "
        f"({len(listing.system)} system, {len(listing.user)} user):",
        "",
        "System Labels:",
    ]
    lines.extend(f"ID: {label.get('id')}\nName: {label.get('name')}" for label in listing.system)
    lines.append("")
    lines.append("User Labels:")
    lines.extend(f"ID: {label.get('id')}\nName: {label.get('name')}" for label in listing.user)
    return "\n".join(lines)


def format_label(label: Dict[str, Any], title: str) -> str:
    return (
        f"{title}\n"
        f"ID: {label.get('id')}\n"
        f"Name: {label.get('name')}\n"
        f"Type: {label.get('type') or 'user'}"
    )


def format_label_deleted(label_id: str) -> str:
    return f"Label {label_id} deleted successfully."


def _describe_fields(fields: Dict[str, Any]) -> str:
    """key: value pairs, skipping unset values and empty lists."""
    parts = []
    for key, value in (fields or {}).items():
        if value is None or value == []:
            continue
        if isinstance(value, list):
            value = ', '.join(value)
        parts.append(f"{key}: {value}")
    return ', '.join(parts)


def format_filter(gmail_filter: Dict[str, Any], title: str) -> str:
    return (
        f"{title}\n"
        f"ID: {gmail_filter.get('id')}\n"
        f"Criteria: {_describe_fields(gmail_filter.get('criteria'))}\n"
        f"Actions: {_describe_fields(gmail_filter.get('action'))}"
    )


def format_filter_list(filters: List[Dict[str, Any]]) -> str:
    if not filters:
        return "No filters found."
    blocks = [
        f"ID: {f.get('id')}\n"
        f"Criteria: {_describe_fields(f.get('criteria'))}\n"
        f"Actions: {_describe_fields(f.get('action'))}\n"
        for f in filters
    ]
    return f"Found {len(filters)} filters:\n\n" + "\n".join(blocks)


def format_filter_deleted(filter_id: str) -> str:
    return f"Filter {filter_id} deleted successfully."
