"""
Email header and message-part utilities.

Outgoing: RFC 2047 word-encoding so that every header line of a built
document is ASCII-safe, and the matching decoder.

Incoming: helpers that reduce a Gmail message resource (payload tree with
base64url body data) to headers, bodies and attachment metadata.
"""

import base64
import logging
from email.header import decode_header, make_header
from typing import Any, Dict, List, Optional

from domain.models import AttachmentInfo, EmailContent

logger = logging.getLogger(__name__)

CRLF = '\r\n'

# Keeps each encoded word within the 75 character limit:
# len("=?UTF-8?B??=") + base64 of 45 bytes (60 chars) = 72
MAX_WORD_PAYLOAD_BYTES = 45


def is_ascii(value: str) -> bool:
    """Check if a string contains only 7-bit ASCII characters."""
    return all(ord(ch) < 128 for ch in value)


def encode_header_value(value: str) -> str:
    """
    Encode a header value using RFC 2047 base64 encoded words.

    ASCII-only values are returned unchanged. Longer values are split into
    several encoded words on character boundaries and folded with CRLF + space.

    Args:
        value: Raw header value

    Returns:
        ASCII-safe header value

    Example:
        >>> encode_header_value("Hello")
        'Hello'
        >>> encode_header_value("Café")
        '=?UTF-8?B?Q2Fmw6k=?='
    """
    if is_ascii(value):
        return value

    words = [
        '=?UTF-8?B?' + base64.b64encode(chunk).decode('ascii') + '?='
        for chunk in _split_utf8(value, MAX_WORD_PAYLOAD_BYTES)
    ]
    return (CRLF + ' ').join(words)


def decode_header_value(value: str) -> str:
    """
    Decode an RFC 2047 encoded header value back to text.

    Args:
        value: Header value, possibly containing encoded words

    Returns:
        Decoded string
    """
    return str(make_header(decode_header(value)))


def _split_utf8(value: str, max_bytes: int) -> List[bytes]:
    """Split text into UTF-8 chunks of at most max_bytes without cutting a character."""
    chunks: List[bytes] = []
    current = b''
    for ch in value:
        encoded = ch.encode('utf-8')
        if current and len(current) + len(encoded) > max_bytes:
            chunks.append(current)
            current = b''
        current += encoded
    if current:
        chunks.append(current)
    return chunks


# Received messages

def get_header(headers: List[Dict[str, str]], name: str) -> str:
    """
    Look up a header in a Gmail payload header list (case-insensitive).

    Returns:
        Header value, or "" when absent
    """
    wanted = name.lower()
    for header in headers or []:
        if (header.get('name') or '').lower() == wanted:
            return header.get('value') or ''
    return ''


def decode_part_data(data: str) -> str:
    """Decode base64url body data of a payload part to text."""
    raw = base64.urlsafe_b64decode(data + '=' * (-len(data) % 4))
    return raw.decode('utf-8', errors='replace')


def extract_bodies(part: Dict[str, Any]) -> Dict[str, str]:
    """
    Collect text/plain and text/html content from a payload tree.

    Content of the same type found in several parts is concatenated in
    tree order.

    Args:
        part: Gmail message payload (or any part of it)

    Returns:
        Dictionary with 'text' and 'html'
    """
    result = {'text': '', 'html': ''}

    data = (part.get('body') or {}).get('data')
    if data:
        mime_type = part.get('mimeType')
        if mime_type == 'text/plain':
            result['text'] = decode_part_data(data)
        elif mime_type == 'text/html':
            result['html'] = decode_part_data(data)

    for child in part.get('parts') or []:
        child_bodies = extract_bodies(child)
        result['text'] += child_bodies['text']
        result['html'] += child_bodies['html']

    return result


def extract_attachments(part: Dict[str, Any]) -> List[AttachmentInfo]:
    """List every part that carries an attachment ID, in tree order."""
    found: List[AttachmentInfo] = []
    body = part.get('body') or {}
    attachment_id = body.get('attachmentId')
    if attachment_id:
        found.append(AttachmentInfo(
            id=attachment_id,
            filename=part.get('filename') or f"attachment-{attachment_id}",
            mime_type=part.get('mimeType') or 'application/octet-stream',
            size=body.get('size') or 0
        ))
    for child in part.get('parts') or []:
        found.extend(extract_attachments(child))
    return found


def find_attachment_filename(part: Dict[str, Any], attachment_id: str) -> Optional[str]:
    """Original file name of an attachment, or None when the ID is not in the tree."""
    for attachment in extract_attachments(part):
        if attachment.id == attachment_id:
            return attachment.filename
    return None


def parse_message(message: Dict[str, Any]) -> EmailContent:
    """
    Reduce a full-format Gmail message resource to an EmailContent.

    Args:
        message: Resource returned by messages.get(format="full")

    Returns:
        EmailContent with decoded bodies and attachment metadata
    """
    payload = message.get('payload') or {}
    headers = payload.get('headers') or []
    bodies = extract_bodies(payload)

    return EmailContent(
        subject=get_header(headers, 'Subject'),
        sender=get_header(headers, 'From'),
        to=get_header(headers, 'To'),
        date=get_header(headers, 'Date'),
        text=bodies['text'],
        html=bodies['html'],
        cc=get_header(headers, 'Cc') or None,
        bcc=get_header(headers, 'Bcc') or None,
        thread_id=message.get('threadId'),
        attachments=extract_attachments(payload)
    )
