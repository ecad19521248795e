"""
Message document builder.

Turns a MessageSpec into a transport-ready RFC 822 document. One of four
assembly strategies is selected per call:

- ATTACHMENT: any attachment paths given (regardless of other fields)
- MULTIPART: html_body present and content mode is not text/plain
- HTML: content mode is text/html
- PLAIN: everything else

Validation runs once, before any document text is produced. A build either
returns a complete document or raises; partial documents are never returned.
"""

import logging
import uuid
from email import policy
from email.message import EmailMessage
from typing import Callable, List, Optional

from .errors import ValidationError
from .models import AttachmentFile, BuildMode, ContentMode, MessageSpec
from services import attachment as attachment_service
from services.email import CRLF, encode_header_value
from services.validation import validate_email_list, validate_header_value

logger = logging.getLogger(__name__)

# Gmail replaces this with the authenticated user's address
FROM_ADDRESS = 'me'
BOUNDARY_PREFIX = '----=_NextPart_'


def select_build_mode(spec: MessageSpec) -> BuildMode:
    """
    Pick the assembly strategy for a spec.

    Args:
        spec: Message parameters

    Returns:
        BuildMode for this spec
    """
    if spec.has_attachments:
        return BuildMode.ATTACHMENT

    content_mode = ContentMode.parse(spec.content_mode)
    if spec.html_body and content_mode is not ContentMode.PLAIN:
        return BuildMode.MULTIPART
    if content_mode is ContentMode.HTML:
        return BuildMode.HTML
    return BuildMode.PLAIN


def validate_spec(spec: MessageSpec) -> None:
    """
    Check all preconditions shared by every build mode.

    Raises:
        ValidationError: If recipients are missing or any address or header
                         value is malformed
    """
    if not spec.to:
        raise ValidationError("At least one recipient is required")
    validate_email_list(spec.to, 'to')
    validate_email_list(spec.cc, 'cc')
    validate_email_list(spec.bcc, 'bcc')
    validate_header_value(spec.subject, 'subject')
    validate_header_value(spec.in_reply_to, 'inReplyTo')
    ContentMode.parse(spec.content_mode)


def _default_token() -> str:
    return uuid.uuid4().hex


def new_boundary(*texts: str, token_factory: Callable[[], str] = _default_token) -> str:
    """
    Generate a boundary token that does not occur in any of the given texts.

    Args:
        *texts: Body texts the boundary must not collide with
        token_factory: Source of random tokens

    Returns:
        Boundary string (without the leading "--")
    """
    while True:
        boundary = BOUNDARY_PREFIX + token_factory()
        if not any(boundary in text for text in texts if text):
            return boundary
        logger.debug(f"Boundary collided with body text, regenerating: {boundary}")


def _header(name: str, value: str) -> str:
    return f"{name}: {encode_header_value(value)}"


def _address_headers(spec: MessageSpec) -> List[str]:
    """
    From/To/Cc/Bcc/Subject and reply headers shared by every build mode.

    Addresses are ASCII-only after validation and are written as-is; an
    encoded word is not allowed inside an address.
    """
    lines = [
        f'From: {FROM_ADDRESS}',
        f"To: {', '.join(spec.to)}",
    ]
    if spec.cc:
        lines.append(f"Cc: {', '.join(spec.cc)}")
    if spec.bcc:
        lines.append(f"Bcc: {', '.join(spec.bcc)}")
    lines.append(_header('Subject', spec.subject))
    if spec.in_reply_to:
        lines.append(_header('In-Reply-To', spec.in_reply_to))
        lines.append(_header('References', spec.in_reply_to))
    return lines


def _top_headers(spec: MessageSpec) -> List[str]:
    return _address_headers(spec) + ['MIME-Version: 1.0']


def _text_part_headers(subtype: str) -> List[str]:
    return [
        f'Content-Type: text/{subtype}; charset=UTF-8',
        'Content-Transfer-Encoding: 7bit',
    ]


def build_plain(spec: MessageSpec) -> str:
    """Single text/plain document. Expects a validated spec."""
    lines = _top_headers(spec) + _text_part_headers('plain') + ['', spec.body]
    return CRLF.join(lines)


def build_html(spec: MessageSpec) -> str:
    """Single text/html document; falls back to the plain body when html_body is missing."""
    lines = _top_headers(spec) + _text_part_headers('html') + ['', spec.html_body or spec.body]
    return CRLF.join(lines)


def build_multipart(spec: MessageSpec, boundary: str) -> str:
    """
    multipart/alternative document with the plain part first and html second.

    Args:
        spec: Validated message parameters
        boundary: Boundary token that does not occur in either body

    Returns:
        Complete document
    """
    html = spec.html_body or spec.body
    lines = _top_headers(spec)
    lines.append(f'Content-Type: multipart/alternative; boundary="{boundary}"')
    lines.append('')
    lines.append(f'--{boundary}')
    lines.extend(_text_part_headers('plain'))
    lines.extend(['', spec.body])
    lines.append(f'--{boundary}')
    lines.extend(_text_part_headers('html'))
    lines.extend(['', html])
    lines.append(f'--{boundary}--')
    return CRLF.join(lines)


def build_with_attachments(spec: MessageSpec, attachments: List[AttachmentFile]) -> str:
    """
    Mixed document with text (and html alternative) plus base64 file parts.

    The MIME tree is assembled with the stdlib EmailMessage using the SMTP
    policy (CRLF line endings). Address, subject and reply headers are not
    set on the EmailMessage; they are written by _address_headers so a
    non-ASCII subject gets the same base64 encoded words as in other modes.

    Args:
        spec: Validated message parameters
        attachments: Loaded files (at least one)

    Returns:
        Complete document

    Raises:
        ValidationError: If attachments is empty
    """
    if not attachments:
        raise ValidationError("No attachments provided")

    msg = EmailMessage(policy=policy.SMTP)
    msg.set_content(spec.body)
    if spec.html_body:
        msg.add_alternative(spec.html_body, subtype='html')

    for attachment in attachments:
        msg.add_attachment(
            attachment.content,
            maintype=attachment.maintype,
            subtype=attachment.subtype,
            filename=attachment.filename
        )

    # EmailMessage starts with MIME-Version and the multipart Content-Type
    return CRLF.join(_address_headers(spec)) + CRLF + msg.as_string()


class MessageBuilder:
    """
    Builds transport-ready documents from MessageSpec objects.

    Stateless between calls; holds only the attachment size limit and the
    boundary token source.
    """

    def __init__(
        self,
        max_attachment_size: Optional[int] = None,
        token_factory: Callable[[], str] = _default_token
    ):
        """
        Initialize message builder.

        Args:
            max_attachment_size: Per-file limit in bytes (None uses the
                                 ATTACHMENT_MAX_SIZE_MB setting)
            token_factory: Source of boundary tokens
        """
        self.max_attachment_size = max_attachment_size
        self.token_factory = token_factory

    def build(self, spec: MessageSpec) -> str:
        """
        Build a complete document for a spec.

        Args:
            spec: Message parameters

        Returns:
            Document string with CRLF line endings

        Raises:
            ValidationError: If recipients or headers are invalid
            BuildError: If an attachment cannot be loaded
        """
        validate_spec(spec)
        mode = select_build_mode(spec)
        logger.info(
            f"Building message: mode={mode.value}, recipients={len(spec.all_recipients)}, "
            f"attachments={len(spec.attachments or [])}"
        )

        if mode is BuildMode.ATTACHMENT:
            attachments = attachment_service.load_attachments(
                spec.attachments or [],
                max_size=self.max_attachment_size
            )
            return build_with_attachments(spec, attachments)

        if mode is BuildMode.MULTIPART:
            boundary = new_boundary(spec.body, spec.html_body, token_factory=self.token_factory)
            return build_multipart(spec, boundary)

        if mode is BuildMode.HTML:
            return build_html(spec)

        return build_plain(spec)
