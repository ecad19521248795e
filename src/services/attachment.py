"""
Attachment file handling.

This module reads local files referenced by an outgoing message and turns
them into AttachmentFile objects ready to be embedded as base64 MIME parts,
and writes attachments downloaded from received messages to disk.
"""

import logging
import mimetypes
import os
import re
from typing import List, Optional, Sequence

from domain.errors import BuildError, StorageError, ValidationError
from domain.models import AttachmentFile
from services.validation import is_readable_file

logger = logging.getLogger(__name__)

# File size limits (default: 25 MB, the Gmail message limit)
DEFAULT_MAX_FILE_SIZE_MB = 25
MAX_FILE_SIZE_BYTES = int(os.environ.get('ATTACHMENT_MAX_SIZE_MB', DEFAULT_MAX_FILE_SIZE_MB)) * 1024 * 1024

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def guess_content_type(filename: str) -> str:
    """
    Guess MIME type from a file name.

    Args:
        filename: File name or path

    Returns:
        MIME type string, application/octet-stream when unknown
    """
    content_type, encoding = mimetypes.guess_type(filename)
    # Compressed files (e.g. .tar.gz) report the archive type with an encoding
    if content_type is None or encoding is not None:
        return DEFAULT_CONTENT_TYPE
    return content_type


def load_attachment(path: str, max_size: Optional[int] = None) -> AttachmentFile:
    """
    Read a local file into an AttachmentFile.

    Args:
        path: Local file path
        max_size: Size limit in bytes (defaults to MAX_FILE_SIZE_BYTES)

    Returns:
        AttachmentFile with base name, guessed content type and bytes

    Raises:
        BuildError: If the file is missing, unreadable or too large
    """
    limit = MAX_FILE_SIZE_BYTES if max_size is None else max_size

    if not is_readable_file(path):
        if not os.path.exists(path):
            raise BuildError(f"File does not exist: {path}")
        raise BuildError(f"File is not a readable regular file: {path}")

    size = os.path.getsize(path)
    if size > limit:
        raise BuildError(
            f"Attachment too large: {path} ({size:,} bytes > {limit:,} limit)"
        )

    try:
        with open(path, 'rb') as f:
            content = f.read()
    except OSError as e:
        logger.error(f"Failed to read attachment {path}: {e}")
        raise BuildError(f"Failed to read attachment {path}: {e}")

    filename = _sanitize_filename(os.path.basename(path))
    return AttachmentFile(
        filename=filename,
        content_type=guess_content_type(filename),
        content=content
    )


def load_attachments(paths: Sequence[str], max_size: Optional[int] = None) -> List[AttachmentFile]:
    """
    Load every attachment, failing the whole set on the first bad path.

    Args:
        paths: Local file paths (at least one)
        max_size: Per-file size limit in bytes

    Returns:
        AttachmentFile list in the same order as paths

    Raises:
        ValidationError: If no paths are given
        BuildError: If any file cannot be loaded
    """
    if not paths:
        raise ValidationError("No attachments provided")

    attachments = [load_attachment(path, max_size=max_size) for path in paths]
    total = sum(a.size for a in attachments)
    logger.info(f"Loaded {len(attachments)} attachment(s), {total:,} bytes")
    return attachments


def _sanitize_filename(value: str) -> str:
    """
    Sanitize a file name for use in Content-Disposition.

    Removes control characters and quotes that would break the header.

    Args:
        value: File base name

    Returns:
        Sanitized name (falls back to "attachment" if nothing is left)
    """
    result = re.sub(r'[\x00-\x1f\x7f"]', '', value)
    return result.strip() or 'attachment'


def save_attachment(content: bytes, directory: str, filename: str) -> str:
    """
    Write downloaded attachment bytes to a local directory.

    The directory is created when missing. The file name is reduced to a
    base name so it cannot point outside the directory.

    Args:
        content: Attachment bytes
        directory: Target directory
        filename: Desired file name

    Returns:
        Full path of the written file

    Raises:
        StorageError: If the directory or file cannot be written
    """
    safe_name = _sanitize_filename(os.path.basename(filename.replace('\\', '/')))
    if safe_name in ('.', '..'):
        safe_name = 'attachment'
    path = os.path.join(directory, safe_name)

    try:
        os.makedirs(directory, exist_ok=True)
        with open(path, 'wb') as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Failed to save attachment to {path}: {e}")
        raise StorageError(f"Failed to save attachment to {path}: {e}")

    logger.info(f"Saved attachment {safe_name} ({len(content):,} bytes) to {directory}")
    return path
