"""
Gmail API integration module.

This module provides a small synchronous interface over the Gmail v1 API:
sending raw messages, creating drafts, reading and searching messages,
label and filter management, and bulk label/delete mutations.

The discovery service and the credentials are shared, but httplib2 is not
thread-safe: every request is executed on its own AuthorizedHttp so calls
may run from several executor threads at once.

Usage:
    from integrations import gmail_api

    raw = gmail_api.encode_raw_message(document)
    message_id = gmail_api.send_message(raw, thread_id=None)
    gmail_api.batch_delete(["18c2f0a9b7d4e1f2"])
"""

import base64
import logging
import os
import threading
from typing import Any, Dict, List, Optional

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

# Configure logging
logger = logging.getLogger(__name__)


# ============================================================================
# Custom Exception Classes
# ============================================================================

class ConfigurationError(Exception):
    """Raised when Gmail credentials are missing or unusable."""
    pass


class GmailApiError(Exception):
    """Raised when a Gmail API call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MessageNotFoundError(GmailApiError):
    """Raised when the referenced message, label or filter does not exist."""
    pass


class RateLimitError(GmailApiError):
    """Raised when Gmail API requests are throttled."""
    pass


# ============================================================================
# Module-Level Configuration
# ============================================================================

SCOPES = ['https://mail.google.com/']

GMAIL_CREDENTIALS_PATH = os.environ.get('GMAIL_CREDENTIALS_PATH', '')
GMAIL_USER_ID = os.environ.get('GMAIL_USER_ID', 'me')
HTTP_TIMEOUT_SECONDS = int(os.environ.get('GMAIL_HTTP_TIMEOUT', 60))

# Upper bound Gmail accepts for messages.list maxResults
MAX_SEARCH_RESULTS = 500

# Built lazily on first use and reused afterwards
_credentials = None
_service = None
_init_lock = threading.Lock()


def _load_credentials() -> Credentials:
    """
    Load authorized-user credentials from GMAIL_CREDENTIALS_PATH.

    Returns:
        Credentials: OAuth2 user credentials

    Raises:
        ConfigurationError: If the path is unset or the file cannot be parsed
    """
    if not GMAIL_CREDENTIALS_PATH:
        raise ConfigurationError(
            "GMAIL_CREDENTIALS_PATH environment variable is required but not set. "
            "Point it at an authorized-user credentials JSON file."
        )

    try:
        return Credentials.from_authorized_user_file(GMAIL_CREDENTIALS_PATH, SCOPES)
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            f"Failed to load Gmail credentials from {GMAIL_CREDENTIALS_PATH}: {e}"
        )


def _new_http() -> AuthorizedHttp:
    """Fresh authorized transport; never shared between requests."""
    return AuthorizedHttp(_credentials, http=httplib2.Http(timeout=HTTP_TIMEOUT_SECONDS))


def get_service() -> Any:
    """
    Get or create the Gmail API service.

    Safe to call from several threads; the service is built once.

    Returns:
        Gmail API service resource

    Raises:
        ConfigurationError: If credentials are not configured
    """
    global _credentials, _service
    with _init_lock:
        if _service is None:
            _credentials = _load_credentials()
            _service = build('gmail', 'v1', http=_new_http(), cache_discovery=False)
            logger.info(
                f"Gmail service initialized: user_id={GMAIL_USER_ID}, "
                f"timeout={HTTP_TIMEOUT_SECONDS}s"
            )
    return _service


def _execute(request: Any) -> Any:
    """Execute a prepared API request on its own HTTP transport."""
    return request.execute(http=_new_http())


def _translate_http_error(error: HttpError, action: str) -> GmailApiError:
    """
    Map a googleapiclient HttpError to a domain exception.

    Args:
        error: Error raised by the API client
        action: Short description for the message (e.g. "send message")

    Returns:
        GmailApiError (or subclass) to raise
    """
    status = getattr(error.resp, 'status', None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    reason = error.reason if getattr(error, 'reason', None) else str(error)

    if status == 404:
        logger.error(f"Gmail {action} failed, not found: {reason}")
        return MessageNotFoundError(f"Not found: {reason}", status=status)
    if status == 429:
        logger.error(f"Gmail {action} throttled: {reason}")
        return RateLimitError(f"Rate limited: {reason}", status=status)

    logger.error(f"Gmail {action} failed: status={status}, reason={reason}")
    return GmailApiError(f"Failed to {action}: {reason}", status=status)


# ============================================================================
# Encoding Helpers
# ============================================================================

def encode_raw_message(document: str) -> str:
    """
    Encode a document for the Gmail "raw" field.

    Args:
        document: RFC 822 document

    Returns:
        base64url string with padding stripped
    """
    encoded = base64.urlsafe_b64encode(document.encode('utf-8')).decode('ascii')
    return encoded.rstrip('=')


def decode_base64url(data: str) -> bytes:
    """Decode Gmail base64url data, padded or not."""
    return base64.urlsafe_b64decode(data + '=' * (-len(data) % 4))


def _message_body(raw: str, thread_id: Optional[str]) -> Dict[str, Any]:
    body: Dict[str, Any] = {'raw': raw}
    if thread_id:
        body['threadId'] = thread_id
    return body


def _label_changes(
    add_label_ids: Optional[List[str]],
    remove_label_ids: Optional[List[str]]
) -> Dict[str, Any]:
    body: Dict[str, Any] = {}
    if add_label_ids:
        body['addLabelIds'] = list(add_label_ids)
    if remove_label_ids:
        body['removeLabelIds'] = list(remove_label_ids)
    return body


# ============================================================================
# Messages
# ============================================================================

def send_message(raw: str, thread_id: Optional[str] = None) -> str:
    """
    Send an encoded message.

    Args:
        raw: base64url-encoded document
        thread_id: Optional thread to attach the message to

    Returns:
        str: ID of the sent message

    Raises:
        GmailApiError: If the API call fails or returns no ID
    """
    try:
        response = _execute(get_service().users().messages().send(
            userId=GMAIL_USER_ID,
            body=_message_body(raw, thread_id)
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'send message')

    message_id = response.get('id')
    if not message_id:
        raise GmailApiError("Failed to send email: No message ID returned")
    logger.info(f"Sent message {message_id}")
    return message_id


def create_draft(raw: str, thread_id: Optional[str] = None) -> str:
    """
    Create a draft from an encoded message.

    Returns:
        str: ID of the created draft

    Raises:
        GmailApiError: If the API call fails or returns no ID
    """
    try:
        response = _execute(get_service().users().drafts().create(
            userId=GMAIL_USER_ID,
            body={'message': _message_body(raw, thread_id)}
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'create draft')

    draft_id = response.get('id')
    if not draft_id:
        raise GmailApiError("Failed to create draft: No draft ID returned")
    logger.info(f"Created draft {draft_id}")
    return draft_id


def list_message_ids(query: str, max_results: int) -> List[str]:
    """
    Find message IDs matching a Gmail search query.

    Args:
        query: Gmail search syntax (e.g. "from:alice@example.com is:unread")
        max_results: Result limit (capped at MAX_SEARCH_RESULTS)

    Returns:
        Message IDs, newest first as returned by Gmail
    """
    try:
        response = _execute(get_service().users().messages().list(
            userId=GMAIL_USER_ID,
            q=query,
            maxResults=min(max_results, MAX_SEARCH_RESULTS)
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'search messages')

    ids = []
    for message in response.get('messages', []):
        if not message.get('id'):
            raise GmailApiError("Failed to search messages: Message ID missing in search results")
        ids.append(message['id'])
    return ids


def get_message(
    message_id: str,
    message_format: str = 'full',
    metadata_headers: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Fetch one message resource.

    Args:
        message_id: Gmail message ID
        message_format: "full" for payload and body data, "metadata" for headers only
        metadata_headers: Header names to return in metadata format

    Returns:
        Gmail message resource
    """
    params: Dict[str, Any] = {'userId': GMAIL_USER_ID, 'id': message_id, 'format': message_format}
    if metadata_headers:
        params['metadataHeaders'] = list(metadata_headers)

    try:
        return _execute(get_service().users().messages().get(**params))
    except HttpError as e:
        raise _translate_http_error(e, 'read message')


def get_attachment_data(message_id: str, attachment_id: str) -> bytes:
    """
    Download the bytes of one attachment.

    Raises:
        GmailApiError: If the API call fails or returns no data
    """
    try:
        response = _execute(get_service().users().messages().attachments().get(
            userId=GMAIL_USER_ID,
            messageId=message_id,
            id=attachment_id
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'download attachment')

    data = response.get('data')
    if not data:
        raise GmailApiError("Failed to download attachment: No attachment data received")
    return decode_base64url(data)


def modify_message(
    message_id: str,
    add_label_ids: Optional[List[str]] = None,
    remove_label_ids: Optional[List[str]] = None
) -> None:
    """Add and/or remove labels on a single message."""
    try:
        _execute(get_service().users().messages().modify(
            userId=GMAIL_USER_ID,
            id=message_id,
            body=_label_changes(add_label_ids, remove_label_ids)
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'modify message')


def delete_message(message_id: str) -> None:
    """Permanently delete a single message."""
    try:
        _execute(get_service().users().messages().delete(userId=GMAIL_USER_ID, id=message_id))
    except HttpError as e:
        raise _translate_http_error(e, 'delete message')


def batch_modify(
    message_ids: List[str],
    add_label_ids: Optional[List[str]] = None,
    remove_label_ids: Optional[List[str]] = None
) -> None:
    """
    Add and/or remove labels on many messages in one call.

    Raises:
        GmailApiError: If the API call fails
    """
    body: Dict[str, Any] = {'ids': list(message_ids)}
    body.update(_label_changes(add_label_ids, remove_label_ids))

    try:
        _execute(get_service().users().messages().batchModify(userId=GMAIL_USER_ID, body=body))
    except HttpError as e:
        raise _translate_http_error(e, 'modify messages')


def batch_delete(message_ids: List[str]) -> None:
    """
    Permanently delete many messages in one call.

    Raises:
        GmailApiError: If the API call fails
    """
    try:
        _execute(get_service().users().messages().batchDelete(
            userId=GMAIL_USER_ID,
            body={'ids': list(message_ids)}
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'delete messages')


# ============================================================================
# Labels
# ============================================================================

def list_labels() -> List[Dict[str, Any]]:
    """Return every label resource in the mailbox."""
    try:
        response = _execute(get_service().users().labels().list(userId=GMAIL_USER_ID))
    except HttpError as e:
        raise _translate_http_error(e, 'list labels')
    return response.get('labels', [])


def get_label(label_id: str) -> Dict[str, Any]:
    try:
        return _execute(get_service().users().labels().get(userId=GMAIL_USER_ID, id=label_id))
    except HttpError as e:
        raise _translate_http_error(e, 'get label')


def create_label(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a label.

    Args:
        body: Label resource (name and visibility settings)

    Returns:
        Created label resource
    """
    try:
        return _execute(get_service().users().labels().create(userId=GMAIL_USER_ID, body=body))
    except HttpError as e:
        raise _translate_http_error(e, 'create label')


def update_label(label_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
    """Patch the given fields of a label and return the updated resource."""
    try:
        return _execute(get_service().users().labels().patch(
            userId=GMAIL_USER_ID,
            id=label_id,
            body=body
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'update label')


def delete_label(label_id: str) -> None:
    try:
        _execute(get_service().users().labels().delete(userId=GMAIL_USER_ID, id=label_id))
    except HttpError as e:
        raise _translate_http_error(e, 'delete label')


# ============================================================================
# Filters
# ============================================================================

def list_filters() -> List[Dict[str, Any]]:
    """Return every filter resource in the mailbox settings."""
    try:
        response = _execute(get_service().users().settings().filters().list(userId=GMAIL_USER_ID))
    except HttpError as e:
        raise _translate_http_error(e, 'list filters')
    return response.get('filter', [])


def get_filter(filter_id: str) -> Dict[str, Any]:
    try:
        return _execute(get_service().users().settings().filters().get(
            userId=GMAIL_USER_ID,
            id=filter_id
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'get filter')


def create_filter(criteria: Dict[str, Any], action: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a filter.

    Args:
        criteria: Gmail filter criteria (from, to, subject, query, ...)
        action: Gmail filter action (addLabelIds, removeLabelIds, forward)

    Returns:
        Created filter resource
    """
    try:
        return _execute(get_service().users().settings().filters().create(
            userId=GMAIL_USER_ID,
            body={'criteria': criteria, 'action': action}
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'create filter')


def delete_filter(filter_id: str) -> None:
    try:
        _execute(get_service().users().settings().filters().delete(
            userId=GMAIL_USER_ID,
            id=filter_id
        ))
    except HttpError as e:
        raise _translate_http_error(e, 'delete filter')
