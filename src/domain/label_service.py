"""
Label management over the Gmail API.

System labels (INBOX, UNREAD, ...) are listed with user labels but can never
be deleted. Label names are matched case-insensitively when looking a label
up by name.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from .errors import ValidationError
from .mailbox_service import run_blocking
from .models import LabelListing
from integrations import gmail_api
from integrations.gmail_api import GmailApiError
from services.validation import validate_choice, validate_label_name

logger = logging.getLogger(__name__)

MESSAGE_LIST_VISIBILITY = ('show', 'hide')
LABEL_LIST_VISIBILITY = ('labelShow', 'labelShowIfUnread', 'labelHide')


def _label_body(
    name: Optional[str],
    message_list_visibility: Optional[str],
    label_list_visibility: Optional[str]
) -> Dict[str, Any]:
    validate_choice(message_list_visibility, 'messageListVisibility', MESSAGE_LIST_VISIBILITY)
    validate_choice(label_list_visibility, 'labelListVisibility', LABEL_LIST_VISIBILITY)

    body: Dict[str, Any] = {}
    if name:
        body['name'] = name
    if message_list_visibility:
        body['messageListVisibility'] = message_list_visibility
    if label_list_visibility:
        body['labelListVisibility'] = label_list_visibility
    return body


class LabelService:
    """Create, rename, list and delete mailbox labels."""

    def __init__(self, gmail: Any = gmail_api):
        self.gmail = gmail

    async def list_labels(self) -> LabelListing:
        labels = await run_blocking(self.gmail.list_labels)
        listing = LabelListing(
            system=[label for label in labels if label.get('type') == 'system'],
            user=[label for label in labels if label.get('type') != 'system']
        )
        logger.info(f"Listed labels: system={len(listing.system)}, user={len(listing.user)}")
        return listing

    async def create_label(
        self,
        name: str,
        message_list_visibility: Optional[str] = None,
        label_list_visibility: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a user label.

        Visibility defaults to shown in both the message list and the label
        list.

        Raises:
            ValidationError: If the name or a visibility value is invalid
            GmailApiError: If the label exists (status 409) or the call fails
        """
        validate_label_name(name)
        body = _label_body(
            name,
            message_list_visibility or 'show',
            label_list_visibility or 'labelShow'
        )

        try:
            label = await run_blocking(self.gmail.create_label, body)
        except GmailApiError as e:
            if e.status == 409:
                raise GmailApiError(
                    f'Label "{name}" already exists. Please use a different name.',
                    status=409
                )
            raise

        logger.info(f"Created label {label.get('id')}: {name}")
        return label

    async def update_label(
        self,
        label_id: str,
        name: Optional[str] = None,
        message_list_visibility: Optional[str] = None,
        label_list_visibility: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Change the name and/or visibility of a label.

        Only the fields given are changed.

        Raises:
            ValidationError: If nothing is given to change or a value is invalid
        """
        if name is not None:
            validate_label_name(name)
        body = _label_body(name, message_list_visibility, label_list_visibility)
        if not body:
            raise ValidationError(
                "At least one of name, messageListVisibility or labelListVisibility is required"
            )

        label = await run_blocking(self.gmail.update_label, label_id, body)
        logger.info(f"Updated label {label_id}: {sorted(body)}")
        return label

    async def delete_label(self, label_id: str) -> None:
        """
        Delete a user label.

        Raises:
            ValidationError: If the label is a system label
            MessageNotFoundError: If the label does not exist
        """
        label = await run_blocking(self.gmail.get_label, label_id)
        if label.get('type') == 'system':
            raise ValidationError(f'Cannot delete system label with ID "{label_id}".')

        await run_blocking(self.gmail.delete_label, label_id)
        logger.info(f"Deleted label {label_id}")

    async def find_label_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the label whose name matches case-insensitively, or None."""
        wanted = name.lower()
        labels = await run_blocking(self.gmail.list_labels)
        for label in labels:
            if (label.get('name') or '').lower() == wanted:
                return label
        return None

    async def get_or_create_label(
        self,
        name: str,
        message_list_visibility: Optional[str] = None,
        label_list_visibility: Optional[str] = None
    ) -> Tuple[Dict[str, Any], bool]:
        """
        Find a label by name, creating it when missing.

        Visibility settings only apply when the label is created.

        Returns:
            (label, created) where created is True for a new label
        """
        validate_label_name(name)
        _label_body(None, message_list_visibility, label_list_visibility)
        existing = await self.find_label_by_name(name)
        if existing:
            logger.info(f"Found existing label {existing.get('id')} for {name!r}")
            return existing, False

        label = await self.create_label(name, message_list_visibility, label_list_visibility)
        return label, True
