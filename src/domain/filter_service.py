"""
Filter management over the Gmail API.

Filters pair search criteria with actions applied to matching incoming
mail. Criteria and actions use Gmail's own camelCase field names and are
checked locally before the create call.
"""

import logging
from typing import Any, Dict, List

from .errors import ValidationError
from .mailbox_service import run_blocking
from integrations import gmail_api
from services.validation import is_valid_email, validate_choice

logger = logging.getLogger(__name__)

STRING_CRITERIA = ('from', 'to', 'subject', 'query', 'negatedQuery')
BOOLEAN_CRITERIA = ('hasAttachment', 'excludeChats')
SIZE_COMPARISONS = ('unspecified', 'smaller', 'larger')
CRITERIA_FIELDS = STRING_CRITERIA + BOOLEAN_CRITERIA + ('size', 'sizeComparison')
ACTION_FIELDS = ('addLabelIds', 'removeLabelIds', 'forward')


def validate_criteria(criteria: Dict[str, Any]) -> None:
    """
    Check filter criteria field names and value types.

    Raises:
        ValidationError: On an unknown field, a wrong type, a bad address or
                         when no criterion is given
    """
    if not isinstance(criteria, dict):
        raise ValidationError("criteria must be an object")
    unknown = sorted(set(criteria) - set(CRITERIA_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown filter criteria: {', '.join(unknown)}")

    for key in STRING_CRITERIA:
        if key in criteria and not isinstance(criteria[key], str):
            raise ValidationError(f"criteria.{key} must be a string")
    for key in ('from', 'to'):
        if key in criteria and not is_valid_email(criteria[key]):
            raise ValidationError(f"Invalid email address in criteria.{key}: {criteria[key]!r}")
    for key in BOOLEAN_CRITERIA:
        if key in criteria and not isinstance(criteria[key], bool):
            raise ValidationError(f"criteria.{key} must be a boolean")
    if 'size' in criteria:
        size = criteria['size']
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            raise ValidationError("criteria.size must be a positive integer")
    validate_choice(criteria.get('sizeComparison'), 'criteria.sizeComparison', SIZE_COMPARISONS)

    if not any(criteria.get(key) for key in CRITERIA_FIELDS):
        raise ValidationError("At least one filter criterion is required")


def validate_action(action: Dict[str, Any]) -> None:
    """
    Check filter action field names and value types.

    Raises:
        ValidationError: On an unknown field, a wrong type, a bad forward
                         address or when no action is given
    """
    if not isinstance(action, dict):
        raise ValidationError("action must be an object")
    unknown = sorted(set(action) - set(ACTION_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown filter actions: {', '.join(unknown)}")

    for key in ('addLabelIds', 'removeLabelIds'):
        value = action.get(key)
        if value is not None and (
            not isinstance(value, list) or not all(isinstance(v, str) for v in value)
        ):
            raise ValidationError(f"action.{key} must be a list of strings")
    if 'forward' in action and not is_valid_email(action['forward']):
        raise ValidationError(f"Invalid email address in action.forward: {action['forward']!r}")

    if not any(action.get(key) for key in ACTION_FIELDS):
        raise ValidationError("At least one filter action is required")


class FilterService:
    """Create, inspect, list and delete mailbox filters."""

    def __init__(self, gmail: Any = gmail_api):
        self.gmail = gmail

    async def create_filter(
        self,
        criteria: Dict[str, Any],
        action: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create a filter.

        Raises:
            ValidationError: If criteria or action are malformed
            GmailApiError: If Gmail rejects the filter
        """
        validate_criteria(criteria)
        validate_action(action)
        created = await run_blocking(self.gmail.create_filter, criteria, action)
        logger.info(f"Created filter {created.get('id')}: criteria={sorted(criteria)}")
        return created

    async def list_filters(self) -> List[Dict[str, Any]]:
        filters = await run_blocking(self.gmail.list_filters)
        logger.info(f"Listed {len(filters)} filter(s)")
        return filters

    async def get_filter(self, filter_id: str) -> Dict[str, Any]:
        return await run_blocking(self.gmail.get_filter, filter_id)

    async def delete_filter(self, filter_id: str) -> None:
        await run_blocking(self.gmail.delete_filter, filter_id)
        logger.info(f"Deleted filter {filter_id}")
