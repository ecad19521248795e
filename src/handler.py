"""
Lambda entry point for mailbox operations.

Thin orchestration layer: validates operation arguments, delegates to the
mailbox, label and filter services and returns the formatted text result
in a JSON body.

Expected event format:
{
    "operation": "batch_delete_emails",
    "arguments": {"messageIds": ["18c2f0a9b7d4e1f2"], "batchSize": 50}
}
"""

import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional

from domain.batch_executor import DEFAULT_CHUNK_SIZE, MAX_CHUNK_SIZE
from domain.errors import BuildError, StorageError, ValidationError
from domain.filter_service import FilterService
from domain.label_service import LabelService
from domain.mailbox_service import DEFAULT_SEARCH_RESULTS, MailboxService
from domain.models import ContentMode, MessageSpec
from integrations.gmail_api import ConfigurationError, GmailApiError
from services import formatting

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

# Add console handler for local runs
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s - %(name)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

ENVIRONMENT = os.environ.get('ENVIRONMENT', 'dev')

# Initialize services once at module level (reused across invocations)
mailbox_service = MailboxService()
label_service = LabelService()
filter_service = FilterService()


def _require_str(arguments: Dict[str, Any], key: str, allow_empty: bool = True) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or (not allow_empty and not value):
        raise ValidationError(f"{key} is required and must be a string")
    return value


def _optional_str(arguments: Dict[str, Any], key: str) -> Optional[str]:
    value = arguments.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


def _string_list(arguments: Dict[str, Any], key: str, required: bool = False) -> Optional[List[str]]:
    value = arguments.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{key} must be a list of strings")
    if required and not value:
        raise ValidationError(f"{key} must not be empty")
    return value


def _batch_size(arguments: Dict[str, Any]) -> int:
    value = arguments.get('batchSize', DEFAULT_CHUNK_SIZE)
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= MAX_CHUNK_SIZE:
        raise ValidationError(f"batchSize must be an integer between 1 and {MAX_CHUNK_SIZE}")
    return value


def parse_message_spec(arguments: Dict[str, Any]) -> MessageSpec:
    """
    Convert send/draft arguments into a MessageSpec.

    Args:
        arguments: Operation arguments (camelCase keys)

    Returns:
        MessageSpec

    Raises:
        ValidationError: If a required argument is missing or has the wrong type
    """
    return MessageSpec(
        to=_string_list(arguments, 'to', required=True),
        subject=_require_str(arguments, 'subject'),
        body=_require_str(arguments, 'body'),
        html_body=_optional_str(arguments, 'htmlBody'),
        content_mode=ContentMode.parse(_optional_str(arguments, 'mimeType')),
        cc=_string_list(arguments, 'cc'),
        bcc=_string_list(arguments, 'bcc'),
        in_reply_to=_optional_str(arguments, 'inReplyTo'),
        thread_id=_optional_str(arguments, 'threadId'),
        attachments=_string_list(arguments, 'attachments'),
    )


async def _send_email(arguments: Dict[str, Any]) -> str:
    message_id = await mailbox_service.send_email(parse_message_spec(arguments))
    return formatting.format_send_result(message_id)


async def _draft_email(arguments: Dict[str, Any]) -> str:
    draft_id = await mailbox_service.create_draft(parse_message_spec(arguments))
    return formatting.format_draft_result(draft_id)


async def _search_emails(arguments: Dict[str, Any]) -> str:
    results = await mailbox_service.search_emails(
        _require_str(arguments, 'query'),
        max_results=arguments.get('maxResults', DEFAULT_SEARCH_RESULTS)
    )
    return formatting.format_search_results(results)


async def _read_email(arguments: Dict[str, Any]) -> str:
    message_id = _require_str(arguments, 'messageId', allow_empty=False)
    content = await mailbox_service.read_email(message_id)
    return formatting.format_email(content)


async def _modify_email(arguments: Dict[str, Any]) -> str:
    message_id = _require_str(arguments, 'messageId', allow_empty=False)
    await mailbox_service.modify_email(
        message_id,
        add_label_ids=_string_list(arguments, 'addLabelIds'),
        remove_label_ids=_string_list(arguments, 'removeLabelIds')
    )
    return formatting.format_modify_result(message_id)


async def _delete_email(arguments: Dict[str, Any]) -> str:
    message_id = _require_str(arguments, 'messageId', allow_empty=False)
    await mailbox_service.delete_email(message_id)
    return formatting.format_delete_result(message_id)


async def _download_attachment(arguments: Dict[str, Any]) -> str:
    path = await mailbox_service.download_attachment(
        _require_str(arguments, 'messageId', allow_empty=False),
        _require_str(arguments, 'attachmentId', allow_empty=False),
        save_path=_optional_str(arguments, 'savePath'),
        filename=_optional_str(arguments, 'filename')
    )
    return formatting.format_download_result(path)


async def _batch_modify_emails(arguments: Dict[str, Any]) -> str:
    result = await mailbox_service.batch_modify_emails(
        _string_list(arguments, 'messageIds', required=True),
        add_label_ids=_string_list(arguments, 'addLabelIds'),
        remove_label_ids=_string_list(arguments, 'removeLabelIds'),
        batch_size=_batch_size(arguments)
    )
    return formatting.format_batch_modify_result(result)


async def _batch_delete_emails(arguments: Dict[str, Any]) -> str:
    result = await mailbox_service.batch_delete_emails(
        _string_list(arguments, 'messageIds', required=True),
        batch_size=_batch_size(arguments)
    )
    return formatting.format_batch_delete_result(result)


async def _list_email_labels(arguments: Dict[str, Any]) -> str:
    return formatting.format_label_list(await label_service.list_labels())


def _visibility(arguments: Dict[str, Any]) -> Dict[str, Optional[str]]:
    return {
        'message_list_visibility': _optional_str(arguments, 'messageListVisibility'),
        'label_list_visibility': _optional_str(arguments, 'labelListVisibility'),
    }


async def _create_label(arguments: Dict[str, Any]) -> str:
    label = await label_service.create_label(
        _require_str(arguments, 'name'),
        **_visibility(arguments)
    )
    return formatting.format_label(label, "Label created successfully:")


async def _update_label(arguments: Dict[str, Any]) -> str:
    label = await label_service.update_label(
        _require_str(arguments, 'id', allow_empty=False),
        name=_optional_str(arguments, 'name'),
        **_visibility(arguments)
    )
    return formatting.format_label(label, "Label updated successfully:")


async def _delete_label(arguments: Dict[str, Any]) -> str:
    label_id = _require_str(arguments, 'id', allow_empty=False)
    await label_service.delete_label(label_id)
    return formatting.format_label_deleted(label_id)


async def _get_or_create_label(arguments: Dict[str, Any]) -> str:
    label, created = await label_service.get_or_create_label(
        _require_str(arguments, 'name'),
        **_visibility(arguments)
    )
    action = 'created new' if created else 'found existing'
    return formatting.format_label(label, f"Successfully {action} label:")


async def _create_filter(arguments: Dict[str, Any]) -> str:
    created = await filter_service.create_filter(
        arguments.get('criteria'),
        arguments.get('action')
    )
    return formatting.format_filter(created, "Filter created successfully:")


async def _list_filters(arguments: Dict[str, Any]) -> str:
    return formatting.format_filter_list(await filter_service.list_filters())


async def _get_filter(arguments: Dict[str, Any]) -> str:
    filter_id = _require_str(arguments, 'filterId', allow_empty=False)
    found = await filter_service.get_filter(filter_id)
    return formatting.format_filter(found, "Filter details:")


async def _delete_filter(arguments: Dict[str, Any]) -> str:
    filter_id = _require_str(arguments, 'filterId', allow_empty=False)
    await filter_service.delete_filter(filter_id)
    return formatting.format_filter_deleted(filter_id)


OPERATIONS = {
    'send_email': _send_email,
    'draft_email': _draft_email,
    'search_emails': _search_emails,
    'read_email': _read_email,
    'modify_email': _modify_email,
    'delete_email': _delete_email,
    'download_attachment': _download_attachment,
    'batch_modify_emails': _batch_modify_emails,
    'batch_delete_emails': _batch_delete_emails,
    'list_email_labels': _list_email_labels,
    'create_label': _create_label,
    'update_label': _update_label,
    'delete_label': _delete_label,
    'get_or_create_label': _get_or_create_label,
    'create_filter': _create_filter,
    'list_filters': _list_filters,
    'get_filter': _get_filter,
    'delete_filter': _delete_filter,
}


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler running one mailbox operation.

    Expected event format:
    {
        "operation": "search_emails",
        "arguments": {"query": "from:alice@example.com", "maxResults": 10}
    }

    Returns:
        Dict with statusCode and a JSON body: {"operation", "result"} on
        success, {"error"} on failure
    """
    operation = event.get('operation')
    arguments = event.get('arguments') or {}
    request_id = getattr(context, 'aws_request_id', None)
    logger.info(f"Environment: {ENVIRONMENT}, operation: {operation}, request_id: {request_id}")

    try:
        if operation not in OPERATIONS:
            raise ValidationError(f"Unknown operation: {operation}")
        if not isinstance(arguments, dict):
            raise ValidationError("arguments must be an object")

        text = asyncio.run(OPERATIONS[operation](arguments))
        logger.info(f"Operation {operation} completed")
        return _response(200, {'operation': operation, 'result': text})

    except (ValidationError, BuildError) as e:
        logger.error(f"Invalid request for {operation}: {e}")
        return _response(400, {'error': str(e)})

    except (ConfigurationError, StorageError) as e:
        logger.error(f"Error running {operation}: {e}")
        return _response(500, {'error': str(e)})

    except GmailApiError as e:
        logger.error(f"Gmail API error during {operation}: {e}")
        return _response(502, {'error': str(e)})

    except Exception as e:
        logger.error(f"Error running {operation}: {e}", exc_info=True)
        return _response(500, {'error': 'Internal server error', 'message': str(e)})
