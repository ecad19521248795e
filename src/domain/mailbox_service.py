"""
Mailbox operations - orchestration over the Gmail API.

This module wires the message builder and batch executor to the remote
mailbox:
1. Send / draft: build document -> encode -> send or create draft
2. Search / read: list matching IDs, fetch headers or full payloads
3. Single-message modify / delete and attachment download
4. Batch modify / delete: chunked bulk calls with per-item fallback

Validation and build errors propagate to the caller before any remote call.
Remote errors during batch runs are recorded per item, never raised.
"""

import asyncio
import functools
import logging
import os
from typing import Any, Callable, List, Optional, Sequence

from .batch_executor import BatchExecutor
from .errors import ValidationError
from .message_builder import MessageBuilder
from .models import BatchResult, EmailContent, EmailSummary, MessageSpec
from integrations import gmail_api
from services import attachment as attachment_service
from services.email import find_attachment_filename, get_header, parse_message

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RESULTS = 10
SEARCH_HEADERS = ['Subject', 'From', 'Date']


async def run_blocking(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


class MailboxService:
    """
    Send, draft, read and mutate messages in a remote mailbox.

    Holds only its collaborators; every call is independent.
    """

    def __init__(
        self,
        builder: Optional[MessageBuilder] = None,
        executor: Optional[BatchExecutor] = None,
        gmail: Any = gmail_api
    ):
        """
        Initialize mailbox service.

        Args:
            builder: Message builder (default: MessageBuilder())
            executor: Batch executor (default: BatchExecutor())
            gmail: Gmail API module or compatible object
        """
        self.builder = builder or MessageBuilder()
        self.executor = executor or BatchExecutor()
        self.gmail = gmail

    async def send_email(self, spec: MessageSpec) -> str:
        """
        Build and send a message.

        Args:
            spec: Message parameters

        Returns:
            str: ID of the sent message

        Raises:
            ValidationError: If the spec is invalid
            BuildError: If an attachment cannot be loaded
            GmailApiError: If the send call fails
        """
        raw = await self._build_raw(spec)
        message_id = await run_blocking(self.gmail.send_message, raw, thread_id=spec.thread_id)
        logger.info(f"Email sent: id={message_id}, to={spec.to}")
        return message_id

    async def create_draft(self, spec: MessageSpec) -> str:
        """
        Build a message and save it as a draft.

        Returns:
            str: ID of the created draft
        """
        raw = await self._build_raw(spec)
        draft_id = await run_blocking(self.gmail.create_draft, raw, thread_id=spec.thread_id)
        logger.info(f"Draft created: id={draft_id}, to={spec.to}")
        return draft_id

    async def search_emails(
        self,
        query: str,
        max_results: int = DEFAULT_SEARCH_RESULTS
    ) -> List[EmailSummary]:
        """
        Find messages with Gmail search syntax.

        Headers of the hits are fetched concurrently; results keep the order
        Gmail returned.

        Args:
            query: Gmail search query (e.g. "from:alice@example.com")
            max_results: Result limit, 1 to gmail_api.MAX_SEARCH_RESULTS

        Returns:
            One EmailSummary per hit
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("query is required")
        if (isinstance(max_results, bool) or not isinstance(max_results, int)
                or not 1 <= max_results <= gmail_api.MAX_SEARCH_RESULTS):
            raise ValidationError(
                f"maxResults must be an integer between 1 and {gmail_api.MAX_SEARCH_RESULTS}"
            )

        message_ids = await run_blocking(self.gmail.list_message_ids, query, max_results)
        messages = await asyncio.gather(*(
            run_blocking(
                self.gmail.get_message,
                message_id,
                message_format='metadata',
                metadata_headers=SEARCH_HEADERS
            )
            for message_id in message_ids
        ))

        results = []
        for message_id, message in zip(message_ids, messages):
            headers = (message.get('payload') or {}).get('headers') or []
            results.append(EmailSummary(
                id=message_id,
                subject=get_header(headers, 'Subject'),
                sender=get_header(headers, 'From'),
                date=get_header(headers, 'Date')
            ))
        logger.info(f"Search returned {len(results)} message(s) for query={query!r}")
        return results

    async def read_email(self, message_id: str) -> EmailContent:
        """
        Fetch a message with decoded bodies and attachment metadata.

        Raises:
            MessageNotFoundError: If the message does not exist
        """
        message = await run_blocking(self.gmail.get_message, message_id)
        if not message.get('payload'):
            raise gmail_api.MessageNotFoundError(
                f"Email with ID {message_id} not found", status=404
            )
        content = parse_message(message)
        logger.info(
            f"Read message {message_id}: attachments={len(content.attachments)}, "
            f"html_only={content.html_only}"
        )
        return content

    async def modify_email(
        self,
        message_id: str,
        add_label_ids: Optional[List[str]] = None,
        remove_label_ids: Optional[List[str]] = None
    ) -> None:
        """Add and/or remove labels on one message."""
        if not add_label_ids and not remove_label_ids:
            raise ValidationError("At least one of addLabelIds or removeLabelIds is required")
        await run_blocking(
            self.gmail.modify_message,
            message_id,
            add_label_ids=add_label_ids,
            remove_label_ids=remove_label_ids
        )
        logger.info(f"Modified message {message_id}")

    async def delete_email(self, message_id: str) -> None:
        """Permanently delete one message."""
        await run_blocking(self.gmail.delete_message, message_id)
        logger.info(f"Deleted message {message_id}")

    async def download_attachment(
        self,
        message_id: str,
        attachment_id: str,
        save_path: Optional[str] = None,
        filename: Optional[str] = None
    ) -> str:
        """
        Download an attachment to a local directory.

        Args:
            message_id: Message containing the attachment
            attachment_id: Gmail attachment ID
            save_path: Target directory (defaults to the working directory)
            filename: File name to use (defaults to the original name)

        Returns:
            Path of the written file

        Raises:
            GmailApiError: If the download fails
            StorageError: If the file cannot be written
        """
        content = await run_blocking(self.gmail.get_attachment_data, message_id, attachment_id)

        if not filename:
            message = await run_blocking(self.gmail.get_message, message_id)
            filename = (
                find_attachment_filename(message.get('payload') or {}, attachment_id)
                or f"attachment-{attachment_id}"
            )

        return await run_blocking(
            attachment_service.save_attachment,
            content,
            save_path or os.getcwd(),
            filename
        )

    async def batch_modify_emails(
        self,
        message_ids: Sequence[str],
        add_label_ids: Optional[List[str]] = None,
        remove_label_ids: Optional[List[str]] = None,
        batch_size: Optional[int] = None
    ) -> BatchResult:
        """
        Add and/or remove labels on many messages.

        Adding or removing labels is idempotent, so re-applying a chunk's
        items one by one after a bulk failure is safe.

        Args:
            message_ids: Message IDs to modify
            add_label_ids: Label IDs to add
            remove_label_ids: Label IDs to remove
            batch_size: Messages per bulk call

        Returns:
            BatchResult with success count and per-message failures

        Raises:
            ValidationError: If no labels are given or batch_size is invalid
        """
        if not add_label_ids and not remove_label_ids:
            raise ValidationError("At least one of addLabelIds or removeLabelIds is required")

        async def apply(ids: List[str]) -> None:
            await run_blocking(
                self.gmail.batch_modify,
                ids,
                add_label_ids=add_label_ids,
                remove_label_ids=remove_label_ids
            )

        logger.info(
            f"Batch modify: messages={len(message_ids)}, "
            f"add={add_label_ids or []}, remove={remove_label_ids or []}"
        )
        return await self.executor.run(message_ids, apply, chunk_size=batch_size)

    async def batch_delete_emails(
        self,
        message_ids: Sequence[str],
        batch_size: Optional[int] = None
    ) -> BatchResult:
        """
        Permanently delete many messages.

        A message deleted by a failed bulk call reports a not-found error on
        its individual retry; that shows up as a failure for that message.

        Args:
            message_ids: Message IDs to delete
            batch_size: Messages per bulk call

        Returns:
            BatchResult with success count and per-message failures
        """
        async def apply(ids: List[str]) -> None:
            await run_blocking(self.gmail.batch_delete, ids)

        logger.info(f"Batch delete: messages={len(message_ids)}")
        return await self.executor.run(message_ids, apply, chunk_size=batch_size)

    async def _build_raw(self, spec: MessageSpec) -> str:
        """Build the document off the event loop and encode it for transport."""
        document = await run_blocking(self.builder.build, spec)
        return self.gmail.encode_raw_message(document)
