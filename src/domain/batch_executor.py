"""
Batch mutation engine.

Applies a caller-supplied async action to a large collection of item IDs:
1. Split items into consecutive chunks of chunk_size
2. Apply the action once per chunk
3. If a chunk fails, re-apply the action to each of its items individually
   (concurrently) and record every outcome separately

A failing item never aborts its siblings or later chunks. Note that a
successful chunk call counts all of its items as successes; callers that
need per-item precision should use chunk_size=1.
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable, List, Optional, Sequence

from .errors import ValidationError
from .models import BatchFailure, BatchResult

logger = logging.getLogger(__name__)

# Configuration from environment
MAX_CHUNK_SIZE = int(os.environ.get('MAILBOX_MAX_BATCH_SIZE', 100))
DEFAULT_CHUNK_SIZE = int(os.environ.get('MAILBOX_DEFAULT_BATCH_SIZE', 50))

ApplyFn = Callable[[List[str]], Awaitable[None]]


def partition(items: Sequence[str], chunk_size: int) -> List[List[str]]:
    """
    Split items into consecutive chunks, preserving order.

    Args:
        items: Items to split
        chunk_size: Size of each chunk (the last one may be smaller)

    Returns:
        List of chunks

    Example:
        >>> partition(["a", "b", "c"], 2)
        [['a', 'b'], ['c']]
    """
    return [list(items[i:i + chunk_size]) for i in range(0, len(items), chunk_size)]


def describe_error(error: BaseException) -> str:
    """Human-readable reason for a failed call."""
    message = str(error).strip()
    return message or error.__class__.__name__


class BatchExecutor:
    """
    Applies an action to many items with bulk-then-per-item fallback.

    Holds only configuration; every run is independent.
    """

    def __init__(
        self,
        max_chunk_size: int = MAX_CHUNK_SIZE,
        concurrent_chunks: bool = False
    ):
        """
        Initialize batch executor.

        Args:
            max_chunk_size: Upper bound accepted for chunk_size
            concurrent_chunks: Dispatch all chunks at once instead of one by one
        """
        if max_chunk_size < 1:
            raise ValidationError(f"max_chunk_size must be positive, got {max_chunk_size}")
        self.max_chunk_size = max_chunk_size
        self.concurrent_chunks = concurrent_chunks

    async def run(
        self,
        items: Sequence[str],
        apply: ApplyFn,
        chunk_size: Optional[int] = None
    ) -> BatchResult:
        """
        Apply an action to all items in chunks.

        Args:
            items: Ordered item IDs (may be empty, duplicates allowed)
            apply: Async callable taking a list of items; raises on failure
            chunk_size: Items per bulk call (defaults to DEFAULT_CHUNK_SIZE,
                        capped by max_chunk_size)

        Returns:
            BatchResult accounting for every item exactly once

        Raises:
            ValidationError: If chunk_size or apply is invalid (before any call)
        """
        if chunk_size is None:
            chunk_size = min(DEFAULT_CHUNK_SIZE, self.max_chunk_size)
        self._validate(chunk_size, apply)

        chunks = partition(list(items), chunk_size)
        logger.info(
            f"Running batch: items={len(items)}, chunks={len(chunks)}, "
            f"chunk_size={chunk_size}, concurrent={self.concurrent_chunks}"
        )

        if self.concurrent_chunks:
            outcomes = await asyncio.gather(*(self._run_chunk(chunk, apply) for chunk in chunks))
        else:
            outcomes = [await self._run_chunk(chunk, apply) for chunk in chunks]

        result = BatchResult()
        for outcome in outcomes:
            result.merge(outcome)

        logger.info(
            f"Batch complete: success={result.success_count}, "
            f"failed={result.failure_count}"
        )
        return result

    def _validate(self, chunk_size: int, apply: ApplyFn) -> None:
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
            raise ValidationError(f"chunk_size must be an integer, got {type(chunk_size).__name__}")
        if chunk_size < 1 or chunk_size > self.max_chunk_size:
            raise ValidationError(
                f"chunk_size must be between 1 and {self.max_chunk_size}, got {chunk_size}"
            )
        if not callable(apply):
            raise ValidationError("apply must be callable")

    async def _run_chunk(self, chunk: List[str], apply: ApplyFn) -> BatchResult:
        """
        Apply the action to one chunk, falling back to per-item calls on failure.

        Args:
            chunk: Items in this chunk
            apply: Async action

        Returns:
            BatchResult for this chunk only
        """
        try:
            await apply(list(chunk))
            return BatchResult(success_count=len(chunk))
        except Exception as e:
            logger.warning(
                f"Chunk of {len(chunk)} item(s) failed, retrying individually: "
                f"{describe_error(e)}"
            )

        # gather keeps input order, so failures stay in original item order
        individual = await asyncio.gather(*(self._apply_one(item, apply) for item in chunk))

        result = BatchResult()
        for failure in individual:
            if failure is None:
                result.success_count += 1
            else:
                result.failures.append(failure)
        return result

    async def _apply_one(self, item: str, apply: ApplyFn) -> Optional[BatchFailure]:
        """Apply the action to a single item; return a failure or None."""
        try:
            await apply([item])
            return None
        except Exception as e:
            reason = describe_error(e)
            logger.warning(f"Item {item[:16]} failed: {reason}")
            return BatchFailure(item=item, error=reason)
