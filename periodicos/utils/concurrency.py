"""Bounded-concurrency batch execution.

Work items are started in fixed-size batches and each batch is fully awaited
before the next begins, so at most ``max_workers`` operations are in flight
at any instant. Results are only appended after a batch completes, which
keeps accumulation free of concurrent mutation.
"""

import asyncio
from dataclasses import dataclass, field
from typing import (
    Awaitable,
    Callable,
    Generic,
    List,
    Optional,
    Sequence,
    TypeVar,
)

import structlog

from periodicos.models.search import ItemFailure

logger = structlog.get_logger()

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchOutcome(Generic[R]):
    """Successes and per-item failures of a bounded map"""

    results: List[R] = field(default_factory=list)
    failures: List[ItemFailure] = field(default_factory=list)
    batches_run: int = 0
    items_attempted: int = 0


async def bounded_map(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[Optional[R]]],
    max_workers: int,
    stage: str,
    describe: Callable[[T], str] = str,
    stop_when: Optional[Callable[[List[R]], bool]] = None,
) -> BatchOutcome[R]:
    """Run ``worker`` over ``items`` in concurrent batches of ``max_workers``.

    Args:
        items: Inputs, processed in order
        worker: Async unit of work; returning None drops the item silently
        max_workers: Batch size (peak in-flight operations)
        stage: Stage name recorded on failures and in logs
        describe: Renders an item for failure descriptors
        stop_when: Checked after each batch; True skips remaining batches

    Returns:
        BatchOutcome with results in input order and one ItemFailure per
        item whose worker raised
    """
    if max_workers < 1:
        raise ValueError("max_workers must be at least 1")

    outcome: BatchOutcome[R] = BatchOutcome()

    for start in range(0, len(items), max_workers):
        batch = items[start : start + max_workers]
        settled = await asyncio.gather(
            *(worker(item) for item in batch), return_exceptions=True
        )
        outcome.batches_run += 1
        outcome.items_attempted += len(batch)

        for item, result in zip(batch, settled):
            if isinstance(result, BaseException) and not isinstance(
                result, Exception
            ):
                # Cancellation and interpreter exits are never absorbed
                raise result
            if isinstance(result, Exception):
                label = describe(item)
                logger.warning(
                    "batch_item_failed",
                    stage=stage,
                    item=label,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                outcome.failures.append(
                    ItemFailure(stage=stage, item=label, error=str(result))
                )
            elif result is not None:
                outcome.results.append(result)

        if stop_when is not None and stop_when(outcome.results):
            remaining = len(items) - (start + len(batch))
            if remaining > 0:
                logger.info("batch_early_exit", stage=stage, skipped=remaining)
            break

    return outcome
