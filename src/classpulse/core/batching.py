import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Sequence

from classpulse.logging_utils import create_logger
from classpulse.services.data_source import QueryResult, Row

logger = create_logger("classpulse.batching")

BatchQuery = Callable[[List[str]], Awaitable[QueryResult]]


@dataclass
class BatchOutcome:
    rows: List[Row] = field(default_factory=list)
    batches: int = 0
    failed: int = 0

    @property
    def all_failed(self) -> bool:
        return self.batches > 0 and self.failed == self.batches


def chunked(keys: Sequence[str], batch_size: int) -> List[List[str]]:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [list(keys[i : i + batch_size]) for i in range(0, len(keys), batch_size)]


async def fetch_batched(
    keys: Sequence[str],
    batch_size: int,
    query: BatchQuery,
    max_retries: int,
    *,
    retry_delay: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> BatchOutcome:
    """Run ``query`` over ``keys`` in consecutive batches and concatenate the rows.

    Batches run one after another. A batch whose error mentions a timeout is
    retried up to ``max_retries`` times, waiting ``retry_delay * attempt``
    seconds before each retry. Any other error, or running out of retries,
    abandons that batch only; the rows of every batch that succeeded are
    returned.
    """
    outcome = BatchOutcome()
    for index, batch in enumerate(chunked(keys, batch_size)):
        outcome.batches += 1
        attempt = 0
        while True:
            result = await query(batch)
            if result.ok:
                outcome.rows.extend(result.rows())
                break

            error = result.error
            if error.is_timeout and attempt < max_retries:
                attempt += 1
                logger.info(
                    "Batch timed out, retrying",
                    batch_index=index,
                    attempt=attempt,
                    max_retries=max_retries,
                )
                await sleep(retry_delay * attempt)
                continue

            outcome.failed += 1
            logger.warning(
                "Abandoning batch",
                batch_index=index,
                batch_size=len(batch),
                attempts=attempt + 1,
                error=error.message,
            )
            break

    return outcome
