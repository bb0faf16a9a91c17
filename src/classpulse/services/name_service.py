from typing import Dict, Iterable, List

from classpulse.core.batching import fetch_batched
from classpulse.logging_utils import create_logger
from classpulse.services.data_source import DataSource, In, QueryResult

logger = create_logger("classpulse.names")


class NameDirectory:
    """Id -> display name lookups for users and academies, memoized.

    Resolved names are kept until ``clear``, which the pipeline calls together
    with the grade cache. Ids the backend does not return are simply absent
    from the result; callers apply their own display default.
    """

    def __init__(
        self, source: DataSource, *, batch_size: int = 20, max_retries: int = 2, retry_delay: float = 0.5
    ) -> None:
        self.source = source
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._names: Dict[str, Dict[str, str]] = {}

    async def user_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        return await self._resolve("users", user_ids)

    async def academy_names(self, academy_ids: Iterable[str]) -> Dict[str, str]:
        return await self._resolve("academies", academy_ids)

    async def _resolve(self, table: str, ids: Iterable[str]) -> Dict[str, str]:
        known = self._names.setdefault(table, {})
        wanted: List[str] = list(dict.fromkeys(str(item) for item in ids if item))
        missing = [item for item in wanted if item not in known]

        if missing:

            async def query(batch: List[str]) -> QueryResult:
                return await self.source.run_table_query(table, filters=[In("id", tuple(batch))])

            outcome = await fetch_batched(
                missing, self.batch_size, query, self.max_retries, retry_delay=self.retry_delay
            )
            for row in outcome.rows:
                row_id = row.get("id")
                name = row.get("name")
                if row_id and name:
                    known[str(row_id)] = str(name)
            if outcome.failed:
                logger.warning("Some names could not be resolved", table=table, failed_batches=outcome.failed)

        return {item: known[item] for item in wanted if item in known}

    def clear(self) -> None:
        self._names.clear()
