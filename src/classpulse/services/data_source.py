"""Shape of the backend the aggregation pipeline reads from.

The pipeline never talks to a database product directly. It calls three
coroutines on a ``DataSource``: server-side aggregation functions, plain table
queries with equality/IN/null filters, and a single-row insert. Every call
answers with a ``QueryResult`` carrying either rows or a ``DataSourceError``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

Row = Dict[str, Any]


class DataSourceError(Exception):
    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_timeout(self) -> bool:
        text = self.message.lower()
        return "timeout" in text or "timed out" in text


@dataclass(frozen=True)
class Eq:
    column: str
    value: Any


@dataclass(frozen=True)
class In:
    column: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class IsNull:
    column: str


Filter = Union[Eq, In, IsNull]


@dataclass(frozen=True)
class Order:
    column: str
    ascending: bool = True


@dataclass
class QueryResult:
    data: Optional[Any] = None
    error: Optional[DataSourceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def rows(self) -> List[Row]:
        """Return the rows, raising the carried error if the call failed."""
        if self.error is not None:
            raise self.error
        if self.data is None:
            return []
        if isinstance(self.data, list):
            return self.data
        return [self.data]


class DataSource(Protocol):
    async def run_aggregation_function(self, name: str, args: Dict[str, Any]) -> QueryResult:
        ...

    async def run_table_query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        ordering: Sequence[Order] = (),
        range: Optional[Tuple[int, int]] = None,
    ) -> QueryResult:
        ...

    async def insert_row(self, table: str, row: Row) -> QueryResult:
        ...
