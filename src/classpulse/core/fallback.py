from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from classpulse.logging_utils import create_logger
from classpulse.services.data_source import DataSourceError

logger = create_logger("classpulse.fallback")

T = TypeVar("T")

Strategy = Callable[[], Awaitable[Optional[List[T]]]]


@dataclass
class Resolution(Generic[T]):
    records: List[T] = field(default_factory=list)
    strategy: Optional[str] = None
    errors: List[DataSourceError] = field(default_factory=list)
    answered: bool = False

    @property
    def failed(self) -> bool:
        """True when nothing resolved and the last strategy tried errored.

        A fallback that answers with no rows makes the step legitimately empty;
        an empty primary followed by a failing fallback does not.
        """
        return not self.records and not self.answered and bool(self.errors)


def _strategy_name(strategy: Strategy, position: int) -> str:
    return getattr(strategy, "__name__", None) or f"strategy_{position}"


async def try_in_order(strategies: Sequence[Strategy], *, step: str) -> Resolution:
    """Await each strategy until one yields records.

    Strategies must return the same normalized record type. A strategy that
    raises ``DataSourceError`` or returns nothing is skipped; if every one is
    skipped the resolution is empty rather than an exception.
    """
    resolution: Resolution = Resolution()
    for position, strategy in enumerate(strategies):
        name = _strategy_name(strategy, position)
        try:
            records = await strategy()
        except DataSourceError as exc:
            resolution.errors.append(exc)
            resolution.answered = False
            logger.warning("Resolution strategy failed", step=step, strategy=name, error=exc.message)
            continue

        resolution.answered = True
        if records:
            resolution.records = list(records)
            resolution.strategy = name
            if position > 0:
                logger.info("Resolved through fallback", step=step, strategy=name, count=len(records))
            return resolution

        logger.info("Resolution strategy returned no rows", step=step, strategy=name)

    return resolution


async def resolve(primary: Strategy, fallback: Strategy, *, step: str) -> Resolution:
    return await try_in_order([primary, fallback], step=step)
