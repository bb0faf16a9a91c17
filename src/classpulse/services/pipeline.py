import asyncio
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from classpulse.config.settings import Settings, settings as default_settings
from classpulse.core.cache import ShortLivedCache
from classpulse.core.dates import utc_now
from classpulse.domain.models import AggregationOutcome, AssignmentView, EnrollmentRecord, GradeView
from classpulse.services.assignment_service import AssignmentAggregator
from classpulse.services.comment_service import CommentService
from classpulse.services.data_source import DataSource
from classpulse.services.grade_service import GradeAggregator
from classpulse.services.name_service import NameDirectory
from classpulse.services.resolution import AcademicResolver


class StudentDataPipeline:
    """Entry point for the assignment and grade views of one subject.

    The ``*_view`` methods return plain record lists (empty on any failure);
    the ``*_outcome`` methods return the same records with the error, if any,
    for callers that need to tell "no data" from "could not load".
    """

    def __init__(
        self,
        source: DataSource,
        *,
        cache: Optional[ShortLivedCache] = None,
        batch_size: int = 20,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.cache = cache if cache is not None else ShortLivedCache()
        self.resolver = AcademicResolver(
            source,
            self.cache,
            batch_size=batch_size,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )
        self.names = NameDirectory(source, batch_size=batch_size, max_retries=max_retries, retry_delay=retry_delay)
        self.assignments = AssignmentAggregator(self.resolver, self.names, clock=clock)
        self.grades = GradeAggregator(self.resolver, self.names)
        self.comments = CommentService(source, self.names, clock=clock)

    @classmethod
    def from_settings(cls, source: DataSource, config: Settings = default_settings) -> "StudentDataPipeline":
        return cls(
            source,
            cache=ShortLivedCache(ttl_ms=config.grade_cache_ttl_ms),
            batch_size=config.batch_size,
            max_retries=config.batch_max_retries,
            retry_delay=config.batch_retry_delay_ms / 1000,
        )

    async def assignments_outcome(self, subject_id: str, academy_ids: Sequence[str]) -> AggregationOutcome:
        return await self.assignments.aggregate(subject_id, academy_ids)

    async def grades_outcome(self, subject_id: str, academy_ids: Sequence[str]) -> AggregationOutcome:
        return await self.grades.aggregate(subject_id, academy_ids)

    async def get_assignments_view(self, subject_id: str, academy_ids: Sequence[str]) -> List[AssignmentView]:
        return (await self.assignments_outcome(subject_id, academy_ids)).records

    async def get_grades_view(self, subject_id: str, academy_ids: Sequence[str]) -> List[GradeView]:
        return (await self.grades_outcome(subject_id, academy_ids)).records

    async def load_overview(
        self, subject_id: str, academy_ids: Sequence[str]
    ) -> Tuple[AggregationOutcome, AggregationOutcome]:
        """Run the assignment and grade pipelines concurrently."""
        assignments, grades = await asyncio.gather(
            self.assignments_outcome(subject_id, academy_ids),
            self.grades_outcome(subject_id, academy_ids),
        )
        return assignments, grades

    async def enrolled_classrooms(self, subject_id: str, academy_ids: Sequence[str]) -> List[EnrollmentRecord]:
        if not subject_id or not academy_ids:
            return []
        return (await self.resolver.enrollments(subject_id, academy_ids)).records

    def clear_cache(self) -> None:
        self.cache.clear()
        self.names.clear()
