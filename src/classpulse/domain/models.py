from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")

ASSIGNMENT_TYPES = ("Homework", "Quiz", "Test", "Project")
GRADE_STATUSES = ("not_submitted", "pending", "submitted", "graded", "late", "excused", "overdue")

DEFAULT_CLASSROOM_NAME = "Unknown Class"
DEFAULT_CLASSROOM_COLOR = "#3B82F6"
DEFAULT_TEACHER_NAME = "Unknown Teacher"
DEFAULT_SUBJECT_NAME = "Unknown Subject"
DEFAULT_ASSIGNMENT_TITLE = "Unknown Assignment"
MAX_POINTS = 100


@dataclass(frozen=True)
class EnrollmentRecord:
    classroom_id: str
    classroom_name: str
    classroom_color: str
    subject_name: Optional[str]
    academy_id: Optional[str]
    academy_name: Optional[str]
    teacher_id: Optional[str]


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    classroom_id: str
    date: Optional[str]


@dataclass(frozen=True)
class AssignmentRecord:
    assignment_id: str
    title: str
    description: str
    due_date: Optional[str]
    assignment_type: str
    session_id: str
    comments: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True)
class GradeRecord:
    grade_id: str
    assignment_id: str
    student_id: str
    score: Optional[float]
    status: str
    submitted_date: Optional[str]
    updated_date: Optional[str]
    feedback: Optional[str]


@dataclass(frozen=True)
class CommentView:
    id: str
    author_id: str
    author_name: str
    author_initials: str
    content: str
    created_at: Optional[str]


@dataclass(frozen=True)
class AssignmentView:
    id: str
    title: str
    description: str
    due_date: str
    status: str
    assignment_type: str
    classroom_id: str
    classroom_name: str
    classroom_color: str
    subject_name: str
    academy_id: Optional[str]
    academy_name: Optional[str]
    teacher_name: str
    teacher_initials: str
    comment_count: int
    comments: tuple[CommentView, ...] = ()


@dataclass(frozen=True)
class GradeView:
    id: str
    assignment_id: str
    assignment_title: str
    assignment_type: str
    subject: str
    grade: Union[float, str]
    score: Optional[float]
    max_points: int
    graded_date: Optional[str]
    teacher_name: str
    classroom_id: str
    classroom_name: str
    classroom_color: str
    status: str
    due_date: str
    submitted_date: Optional[str]
    teacher_comment: Optional[str]
    comment_count: int = 0


@dataclass(frozen=True)
class ChartPoint:
    date: str
    average: int
    count: int
    assignment_title: str


@dataclass(frozen=True)
class CacheEntry:
    key: str
    data: Any
    timestamp: int


@dataclass(frozen=True)
class AggregationError:
    step: str
    message: str
    degraded: bool = False


@dataclass(frozen=True)
class AggregationOutcome(Generic[T]):
    """Records produced by an aggregation plus the failure, if one occurred.

    An empty ``records`` list with ``error is None`` means the subject genuinely
    has no data; with an error it means a step could not be resolved. A
    ``degraded`` error accompanies records that were built without some data
    (for example assignments rendered without grades).
    """

    records: list[T] = field(default_factory=list)
    error: Optional[AggregationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def unresolved(cls, step: str, failed: bool) -> "AggregationOutcome":
        """Outcome for a step that produced nothing; an error only if the step failed."""
        if failed:
            return cls(error=AggregationError(step=step, message=f"Could not resolve {step}"))
        return cls()
