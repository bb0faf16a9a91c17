from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from classpulse.core.comments import initials
from classpulse.core.dates import parse_iso, utc_now
from classpulse.domain.models import (
    DEFAULT_TEACHER_NAME,
    AggregationError,
    AggregationOutcome,
    AssignmentRecord,
    AssignmentView,
    CommentView,
    EnrollmentRecord,
    GradeRecord,
    SessionRecord,
)
from classpulse.logging_utils import create_logger
from classpulse.services.name_service import NameDirectory
from classpulse.services.resolution import AcademicResolver

logger = create_logger("classpulse.assignments")


def assignment_status(assignment: AssignmentRecord, grade: Optional[GradeRecord], now: datetime) -> str:
    if grade is not None and grade.status and grade.status != "not_submitted":
        return "completed"
    due = parse_iso(assignment.due_date)
    if due is not None and due < now:
        return "overdue"
    return "pending"


def comment_view(comment: Mapping, names: Mapping[str, str]) -> CommentView:
    author_id = str(comment.get("user_id") or comment.get("author_id") or "")
    author_name = names.get(author_id) or comment.get("user_name") or comment.get("author_name") or "Unknown User"
    return CommentView(
        id=str(comment.get("id") or ""),
        author_id=author_id,
        author_name=author_name,
        author_initials=initials(author_name),
        content=str(comment.get("text") or comment.get("content") or ""),
        created_at=comment.get("created_at") or comment.get("timestamp"),
    )


class AssignmentAggregator:
    """Builds the assignment list for one subject.

    Enrollments, sessions and assignments are resolved step by step; an empty
    step ends the aggregation with no records. Assignments whose session or
    classroom is missing are dropped (and counted in a warning).
    """

    def __init__(
        self,
        resolver: AcademicResolver,
        names: NameDirectory,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.resolver = resolver
        self.names = names
        self.clock = clock

    async def aggregate(self, subject_id: str, academy_ids: Sequence[str]) -> AggregationOutcome:
        if not subject_id or not academy_ids:
            return AggregationOutcome()

        enrollments = await self.resolver.enrollments(subject_id, academy_ids)
        if not enrollments.records:
            return AggregationOutcome.unresolved("enrollments", enrollments.failed)

        classrooms: Dict[str, EnrollmentRecord] = {record.classroom_id: record for record in enrollments.records}
        sessions = await self.resolver.sessions(list(classrooms))
        if not sessions.records:
            return AggregationOutcome.unresolved("sessions", sessions.failed)

        session_map: Dict[str, SessionRecord] = {record.session_id: record for record in sessions.records}
        assignments = await self.resolver.assignments(list(session_map))
        if not assignments.records:
            return AggregationOutcome.unresolved("assignments", assignments.failed)

        assignment_ids = [record.assignment_id for record in assignments.records]
        grades = await self.resolver.grades(subject_id, assignment_ids)
        grade_map: Dict[str, GradeRecord] = {}
        for grade in grades.records:
            grade_map.setdefault(grade.assignment_id, grade)

        user_ids = [record.teacher_id for record in classrooms.values()]
        for assignment in assignments.records:
            user_ids.extend(comment.get("user_id") for comment in assignment.comments)
        user_names = await self.names.user_names(user_ids)
        academy_names = await self.names.academy_names(
            record.academy_id for record in classrooms.values() if not record.academy_name
        )

        now = self.clock()
        views: List[AssignmentView] = []
        dropped = 0
        for assignment in assignments.records:
            session = session_map.get(assignment.session_id)
            classroom = classrooms.get(session.classroom_id) if session else None
            if classroom is None:
                dropped += 1
                continue
            views.append(
                self._view(assignment, classroom, grade_map.get(assignment.assignment_id), user_names, academy_names, now)
            )

        if dropped:
            logger.warning(
                "Dropped assignments with unresolved session or classroom",
                subject_id=subject_id,
                dropped=dropped,
                kept=len(views),
            )

        error = None
        if grades.unavailable:
            error = AggregationError(step="grades", message="No grades available", degraded=True)
        return AggregationOutcome(records=views, error=error)

    @staticmethod
    def _view(
        assignment: AssignmentRecord,
        classroom: EnrollmentRecord,
        grade: Optional[GradeRecord],
        user_names: Mapping[str, str],
        academy_names: Mapping[str, str],
        now: datetime,
    ) -> AssignmentView:
        teacher_name = user_names.get(classroom.teacher_id or "") or DEFAULT_TEACHER_NAME
        comments = tuple(comment_view(comment, user_names) for comment in assignment.comments)
        return AssignmentView(
            id=assignment.assignment_id,
            title=assignment.title,
            description=assignment.description,
            due_date=assignment.due_date or "",
            status=assignment_status(assignment, grade, now),
            assignment_type=assignment.assignment_type,
            classroom_id=classroom.classroom_id,
            classroom_name=classroom.classroom_name,
            classroom_color=classroom.classroom_color,
            subject_name=classroom.subject_name or classroom.classroom_name,
            academy_id=classroom.academy_id,
            academy_name=classroom.academy_name or academy_names.get(classroom.academy_id or ""),
            teacher_name=teacher_name,
            teacher_initials=initials(teacher_name, default="T"),
            comment_count=len(comments),
            comments=comments,
        )
