from typing import Dict, List, Mapping, Sequence

from classpulse.domain.models import (
    DEFAULT_ASSIGNMENT_TITLE,
    DEFAULT_SUBJECT_NAME,
    DEFAULT_TEACHER_NAME,
    MAX_POINTS,
    AggregationError,
    AggregationOutcome,
    AssignmentRecord,
    EnrollmentRecord,
    GradeRecord,
    GradeView,
)
from classpulse.logging_utils import create_logger
from classpulse.services.name_service import NameDirectory
from classpulse.services.resolution import AcademicResolver

logger = create_logger("classpulse.grades")


def grade_view(
    grade: GradeRecord,
    assignment: AssignmentRecord,
    classroom: EnrollmentRecord,
    teacher_names: Mapping[str, str],
) -> GradeView:
    return GradeView(
        id=grade.grade_id,
        assignment_id=assignment.assignment_id,
        assignment_title=assignment.title or DEFAULT_ASSIGNMENT_TITLE,
        assignment_type=assignment.assignment_type,
        subject=classroom.subject_name or classroom.classroom_name or DEFAULT_SUBJECT_NAME,
        grade=grade.score if grade.score is not None else "--",
        score=grade.score,
        max_points=MAX_POINTS,
        graded_date=grade.updated_date or grade.submitted_date,
        teacher_name=teacher_names.get(classroom.teacher_id or "") or DEFAULT_TEACHER_NAME,
        classroom_id=classroom.classroom_id,
        classroom_name=classroom.classroom_name,
        classroom_color=classroom.classroom_color,
        status=grade.status or "not_submitted",
        due_date=assignment.due_date or "",
        submitted_date=grade.submitted_date,
        teacher_comment=grade.feedback,
        comment_count=len(assignment.comments),
    )


class GradeAggregator:
    """Builds the grade list for one subject, most recently updated first."""

    def __init__(self, resolver: AcademicResolver, names: NameDirectory) -> None:
        self.resolver = resolver
        self.names = names

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
        session_classrooms = {record.session_id: record.classroom_id for record in sessions.records}

        assignments = await self.resolver.assignments(list(session_classrooms))
        if not assignments.records:
            return AggregationOutcome.unresolved("assignments", assignments.failed)
        assignment_map: Dict[str, AssignmentRecord] = {
            record.assignment_id: record for record in assignments.records
        }

        grades = await self.resolver.grades(subject_id, list(assignment_map))
        if grades.unavailable:
            return AggregationOutcome(error=AggregationError(step="grades", message="No grades available"))

        teacher_names = await self.names.user_names(record.teacher_id for record in classrooms.values())

        views: List[GradeView] = []
        seen = set()
        dropped = 0
        for grade in grades.records:
            if grade.assignment_id in seen:
                continue
            assignment = assignment_map.get(grade.assignment_id)
            classroom_id = session_classrooms.get(assignment.session_id) if assignment else None
            classroom = classrooms.get(classroom_id) if classroom_id else None
            if assignment is None or classroom is None:
                dropped += 1
                continue
            seen.add(grade.assignment_id)
            views.append(grade_view(grade, assignment, classroom, teacher_names))

        if dropped:
            logger.warning(
                "Dropped grades with unresolved assignment, session or classroom",
                subject_id=subject_id,
                dropped=dropped,
                kept=len(views),
            )
        return AggregationOutcome(records=views)
