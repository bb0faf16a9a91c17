"""Classroom -> session -> assignment -> grade resolution shared by both views.

Each of the first three steps tries the backend's aggregation function first
and falls back to plain table queries, reshaping both into the same record
types. Grade rows go through the short-lived cache and batched queries.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from classpulse.core.batching import BatchOutcome, fetch_batched
from classpulse.core.cache import ShortLivedCache, fingerprint
from classpulse.core.comments import normalize_comments
from classpulse.core.dates import parse_iso
from classpulse.core.fallback import Resolution, try_in_order
from classpulse.domain.models import (
    ASSIGNMENT_TYPES,
    GRADE_STATUSES,
    DEFAULT_CLASSROOM_COLOR,
    DEFAULT_CLASSROOM_NAME,
    AssignmentRecord,
    EnrollmentRecord,
    GradeRecord,
    SessionRecord,
)
from classpulse.logging_utils import create_logger
from classpulse.services.data_source import (
    DataSource,
    DataSourceError,
    Eq,
    Filter,
    In,
    IsNull,
    Order,
    QueryResult,
    Row,
)

logger = create_logger("classpulse.resolution")

_DATE_FLOOR = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class GradeFetch:
    records: List[GradeRecord] = field(default_factory=list)
    from_cache: bool = False
    unavailable: bool = False


def _unwrap(value: Any) -> Dict[str, Any]:
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _assignment_type(value: Any) -> str:
    text = str(value or "").strip()
    for known in ASSIGNMENT_TYPES:
        if text.lower() == known.lower():
            return known
    return "Homework"


def _grade_status(value: Any) -> str:
    status = str(value or "").strip().lower()
    return status if status in GRADE_STATUSES else "not_submitted"


def _enrollment_from_classroom(classroom: Row, academy_name: Optional[str] = None) -> Optional[EnrollmentRecord]:
    classroom_id = classroom.get("id") or classroom.get("classroom_id")
    if not classroom_id:
        return None
    return EnrollmentRecord(
        classroom_id=str(classroom_id),
        classroom_name=classroom.get("name") or classroom.get("classroom_name") or DEFAULT_CLASSROOM_NAME,
        classroom_color=classroom.get("color") or classroom.get("classroom_color") or DEFAULT_CLASSROOM_COLOR,
        subject_name=_text(classroom.get("subject") or classroom.get("subject_name")),
        academy_id=_text(classroom.get("academy_id")),
        academy_name=academy_name or _text(classroom.get("academy_name")),
        teacher_id=_text(classroom.get("teacher_id")),
    )


def enrollment_from_function_row(row: Row) -> Optional[EnrollmentRecord]:
    nested = _unwrap(row.get("classrooms") or row.get("classroom"))
    if nested:
        merged = {**nested, "id": nested.get("id") or row.get("classroom_id")}
        return _enrollment_from_classroom(merged, academy_name=_text(row.get("academy_name")))
    return _enrollment_from_classroom(
        {
            "id": row.get("classroom_id"),
            "name": row.get("classroom_name"),
            "color": row.get("classroom_color"),
            "subject": row.get("subject_name") or row.get("subject"),
            "academy_id": row.get("academy_id"),
            "academy_name": row.get("academy_name"),
            "teacher_id": row.get("teacher_id"),
        }
    )


def session_from_row(row: Row) -> Optional[SessionRecord]:
    session_id = row.get("session_id") or row.get("id")
    classroom_id = row.get("classroom_id")
    if not session_id or not classroom_id:
        return None
    return SessionRecord(session_id=str(session_id), classroom_id=str(classroom_id), date=_text(row.get("date")))


def assignment_from_row(row: Row, comments: Any = None) -> Optional[AssignmentRecord]:
    if row.get("deleted_at"):
        return None
    assignment_id = row.get("assignment_id") or row.get("id")
    session_id = row.get("session_id") or row.get("classroom_session_id")
    if not assignment_id or not session_id:
        return None
    raw_comments = comments if comments is not None else row.get("comments")
    return AssignmentRecord(
        assignment_id=str(assignment_id),
        title=row.get("title") or "",
        description=row.get("description") or "",
        due_date=_text(row.get("due_date")),
        assignment_type=_assignment_type(row.get("assignment_type") or row.get("type")),
        session_id=str(session_id),
        comments=tuple(normalize_comments(raw_comments)),
    )


def grade_from_row(row: Row) -> Optional[GradeRecord]:
    grade_id = row.get("id") or row.get("grade_id")
    assignment_id = row.get("assignment_id")
    if not grade_id or not assignment_id:
        return None
    return GradeRecord(
        grade_id=str(grade_id),
        assignment_id=str(assignment_id),
        student_id=str(row.get("student_id") or ""),
        score=_to_float(row.get("score")),
        status=_grade_status(row.get("status")),
        submitted_date=_text(row.get("submitted_date")),
        updated_date=_text(row.get("updated_at") or row.get("updated_date")),
        feedback=_text(row.get("feedback")),
    )


def _function_rows(result: QueryResult, name: str) -> List[Row]:
    rows = result.rows()
    if not all(isinstance(row, dict) for row in rows):
        raise DataSourceError(f"{name} returned rows that are not objects")
    return rows


def _unique(values: Iterable[Optional[str]]) -> List[str]:
    return list(dict.fromkeys(str(value) for value in values if value))


def _by_due_date(record: AssignmentRecord) -> tuple:
    due = parse_iso(record.due_date)
    return (due is None, due or _DATE_FLOOR)


def _latest_first(record: GradeRecord) -> tuple:
    updated = parse_iso(record.updated_date)
    if updated is None:
        return (1, 0.0)
    return (0, -updated.timestamp())


class AcademicResolver:
    def __init__(
        self,
        source: DataSource,
        cache: ShortLivedCache,
        *,
        batch_size: int = 20,
        max_retries: int = 2,
        retry_delay: float = 0.5,
    ) -> None:
        self.source = source
        self.cache = cache
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def _batched(
        self,
        table: str,
        column: str,
        keys: Sequence[str],
        *,
        filters: Sequence[Filter] = (),
        ordering: Sequence[Order] = (),
    ) -> BatchOutcome:
        async def query(batch: List[str]) -> QueryResult:
            return await self.source.run_table_query(
                table,
                filters=[*filters, In(column, tuple(batch))],
                ordering=ordering,
            )

        return await fetch_batched(keys, self.batch_size, query, self.max_retries, retry_delay=self.retry_delay)

    async def _batched_rows(self, table: str, column: str, keys: Sequence[str], **kwargs: Any) -> List[Row]:
        outcome = await self._batched(table, column, keys, **kwargs)
        if outcome.all_failed:
            raise DataSourceError(f"Every {table} batch failed")
        return outcome.rows

    async def enrollments(self, subject_id: str, academy_ids: Sequence[str]) -> Resolution:
        academies = set(academy_ids)

        async def resolve_enrollments_function() -> List[EnrollmentRecord]:
            result = await self.source.run_aggregation_function(
                "resolve-enrollments",
                {"student_id": subject_id, "academy_ids": list(academy_ids)},
            )
            records = [enrollment_from_function_row(row) for row in _function_rows(result, "resolve-enrollments")]
            return _dedupe_enrollments(
                record for record in records if record and (record.academy_id is None or record.academy_id in academies)
            )

        async def query_enrollment_tables() -> List[EnrollmentRecord]:
            links = await self.source.run_table_query("classroom_students", filters=[Eq("student_id", subject_id)])
            classroom_ids = _unique(row.get("classroom_id") for row in links.rows())
            if not classroom_ids:
                return []
            rows = await self._batched_rows(
                "classrooms",
                "id",
                classroom_ids,
                filters=[In("academy_id", tuple(academy_ids))],
            )
            return _dedupe_enrollments(_enrollment_from_classroom(row) for row in rows)

        return await try_in_order([resolve_enrollments_function, query_enrollment_tables], step="enrollments")

    async def sessions(self, classroom_ids: Sequence[str]) -> Resolution:
        wanted = set(classroom_ids)

        async def resolve_sessions_function() -> List[SessionRecord]:
            result = await self.source.run_aggregation_function(
                "resolve-sessions", {"classroom_ids": list(classroom_ids)}
            )
            records = [session_from_row(row) for row in _function_rows(result, "resolve-sessions")]
            return [record for record in records if record and record.classroom_id in wanted]

        async def query_session_table() -> List[SessionRecord]:
            rows = await self._batched_rows(
                "classroom_sessions", "classroom_id", classroom_ids, ordering=[Order("date")]
            )
            return [record for record in map(session_from_row, rows) if record]

        return await try_in_order([resolve_sessions_function, query_session_table], step="sessions")

    async def assignments(self, session_ids: Sequence[str]) -> Resolution:
        wanted = set(session_ids)

        async def resolve_assignments_function() -> List[AssignmentRecord]:
            result = await self.source.run_aggregation_function(
                "resolve-assignments-for-sessions", {"session_ids": list(session_ids)}
            )
            records = [assignment_from_row(row) for row in _function_rows(result, "resolve-assignments-for-sessions")]
            return [record for record in records if record and record.session_id in wanted]

        async def query_assignment_tables() -> List[AssignmentRecord]:
            rows = await self._batched_rows(
                "assignments",
                "classroom_session_id",
                session_ids,
                filters=[IsNull("deleted_at")],
                ordering=[Order("due_date")],
            )
            assignment_ids = _unique(row.get("id") for row in rows)
            comments = await self._comments_by_assignment(assignment_ids)
            records = [assignment_from_row(row, comments.get(str(row.get("id")), [])) for row in rows]
            # Batches are each ordered by due date; restore one global order.
            return sorted((record for record in records if record), key=_by_due_date)

        return await try_in_order([resolve_assignments_function, query_assignment_tables], step="assignments")

    async def _comments_by_assignment(self, assignment_ids: Sequence[str]) -> Dict[str, List[Row]]:
        if not assignment_ids:
            return {}
        outcome = await self._batched(
            "assignment_comments", "assignment_id", assignment_ids, ordering=[Order("created_at")]
        )
        grouped: Dict[str, List[Row]] = {}
        for row in outcome.rows:
            grouped.setdefault(str(row.get("assignment_id")), []).append(row)
        return grouped

    async def grades(self, subject_id: str, assignment_ids: Sequence[str]) -> GradeFetch:
        if not assignment_ids:
            return GradeFetch()

        key = fingerprint(subject_id, assignment_ids)
        entry = self.cache.get(key)
        if entry is not None:
            logger.debug("Grade cache hit", subject_id=subject_id, assignments=len(assignment_ids))
            return GradeFetch(records=list(entry.data), from_cache=True)

        outcome = await self._batched(
            "assignment_grades",
            "assignment_id",
            assignment_ids,
            filters=[Eq("student_id", subject_id)],
            ordering=[Order("updated_at", ascending=False)],
        )
        records = sorted((record for record in map(grade_from_row, outcome.rows) if record), key=_latest_first)
        if records:
            self.cache.set(key, tuple(records))
        if outcome.all_failed:
            logger.warning("No grades available", subject_id=subject_id, batches=outcome.batches)
        return GradeFetch(records=records, unavailable=outcome.all_failed)


def _dedupe_enrollments(records: Iterable[Optional[EnrollmentRecord]]) -> List[EnrollmentRecord]:
    seen: Dict[str, EnrollmentRecord] = {}
    for record in records:
        if record is not None and record.classroom_id not in seen:
            seen[record.classroom_id] = record
    return list(seen.values())
