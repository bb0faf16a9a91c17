from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Header, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from classpulse.config.settings import Settings, settings
from classpulse.core.chart import ChartPeriod, overall_average, project
from classpulse.domain.models import AggregationOutcome
from classpulse.logging_utils import configure_logging, create_logger
from classpulse.services.appwrite_service import AppwriteDataSource, AppwriteServiceError
from classpulse.services.comment_service import CommentServiceError
from classpulse.services.data_source import DataSource
from classpulse.services.pipeline import StudentDataPipeline
from classpulse.state.app_state import AppState


logger = create_logger(__name__)


class CommentPayload(BaseModel):
    content: str


def _required_uid(x_user_id: Optional[str]) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing x-user-id header")
    return x_user_id


def _outcome_body(outcome: AggregationOutcome) -> Dict[str, Any]:
    return {
        "items": [asdict(record) for record in outcome.records],
        "ok": outcome.ok,
        "error": asdict(outcome.error) if outcome.error else None,
    }


def create_app(data_source: Optional[DataSource] = None, config: Settings = settings) -> FastAPI:
    """Build the API. Without ``data_source`` the Appwrite adapter is created on first use."""
    configure_logging(config.log_level, config.log_format)

    app = FastAPI(title="ClassPulse API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.app_state = None

    def current_state() -> AppState:
        if app.state.app_state is None:
            try:
                source = data_source if data_source is not None else AppwriteDataSource.from_settings(config)
            except AppwriteServiceError as exc:
                logger.error("Data source is not configured", error=str(exc))
                raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
            app.state.app_state = AppState(pipeline=StudentDataPipeline.from_settings(source, config))
        return app.state.app_state

    def for_student(student_id: str, x_user_id: Optional[str]) -> StudentDataPipeline:
        _required_uid(x_user_id)
        state = current_state()
        state.session.select_subject(student_id)
        return state.pipeline

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/students/{student_id}/assignments")
    async def list_assignments(
        student_id: str,
        academy_id: List[str] = Query(default=[]),
        x_user_id: Optional[str] = Header(default=None),
    ) -> Dict:
        pipeline = for_student(student_id, x_user_id)
        return _outcome_body(await pipeline.assignments_outcome(student_id, academy_id))

    @app.get("/students/{student_id}/grades")
    async def list_grades(
        student_id: str,
        academy_id: List[str] = Query(default=[]),
        x_user_id: Optional[str] = Header(default=None),
    ) -> Dict:
        pipeline = for_student(student_id, x_user_id)
        return _outcome_body(await pipeline.grades_outcome(student_id, academy_id))

    @app.get("/students/{student_id}/grades/chart")
    async def grade_chart(
        student_id: str,
        period: ChartPeriod = ChartPeriod.ALL,
        classroom_id: Optional[str] = None,
        academy_id: List[str] = Query(default=[]),
        x_user_id: Optional[str] = Header(default=None),
    ) -> Dict:
        pipeline = for_student(student_id, x_user_id)
        outcome = await pipeline.grades_outcome(student_id, academy_id)
        return {
            "period": period.value,
            "points": [asdict(point) for point in project(outcome.records, period, classroom_id)],
            "overall_average": overall_average(outcome.records, classroom_id),
            "ok": outcome.ok,
            "error": asdict(outcome.error) if outcome.error else None,
        }

    @app.get("/students/{student_id}/classrooms")
    async def list_classrooms(
        student_id: str,
        academy_id: List[str] = Query(default=[]),
        x_user_id: Optional[str] = Header(default=None),
    ) -> Dict:
        pipeline = for_student(student_id, x_user_id)
        classrooms = await pipeline.enrolled_classrooms(student_id, academy_id)
        return {"items": [asdict(item) for item in classrooms], "ok": True, "error": None}

    @app.get("/students/{student_id}/overview")
    async def overview(
        student_id: str,
        academy_id: List[str] = Query(default=[]),
        x_user_id: Optional[str] = Header(default=None),
    ) -> Dict:
        pipeline = for_student(student_id, x_user_id)
        assignments, grades = await pipeline.load_overview(student_id, academy_id)
        return {"assignments": _outcome_body(assignments), "grades": _outcome_body(grades)}

    @app.post("/assignments/{assignment_id}/comments")
    async def add_comment(
        assignment_id: str,
        payload: CommentPayload,
        x_user_id: Optional[str] = Header(default=None),
    ) -> Dict:
        uid = _required_uid(x_user_id)
        if not payload.content.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment content is required.")
        pipeline = current_state().pipeline
        try:
            comment = await pipeline.comments.add_comment(assignment_id, uid, payload.content)
        except CommentServiceError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
        return asdict(comment)

    @app.post("/cache/clear")
    def clear_cache() -> Dict[str, str]:
        current_state().pipeline.clear_cache()
        return {"status": "cleared"}

    return app


app = create_app()
