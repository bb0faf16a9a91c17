from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    appwrite_endpoint: str = os.getenv("APPWRITE_ENDPOINT", "")
    appwrite_project_id: str = os.getenv("APPWRITE_PROJECT_ID", "")
    appwrite_api_key: str = os.getenv("APPWRITE_API_KEY") or os.getenv("APPWRITE_FUNCTION_API_KEY", "")
    appwrite_database_id: str = os.getenv("APPWRITE_DATABASE_ID", "")

    classroom_students_collection_id: str = os.getenv("APPWRITE_CLASSROOM_STUDENTS_COLLECTION_ID", "classroom_students")
    classrooms_collection_id: str = os.getenv("APPWRITE_CLASSROOMS_COLLECTION_ID", "classrooms")
    sessions_collection_id: str = os.getenv("APPWRITE_SESSIONS_COLLECTION_ID", "classroom_sessions")
    assignments_collection_id: str = os.getenv("APPWRITE_ASSIGNMENTS_COLLECTION_ID", "assignments")
    comments_collection_id: str = os.getenv("APPWRITE_COMMENTS_COLLECTION_ID", "assignment_comments")
    grades_collection_id: str = os.getenv("APPWRITE_GRADES_COLLECTION_ID", "assignment_grades")
    users_collection_id: str = os.getenv("APPWRITE_USERS_COLLECTION_ID", "users")
    academies_collection_id: str = os.getenv("APPWRITE_ACADEMIES_COLLECTION_ID", "academies")

    resolve_enrollments_function_id: str = os.getenv("APPWRITE_RESOLVE_ENROLLMENTS_FUNCTION_ID", "resolve-enrollments")
    resolve_sessions_function_id: str = os.getenv("APPWRITE_RESOLVE_SESSIONS_FUNCTION_ID", "resolve-sessions")
    resolve_assignments_function_id: str = os.getenv(
        "APPWRITE_RESOLVE_ASSIGNMENTS_FUNCTION_ID", "resolve-assignments-for-sessions"
    )

    batch_size: int = _int_env("BATCH_SIZE", 20)
    batch_max_retries: int = _int_env("BATCH_MAX_RETRIES", 2)
    batch_retry_delay_ms: int = _int_env("BATCH_RETRY_DELAY_MS", 500)
    grade_cache_ttl_ms: int = _int_env("GRADE_CACHE_TTL_MS", 60_000)
    query_page_size: int = _int_env("QUERY_PAGE_SIZE", 500)

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "console")

    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )

    @property
    def collections(self) -> dict[str, str]:
        """Logical table name -> Appwrite collection id."""
        return {
            "classroom_students": self.classroom_students_collection_id,
            "classrooms": self.classrooms_collection_id,
            "classroom_sessions": self.sessions_collection_id,
            "assignments": self.assignments_collection_id,
            "assignment_comments": self.comments_collection_id,
            "assignment_grades": self.grades_collection_id,
            "users": self.users_collection_id,
            "academies": self.academies_collection_id,
        }

    @property
    def functions(self) -> dict[str, str]:
        """Aggregation function name -> Appwrite function id."""
        return {
            "resolve-enrollments": self.resolve_enrollments_function_id,
            "resolve-sessions": self.resolve_sessions_function_id,
            "resolve-assignments-for-sessions": self.resolve_assignments_function_id,
        }


settings = Settings()
