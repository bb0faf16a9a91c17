from datetime import datetime
from typing import Callable, Optional

from classpulse.core.dates import to_iso, utc_now
from classpulse.domain.models import CommentView
from classpulse.services.assignment_service import comment_view
from classpulse.services.data_source import DataSource
from classpulse.services.name_service import NameDirectory


class CommentServiceError(Exception):
    pass


class CommentService:
    def __init__(
        self,
        source: DataSource,
        names: NameDirectory,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.names = names
        self.clock = clock

    async def add_comment(self, assignment_id: str, author_id: str, content: str) -> CommentView:
        text = content.strip()
        if not text:
            raise CommentServiceError("Comment content is required.")

        result = await self.source.insert_row(
            "assignment_comments",
            {
                "assignment_id": assignment_id,
                "user_id": author_id,
                "content": text,
                "created_at": to_iso(self.clock()),
            },
        )
        if not result.ok:
            raise CommentServiceError(result.error.message) from result.error

        rows = result.rows()
        row: Optional[dict] = rows[0] if rows else None
        if row is None:
            raise CommentServiceError("Comment was not stored.")
        names = await self.names.user_names([author_id])
        return comment_view(row, names)
