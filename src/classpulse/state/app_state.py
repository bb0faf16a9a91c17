from dataclasses import dataclass, field

from classpulse.services.pipeline import StudentDataPipeline
from classpulse.state.session_state import SessionState


@dataclass
class AppState:
    pipeline: StudentDataPipeline
    session: SessionState = field(default_factory=SessionState)

    def __post_init__(self) -> None:
        self.session.on_subject_change.append(self.pipeline.clear_cache)
