from dataclasses import dataclass, field
from typing import Callable, List, Optional


@dataclass
class SessionState:
    """The learner currently being viewed.

    A guardian may switch between linked learners; every switch to a different
    subject fires the registered ``on_subject_change`` callbacks (the grade
    cache clear is one) so nothing cached for one learner leaks to another.
    """

    subject_id: Optional[str] = None
    on_subject_change: List[Callable[[], None]] = field(default_factory=list)

    def select_subject(self, subject_id: str) -> bool:
        if subject_id == self.subject_id:
            return False
        previous = self.subject_id
        self.subject_id = subject_id
        if previous is not None:
            for callback in self.on_subject_change:
                callback()
        return True
