"""Study services: the per-user state store and tutor chat."""
from .study_state_store import StudyStateStore
from .tutor_service import TutorService

__all__ = [
    "StudyStateStore",
    "TutorService"
]
