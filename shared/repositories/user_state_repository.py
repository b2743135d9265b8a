"""User state data access layer."""
import logging
from datetime import datetime
from sqlalchemy.orm import Session as DBSession

from shared.models.entities import UserStateRecord
from shared.models.domain import UserState

logger = logging.getLogger(__name__)


class UserStateRepository:
    """Repository for per-user study state documents."""

    def __init__(self, db: DBSession):
        self.db = db

    def load(self, user_id: str) -> UserState:
        """
        Load a user's state, creating an empty one on first access.

        Args:
            user_id: User identifier

        Returns:
            UserState domain model
        """
        # populate_existing: another session may have saved since this one last read
        record = (
            self.db.query(UserStateRecord)
            .populate_existing()
            .filter(UserStateRecord.user_id == user_id)
            .first()
        )
        if record is None:
            logger.info(f"Creating default study state for user {user_id}")
            return UserState.empty(user_id)
        return UserState.model_validate_json(record.state_json)

    def save(self, user_id: str, state: UserState) -> None:
        """
        Persist a user's state atomically.

        Args:
            user_id: User identifier
            state: Updated UserState domain model

        Raises:
            Exception: Re-raises any database error after rolling back
        """
        try:
            record = self.db.query(UserStateRecord).filter(UserStateRecord.user_id == user_id).first()
            if record is None:
                record = UserStateRecord(
                    user_id=user_id,
                    state_json=state.model_dump_json(),
                    version=1,
                    created_at=datetime.utcnow(),
                    updated_at=datetime.utcnow(),
                )
                self.db.add(record)
            else:
                record.state_json = state.model_dump_json()
                record.version = (record.version or 0) + 1
                record.updated_at = datetime.utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
