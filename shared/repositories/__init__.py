"""Data access layer - repository pattern for database operations."""
from .user_state_repository import UserStateRepository

__all__ = [
    "UserStateRepository"
]
