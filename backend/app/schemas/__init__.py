"""Pydantic schemas for API requests and responses."""

from app.schemas.common import ApiResponse
from app.schemas.note import Note, NoteCreate, NoteUpdate, SearchResult
from app.schemas.settings import SettingsResponse, SettingsUpdate

__all__ = [
    "ApiResponse",
    "Note",
    "NoteCreate",
    "NoteUpdate",
    "SearchResult",
    "SettingsResponse",
    "SettingsUpdate",
]
