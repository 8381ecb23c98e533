"""Common schemas for API responses."""

from datetime import datetime
from typing import Generic, TypeVar, Optional, Any, Dict

from pydantic import BaseModel, Field

T = TypeVar("T")


def model_to_dict(obj: Any) -> Dict[str, Any]:
    """Convert any model object to dict with fallback.

    Handles:
    - Objects with to_dict() method
    - Dicts passed through
    """
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    return {}


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)

