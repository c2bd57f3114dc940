"""
Common Schemas
Uniform success/error envelope used by every API response.
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope: data on success, a readable error otherwise."""
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None


def failure(message: str) -> dict:
    return {"success": False, "error": message}
