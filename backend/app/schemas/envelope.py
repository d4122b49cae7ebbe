"""Uniform response envelope shared by every endpoint"""

from typing import Any, Dict, Generic, Optional, TypeVar
from pydantic import BaseModel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """Successful response: ``{success: true, data, message?}``"""
    success: bool = True
    data: Optional[DataT] = None
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Failed response: ``{success: false, error, message}``"""
    success: bool = False
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None
