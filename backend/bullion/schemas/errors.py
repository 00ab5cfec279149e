# backend/bullion/schemas/errors.py
"""
Pydantic schemas for error responses.

Every error leaving the API has the same shape. Used by the global
exception handlers in main.py.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """
    Standard error response format.

    Example:
        {
            "error": "AssetNotFoundError",
            "message": "Asset 42 not found",
            "details": {"resource_type": "Asset", "resource_id": 42},
            "correlation_id": "3f2b..."
        }
    """

    error: str = Field(
        ...,
        description="Exception class name (e.g., 'SourceUnavailableError')"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )
    details: dict | list | None = Field(
        default=None,
        description="Additional error context (optional)"
    )
    correlation_id: str | None = Field(
        default=None,
        description="Request id, also returned in the X-Correlation-ID header"
    )
