"""Response envelope models.

Consistent response format for all API endpoints.

WHY RESPONSE ENVELOPES:
- Consistent structure across all endpoints
- Easy to distinguish success from error responses
- Type-safe response building in endpoints
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources.

    All success responses use {"data": ...} envelope.

    Usage:
        @router.post("/onboarding/{user_id}/start")
        async def start(user_id: str) -> DataResponse[RenderedView]:
            view = await flow.begin(user_id)
            return DataResponse(data=view)
    """

    data: T


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "CODE_EXPIRED").
        message: Human-readable error message shown to the member.
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope.

    All errors use {"error": {...}} envelope.

    Usage in exception handlers:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message)
            ).model_dump(),
        )
    """

    error: ErrorDetail
