from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError


def create_response(
    message: str,
    data=None,
    status_code: int = status.HTTP_200_OK,
    status_text: str | None = None
) -> JSONResponse:
    """Return a consistent API response payload and status code."""
    payload_status = status_text or ("success" if status_code < 400 else "error")
    encoded_data = jsonable_encoder(data)
    return JSONResponse(
        status_code=status_code,
        content={
            "message": message,
            "data": encoded_data,
            "status": payload_status,
            "status_code": status_code,
        },
    )


def handle_exception(
    error: Exception,
    fallback_message: str = "Internal server error",
    fallback_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> JSONResponse:
    """Coerce raised errors into the shared response structure."""
    if isinstance(error, HTTPException):
        detail = error.detail if isinstance(error.detail, str) else str(error.detail)
        return create_response(detail, None, error.status_code, status_text="error")

    if isinstance(error, APIError):
        return create_response(error.message or "Backend request failed", None, status.HTTP_502_BAD_GATEWAY)

    if isinstance(error, LookupError):
        return create_response(str(error), None, status.HTTP_404_NOT_FOUND)

    return create_response(fallback_message, None, fallback_status, status_text="error")


def raise_for_result(result, message: str) -> None:
    """Re-raise a failed service result so ``handle_exception`` can map it."""
    if result.ok:
        return
    if isinstance(result.error, Exception):
        raise result.error
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=message)
