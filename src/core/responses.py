from typing import Any, Dict, Generic, Optional, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel

T = TypeVar('T')


class RequestSuccessData(BaseModel, Generic[T]):
    count: Optional[int] = None
    data: T


class StandardResponse(BaseModel, Generic[T]):
    success: bool
    message: str
    data: RequestSuccessData[T]


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: ErrorDetail


def wrap_response(data: T, message: str = "Petición exitosa", count: Optional[int] = None) -> StandardResponse[T]:
    # En listas el conteo sale del propio resultado
    if count is None and isinstance(data, list):
        count = len(data)

    return StandardResponse(
        success=True,
        message=message,
        data=RequestSuccessData(count=count, data=data)
    )


def error_response(status_code: int, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body = ErrorResponse(message=message, error=ErrorDetail(code=code, message=message, details=details or {}))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
