"""Error codes and exceptions for the game API."""
from enum import Enum

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dogshuffle.config import settings


class ErrorCode(str, Enum):
    """Error codes returned by the API."""

    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_WAGER = "INVALID_WAGER"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    ROUND_IN_PROGRESS = "ROUND_IN_PROGRESS"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_WAGER: 400,
    ErrorCode.INSUFFICIENT_FUNDS: 402,
    ErrorCode.ROUND_IN_PROGRESS: 409,
    ErrorCode.INTERNAL_ERROR: 500,
}

# Whether the client can retry (possibly after changing the wager or waiting)
ERROR_RECOVERABLE: dict[ErrorCode, bool] = {
    ErrorCode.INVALID_REQUEST: False,
    ErrorCode.INVALID_WAGER: False,
    ErrorCode.INSUFFICIENT_FUNDS: True,
    ErrorCode.ROUND_IN_PROGRESS: True,
    ErrorCode.INTERNAL_ERROR: True,
}


class ErrorBody(BaseModel):
    """Error body shape."""

    code: str
    message: str
    recoverable: bool


class ErrorResponse(BaseModel):
    """Full error response."""

    protocolVersion: str = settings.protocol_version
    error: ErrorBody


class GameError(Exception):
    """Base game error that maps to an API error response."""

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or f"Error: {code.value}"
        self.status_code = ERROR_HTTP_STATUS[code]
        self.recoverable = ERROR_RECOVERABLE[code]
        super().__init__(self.message)

    def to_response(self) -> JSONResponse:
        """Convert to JSONResponse."""
        return JSONResponse(
            status_code=self.status_code,
            content=ErrorResponse(
                error=ErrorBody(
                    code=self.code.value,
                    message=self.message,
                    recoverable=self.recoverable,
                )
            ).model_dump(),
        )
