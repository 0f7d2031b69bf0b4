"""Map bridge exceptions onto HTTP errors with a named ``error`` code."""

from fastapi import HTTPException

from airey.errors import BridgeError, ConflictError, UnknownRequestError, ValidationError

_STATUS_BY_ERROR: dict[type[BridgeError], int] = {
    ConflictError: 409,
    UnknownRequestError: 404,
    ValidationError: 422,
}


def to_http(exc: BridgeError) -> HTTPException:
    status = next((code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)), 400)
    return HTTPException(status_code=status, detail=exc.to_dict())
