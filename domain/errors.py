from __future__ import annotations


class ChessServiceError(Exception):
    """
    Base class for every failure the service reports to a caller.

    `code` is a stable machine-readable identifier and `http_status` the
    status the web interface answers with. Interfaces render these into
    their own format; nothing here knows about HTTP or Telegram.
    """

    code = "error"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationError(ChessServiceError):
    code = "validation_error"
    http_status = 400


class Conflict(ChessServiceError):
    code = "conflict"
    http_status = 409


class NotFound(ChessServiceError):
    code = "not_found"
    http_status = 404


class InvalidMove(ChessServiceError):
    code = "invalid_move"
    http_status = 400


class Unauthorized(ChessServiceError):
    code = "unauthorized"
    http_status = 401


class StoreFailure(ChessServiceError):
    code = "store_failure"
    http_status = 503


def ensure_text(value: object, field: str) -> str:
    """
    Return `value` as a string, treating None as empty.

    Raises `ValidationError` for anything else, so malformed request
    bodies never reach string methods or the store.
    """

    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string.")
    return value
