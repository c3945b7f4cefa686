from __future__ import annotations

from enum import Enum
from http import HTTPStatus


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INVALID_STATE = "INVALID_STATE"
    INTERNAL = "INTERNAL"

    @property
    def status(self) -> HTTPStatus:
        return _STATUS_BY_KIND[self]


_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: HTTPStatus.BAD_REQUEST,
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.FORBIDDEN: HTTPStatus.FORBIDDEN,
    ErrorKind.INVALID_STATE: HTTPStatus.BAD_REQUEST,
    ErrorKind.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
}


class GameError(Exception):
    """Rule or lookup failure raised before any state is touched."""

    def __init__(self, code: str, msg: str, kind: ErrorKind = ErrorKind.INVALID_STATE) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg
        self.kind = kind
