from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, List, Union

from core.errors import ErrorKind, GameError

LOGGER = logging.getLogger("chip_lobby")

# Registry calls hand back one of these instead of raising, so the transport
# can branch on the outcome without a try block per request type.


@dataclass
class Success:
    game: Dict[str, object]
    data: Dict[str, object] = field(default_factory=dict)
    events: List[Dict[str, object]] = field(default_factory=list)

    @property
    def status(self) -> HTTPStatus:
        return HTTPStatus.OK


@dataclass
class Failure:
    kind: ErrorKind
    code: str
    msg: str

    @property
    def status(self) -> HTTPStatus:
        return self.kind.status

    @classmethod
    def from_error(cls, exc: GameError) -> "Failure":
        return cls(kind=exc.kind, code=exc.code, msg=exc.msg)


Result = Union[Success, Failure]


def returns_result(func: Callable[..., Awaitable[Result]]) -> Callable[..., Awaitable[Result]]:
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Result:
        try:
            return await func(*args, **kwargs)
        except GameError as exc:
            return Failure.from_error(exc)
        except Exception:  # noqa: BLE001
            LOGGER.exception("Unexpected failure in %s", func.__name__)
            return Failure(ErrorKind.INTERNAL, "INTERNAL", "Internal server error")

    return wrapper
