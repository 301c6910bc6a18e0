from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from sqlalchemy.orm import Session

from evidence_engine.core.errors import EngineError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: EngineError

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err]


def returns_result(fn: Callable[..., T]) -> Callable[..., "Result[T]"]:
    """
    Run an engine operation inside a SAVEPOINT on ``self.db``.

    Rule violations (EngineError) roll the savepoint back and come back as Err,
    so a failed operation never leaves partial writes behind. Anything else is
    a system fault and propagates.
    """

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        db: Session = self.db
        try:
            with db.begin_nested():
                value = fn(self, *args, **kwargs)
        except EngineError as e:
            logger.info(
                "operation rejected",
                extra={"operation": fn.__name__, "code": e.code, "reason": e.message},
            )
            return Err(e)
        return Ok(value)

    return wrapper
