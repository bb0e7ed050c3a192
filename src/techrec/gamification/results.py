"""Ok/Err result values returned by the event manager."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Generic, TypeVar, Union

from techrec.gamification.errors import GamificationError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    is_ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    error: GamificationError
    is_ok: ClassVar[bool] = False

    @property
    def message(self) -> str:
        return self.error.message


Result = Union[Ok[T], Err]
