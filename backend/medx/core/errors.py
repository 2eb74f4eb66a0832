from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class MedxError(Exception):
    pass


class PermissionUnavailable(MedxError):
    """Native notifications are not supported or were denied."""


class InvalidMedication(MedxError):
    """A medication record lacks the fields needed to schedule it."""


class ClassificationAmbiguity(MedxError):
    """A medication time could not be parsed as HH:MM."""


class PersistenceFailure(MedxError):
    """The notification log could not be written."""


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Result":
        return cls(ok=False, error=error)

    def describe(self) -> str:
        if self.ok:
            return "ok"
        return f"{type(self.error).__name__}: {self.error}"
