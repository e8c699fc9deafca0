"""
Shared pieces of the payload validators.

Validators take an untrusted mapping and return a ``Result``: either the
normalized value or every field violation found in the payload. They do
no I/O. Field-level coercion lives in the ``coerce_*`` helpers below and
is plugged into the pydantic input models as ``mode="before"`` validators.
"""

import datetime
import re
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError, ValidationInfo
from pydantic_core import PydanticCustomError

from exceptions import ValidationFailed

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_INT_RE = re.compile(r"^[+-]?\d+$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class Violation:
    field: str
    message: str


@dataclass(frozen=True)
class Result(Generic[T]):
    value: Optional[T] = None
    violations: Tuple[Violation, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.violations

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, violations: Iterable[Violation]) -> "Result[T]":
        violations = tuple(violations)
        if not violations:
            raise ValueError("a failed result needs at least one violation")
        return cls(violations=violations)

    def unwrap(self) -> T:
        """
        Return the value, or raise ValidationFailed with every violation.
        """
        if self.violations:
            raise ValidationFailed(self.violations)
        return self.value


def wire_name(info: ValidationInfo, model: Type[BaseModel]) -> str:
    field = model.model_fields.get(info.field_name)
    if field is not None and field.alias:
        return field.alias
    return info.field_name


def _fail(kind: str, message: str) -> PydanticCustomError:
    return PydanticCustomError(kind, message)


def coerce_int(value: Any, field: str, minimum: Optional[int] = None) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise _fail("int_type", f"{field} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise _fail("int_type", f"{field} must be an integer")
        value = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if not _INT_RE.match(text):
            raise _fail("int_parsing", f"{field} must be an integer")
        value = int(text)
    elif not isinstance(value, int):
        raise _fail("int_type", f"{field} must be an integer")
    if minimum is not None and value < minimum:
        raise _fail("int_range", f"{field} must be greater than or equal to {minimum}")
    return value


def coerce_bool(value: Any, field: str) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value == "true":
            return True
        if value == "false":
            return False
    raise _fail("bool_parsing", f"{field} must be true or false")


def coerce_date(value: Any, field: str) -> Optional[datetime.date]:
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        raise _fail("date_type", f"{field} must be a date (YYYY-MM-DD), not a date-time")
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        if value == "":
            return None
        if _DATE_RE.match(value):
            try:
                return datetime.date.fromisoformat(value)
            except ValueError:
                raise _fail("date_value", f"{field} is not a valid calendar date")
    raise _fail("date_parsing", f"{field} must be a date in YYYY-MM-DD format")


def coerce_choice(value: Any, field: str, allowed: Sequence[str]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or value not in allowed:
        raise _fail("enum", f"{field} must be one of: {', '.join(allowed)}")
    return value


def coerce_text(value: Any, field: str, required: bool = False) -> Optional[str]:
    if value is None:
        if required:
            raise _fail("missing", f"{field} is required")
        return None
    if not isinstance(value, str):
        raise _fail("string_type", f"{field} must be a string")
    if required:
        value = value.strip()
        if not value:
            raise _fail("string_too_short", f"{field} must not be empty")
    return value


def require_present(value: Any, field: str) -> Any:
    """
    Reject an explicit null for a field that may be omitted but not cleared.
    """
    if value is None:
        raise _fail("none_forbidden", f"{field} cannot be null")
    return value


def violations_from(exc: ValidationError, model: Type[BaseModel]) -> Tuple[Violation, ...]:
    aliases = {name: (field.alias or name) for name, field in model.model_fields.items()}
    violations = []
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = aliases.get(loc[0], str(loc[0])) if loc else "body"
        if error.get("type") == "missing":
            message = f"{field} is required"
        else:
            message = error.get("msg", "Invalid value")
        violations.append(Violation(field, message))
    return tuple(violations)


def parse_model(model: Type[M], payload: Any) -> Result[M]:
    """
    Validate ``payload`` against ``model``, collecting every field violation.
    """
    if not isinstance(payload, Mapping):
        return Result.failure([Violation("body", "body must be a JSON object")])
    try:
        return Result.success(model.model_validate(dict(payload)))
    except ValidationError as exc:
        return Result.failure(violations_from(exc, model))
