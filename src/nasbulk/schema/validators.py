"""Field-level validators.

Each validator takes an already kind-coerced value and returns it (possibly
normalized) or raises :class:`ValidationError`. The ``field`` and ``row`` of
the raised error are filled in by the record collection.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Any

from nasbulk.errors import ValidationError

DOF_DIGITS = set("123456")


def _fail(value: Any, reason: str) -> ValidationError:
    return ValidationError(field="", row=None, value=value, reason=reason)


def non_negative(value: Any) -> Any:
    if value < 0:
        raise _fail(value, "must be a non-negative integer")
    return value


def positive(value: Any) -> Any:
    if value <= 0:
        raise _fail(value, "must be positive")
    return value


def finite(value: Any) -> Any:
    if not math.isfinite(value):
        raise _fail(value, "must be finite")
    return value


def dof_code(value: Any) -> Any:
    """Degree-of-freedom code: any non-repeating combination of 1..6."""
    text = str(value).strip()
    if not text or text == "0":
        return text
    if len(text) > 6:
        raise _fail(value, "a DOF code has at most 6 digits")
    if not set(text) <= DOF_DIGITS:
        raise _fail(value, "a DOF code may only use the digits 1-6")
    if len(set(text)) != len(text):
        raise _fail(value, "a DOF code may not repeat a digit")
    return text


def max_length(limit: int) -> Callable[[Any], Any]:
    def check(value: Any) -> Any:
        if len(str(value)) > limit:
            raise _fail(value, f"must have at most {limit} characters")
        return value

    check.__name__ = f"max_length_{limit}"
    return check


def one_of(*tokens: str) -> Callable[[Any], Any]:
    allowed = {t.upper() for t in tokens}

    def check(value: Any) -> Any:
        text = str(value).upper()
        if text not in allowed:
            raise _fail(value, f"expected one of {', '.join(sorted(allowed))}")
        return text

    check.__name__ = "one_of"
    return check
