"""Exception hierarchy for the bulk data importer.

Fatal conditions are raised; non-fatal ones (unknown cards, unresolved
references) are collected in :mod:`nasbulk.report` instead.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class BulkDataError(Exception):
    """Base exception for every importer error."""


class SchemaError(BulkDataError):
    """Invalid schema definition or registry misuse."""


class UnknownVariant(SchemaError, KeyError):
    """Lookup of a card name that was never registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No schema variant registered for card '{name}'")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class ValidationError(BulkDataError, ValueError):
    """A field value failed its kind check or a declared constraint."""

    def __init__(self, field: str, row: int | None, value: Any, reason: str) -> None:
        self.field = field
        self.row = row
        self.value = value
        self.reason = reason
        where = f"row {row}" if row is not None else "value"
        super().__init__(f"Invalid {where} for field '{field}': {value!r} ({reason})")


class DecodeError(BulkDataError):
    """Malformed input: bad token, broken continuation, unrecognized list entry."""

    def __init__(
        self,
        message: str,
        card: str | None = None,
        source: Path | str | None = None,
        line: int | None = None,
        field: str | None = None,
    ) -> None:
        self.message = message
        self.card = card
        self.source = Path(source) if source is not None else None
        self.line = line
        self.field = field
        super().__init__(self._format())

    def _format(self) -> str:
        parts = []
        if self.source is not None:
            parts.append(f"{self.source}" + (f":{self.line}" if self.line is not None else ""))
        elif self.line is not None:
            parts.append(f"line {self.line}")
        if self.card:
            parts.append(self.card + (f".{self.field}" if self.field else ""))
        prefix = " ".join(parts)
        return f"{prefix}: {self.message}" if prefix else self.message


class InclusionCycleError(DecodeError):
    """An INCLUDE chain leads back to a file that is still being read."""


class DuplicateIdError(DecodeError):
    """Identifier repeated inside one record collection."""


class AmbiguousReference(BulkDataError):
    """More than one collection can satisfy a cross-reference."""

    def __init__(self, card: str, field: str, target: str, candidates: list[str]) -> None:
        self.card = card
        self.field = field
        self.target = target
        self.candidates = candidates
        super().__init__(
            f"Ambiguous match resolving {card}.{field} -> {target}: "
            f"candidates {', '.join(candidates)}"
        )


class BulkFileError(BulkDataError, OSError):
    """Input or INCLUDE file that cannot be opened or read."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Unable to read '{self.path}': {reason}")

    def __str__(self) -> str:
        return str(self.args[0])
