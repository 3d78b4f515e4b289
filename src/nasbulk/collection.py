"""Columnar storage for the rows of one card variant."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Union

import numpy as np

from nasbulk.errors import SchemaError, ValidationError
from nasbulk.schema.registry import FieldKind, FieldSpec, SchemaVariant

logger = logging.getLogger(__name__)

DTYPES = {FieldKind.INTEGER: np.int64, FieldKind.REAL: np.float64, FieldKind.LABEL: object}

Positions = Union[np.ndarray, list[np.ndarray]]


@dataclass
class CrossReference:
    """Resolved binding of one reference field to a target collection.

    ``positions`` has the shape of the referencing field: ``(N,)`` for a scalar,
    ``(N, repeat)`` for a masked field and one array per row for a list field.
    Unresolved entries are ``-1``.
    """

    field: str
    handle: str
    target: RecordCollection
    positions: Positions

    @property
    def resolved(self) -> bool:
        if isinstance(self.positions, np.ndarray):
            return bool((self.positions >= 0).all())
        return all(bool((p >= 0).all()) for p in self.positions)


_INT64 = np.iinfo(np.int64)


def _coerce_scalar(spec: FieldSpec, value: Any) -> Any:
    kind = spec.kind
    if kind is FieldKind.INTEGER:
        if isinstance(value, (bool, np.bool_)):
            raise TypeError("expected an integer, got a boolean")
        if isinstance(value, (int, np.integer)) or (
            isinstance(value, (float, np.floating)) and float(value).is_integer()
        ):
            number = int(value)
            if not _INT64.min <= number <= _INT64.max:
                raise TypeError(f"integer {number} does not fit in 64 bits")
            return number
        raise TypeError(f"expected an integer, got {type(value).__name__}")
    if kind is FieldKind.REAL:
        if isinstance(value, (bool, np.bool_)):
            raise TypeError("expected a real number, got a boolean")
        if isinstance(value, (int, float, np.integer, np.floating)):
            return float(value)
        raise TypeError(f"expected a real number, got {type(value).__name__}")
    if isinstance(value, str):
        return value
    raise TypeError(f"expected text, got {type(value).__name__}")


class RecordCollection:
    """Rows of one :class:`SchemaVariant` stored column by column.

    Columns are allocated once at construction; afterwards only the row count
    can change (:meth:`grow`).
    """

    def __init__(self, variant: SchemaVariant, row_count: int = 0) -> None:
        if row_count < 0:
            raise ValueError("row_count must be >= 0")
        self.variant = variant
        self._size = row_count
        self._columns: dict[str, Any] = {
            spec.name: self._allocate(spec, row_count) for spec in variant.stored_fields
        }
        self._bindings: dict[str, CrossReference] = {}
        self._index: dict[int, int] | None = None

    @staticmethod
    def _allocate(spec: FieldSpec, rows: int) -> Any:
        if spec.is_list:
            return [[] for _ in range(rows)]
        shape = (rows, spec.repeat) if spec.masked else (rows,)
        column = np.empty(shape, dtype=DTYPES[spec.kind])
        column[...] = spec.fill
        return column

    @property
    def name(self) -> str:
        return self.variant.name

    @property
    def entity_type(self) -> str:
        return self.variant.entity_type

    def __len__(self) -> int:
        return self._size

    def __repr__(self) -> str:
        return f"RecordCollection({self.name!r}, rows={self._size})"

    # field access ---------------------------------------------------------

    def _stored_spec(self, field: str) -> FieldSpec:
        spec = self.variant.spec(field)
        if not spec.stored:
            raise SchemaError(f"Card {self.name}: field '{field}' is a blank filler and is not stored")
        return spec

    def _check_row(self, row: int) -> None:
        if not 0 <= row < self._size:
            raise IndexError(f"Row {row} out of range for {self.name} ({self._size} rows)")

    def _validate_item(self, spec: FieldSpec, row: int | None, value: Any) -> Any:
        try:
            coerced = _coerce_scalar(spec, value)
        except TypeError as exc:
            raise ValidationError(spec.name, row, value, str(exc)) from None
        for check in spec.validators:
            try:
                coerced = check(coerced)
            except ValidationError as exc:
                raise ValidationError(spec.name, row, value, exc.reason) from None
        return coerced

    def _validate(self, spec: FieldSpec, row: int, value: Any) -> Any:
        if spec.is_list:
            if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
                raise ValidationError(spec.name, row, value, "expected a sequence of values")
            return [self._validate_item(spec, row, item) for item in value]
        if spec.masked:
            if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
                raise ValidationError(spec.name, row, value, f"expected {spec.repeat} values")
            items = list(value)
            if len(items) != spec.repeat:
                raise ValidationError(
                    spec.name, row, value, f"expected {spec.repeat} values, got {len(items)}"
                )
            return [self._validate_item(spec, row, item) for item in items]
        return self._validate_item(spec, row, value)

    def set_field(self, row: int, field: str, value: Any) -> None:
        """Validate ``value`` and store it; the previous value survives a failure."""
        spec = self._stored_spec(field)
        self._check_row(row)
        checked = self._validate(spec, row, value)
        self._columns[field][row] = checked
        if spec is self.variant.id_field:
            self._index = None

    def get_field(self, row: int, field: str) -> Any:
        spec = self._stored_spec(field)
        self._check_row(row)
        column = self._columns[field]
        if spec.is_list:
            return list(column[row])
        if spec.masked:
            view = column[row].view()
            view.flags.writeable = False
            return view
        value = column[row]
        return value if spec.kind is FieldKind.LABEL else value.item()

    def append_to_list(self, row: int, field: str, value: Any) -> None:
        spec = self._stored_spec(field)
        if not spec.is_list:
            raise SchemaError(f"Card {self.name}: field '{field}' is not a list field")
        self._check_row(row)
        self._columns[field][row].append(self._validate_item(spec, row, value))

    def column(self, name: str) -> Any:
        """Read-only column: a numpy view, or a tuple of tuples for a list field."""
        spec = self._stored_spec(name)
        column = self._columns[name]
        if spec.is_list:
            return tuple(tuple(items) for items in column)
        view = column.view()
        view.flags.writeable = False
        return view

    def ids(self) -> np.ndarray:
        return self.column(self.variant.id_field.name)

    def rows(self) -> Iterator[dict[str, Any]]:
        for row in range(self._size):
            record: dict[str, Any] = {}
            for spec in self.variant.stored_fields:
                value = self.get_field(row, spec.name)
                record[spec.name] = value.tolist() if spec.masked else value
            yield record

    # identifiers ----------------------------------------------------------

    def find_duplicate_ids(self) -> list[int]:
        values, counts = np.unique(self._columns[self.variant.id_field.name], return_counts=True)
        return [int(v) for v in values[counts > 1]]

    def index_of(self, ids: Any) -> np.ndarray:
        """Positions of ``ids`` in this collection (``-1`` where absent)."""
        if self._index is None:
            index: dict[int, int] = {}
            for pos, value in enumerate(self._columns[self.variant.id_field.name].tolist()):
                index.setdefault(value, pos)
            self._index = index
        wanted = np.asarray(ids, dtype=np.int64)
        lookup = self._index
        flat = np.fromiter(
            (lookup.get(v, -1) for v in wanted.ravel().tolist()), dtype=np.int64, count=wanted.size
        )
        return flat.reshape(wanted.shape)

    # growth ---------------------------------------------------------------

    def grow(self, extra_rows: int) -> int:
        """Append ``extra_rows`` default-filled rows and return the first new row."""
        if extra_rows < 0:
            raise ValueError("extra_rows must be >= 0")
        first = self._size
        for spec in self.variant.stored_fields:
            fresh = self._allocate(spec, extra_rows)
            if spec.is_list:
                self._columns[spec.name].extend(fresh)
            else:
                self._columns[spec.name] = np.concatenate([self._columns[spec.name], fresh])
        self._size += extra_rows
        self._index = None
        if self._bindings:
            logger.debug("%s grew by %d rows; dropping stale bindings", self.name, extra_rows)
            self._bindings.clear()
        return first

    @classmethod
    def concatenate(cls, collections: Sequence[RecordCollection]) -> RecordCollection:
        """Merge same-variant collections, keeping their row order."""
        if not collections:
            raise ValueError("concatenate needs at least one collection")
        variant = collections[0].variant
        for other in collections[1:]:
            if other.variant.name != variant.name:
                raise SchemaError(
                    f"Cannot concatenate {other.variant.name} rows onto {variant.name}"
                )
        merged = cls(variant, 0)
        merged._size = sum(len(c) for c in collections)
        for spec in variant.stored_fields:
            if spec.is_list:
                merged._columns[spec.name] = [
                    list(items) for c in collections for items in c._columns[spec.name]
                ]
            else:
                merged._columns[spec.name] = np.concatenate(
                    [c._columns[spec.name] for c in collections]
                )
        return merged

    # bindings -------------------------------------------------------------

    def bind(self, handle: str, reference: CrossReference) -> None:
        self._stored_spec(reference.field)
        self._bindings[handle] = reference

    def reference(self, handle: str) -> CrossReference:
        try:
            return self._bindings[handle]
        except KeyError:
            raise SchemaError(f"Card {self.name} has no binding '{handle}'") from None

    @property
    def bindings(self) -> Mapping[str, CrossReference]:
        return MappingProxyType(self._bindings)
