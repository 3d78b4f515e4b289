"""The assembled bulk data model."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import numpy as np

from nasbulk.collection import CrossReference, RecordCollection
from nasbulk.errors import AmbiguousReference, BulkDataError, SchemaError
from nasbulk.schema.registry import FieldSpec, SchemaRegistry

logger = logging.getLogger(__name__)


def _reference_ids(collection: RecordCollection, spec: FieldSpec) -> np.ndarray:
    column = collection.column(spec.name)
    if spec.is_list:
        flat = [value for items in column for value in items]
        values = np.asarray(flat, dtype=np.int64)
    else:
        values = np.asarray(column, dtype=np.int64).ravel()
    return np.unique(values[values != 0])


class Model:
    """Card name -> :class:`RecordCollection`, in first-encounter order.

    The assembler populates the model and finalizes it after index resolution;
    a finalized model only accepts new bindings, never new rows.
    """

    def __init__(self) -> None:
        self.collections: dict[str, RecordCollection] = {}
        self.parameters: dict[str, dict[str, Any]] = {}
        self.executive_control: list[str] = []
        self.case_control: list[str] = []
        self.sources: list[Path] = []
        self._finalized = False

    def __getitem__(self, card: str) -> RecordCollection:
        try:
            return self.collections[card.upper()]
        except KeyError:
            raise KeyError(f"Model has no '{card}' entries") from None

    def __contains__(self, card: object) -> bool:
        return isinstance(card, str) and card.upper() in self.collections

    def __iter__(self) -> Iterator[str]:
        return iter(self.collections)

    def __len__(self) -> int:
        return len(self.collections)

    def of_type(self, entity_type: str) -> list[RecordCollection]:
        return [c for c in self.collections.values() if c.entity_type == entity_type]

    @property
    def finalized(self) -> bool:
        return self._finalized

    def finalize(self) -> None:
        self._finalized = True

    def _check_open(self) -> None:
        if self._finalized:
            raise BulkDataError("Model is finalized; no further rows can be added")

    def merge(self, collection: RecordCollection) -> RecordCollection:
        """Add ``collection``, appending its rows when the card is already present."""
        self._check_open()
        existing = self.collections.get(collection.name)
        if existing is not None:
            collection = RecordCollection.concatenate([existing, collection])
        self.collections[collection.name] = collection
        return collection

    def create_or_extend(
        self, card: str, row_count: int, registry: SchemaRegistry
    ) -> tuple[RecordCollection, int]:
        """Return a collection with ``row_count`` fresh rows and the first new row."""
        self._check_open()
        variant = registry.lookup(card)
        existing = self.collections.get(variant.name)
        if existing is None:
            collection = RecordCollection(variant, row_count)
            self.collections[variant.name] = collection
            return collection, 0
        return existing, existing.grow(row_count)

    def candidates(self, target: str) -> list[RecordCollection]:
        exact = self.collections.get(target.upper())
        if exact is not None:
            return [exact]
        return self.of_type(target)

    def link(
        self, collection: RecordCollection, spec: FieldSpec, target: str | None = None
    ) -> tuple[CrossReference | None, list[int]]:
        """Bind one reference field; returns the binding and the IDs it could not find."""
        if spec.ref is None and target is None:
            raise SchemaError(f"Card {collection.name}: field '{spec.name}' declares no reference")
        target = target or spec.ref.target
        handle = spec.ref.handle if spec.ref else spec.name.lower()
        wanted = _reference_ids(collection, spec)
        found = self.candidates(target)
        if wanted.size == 0 and len(found) != 1:
            return None, []
        if len(found) > 1:
            found = [c for c in found if np.isin(wanted, c.ids()).any()]
        if len(found) > 1:
            raise AmbiguousReference(collection.name, spec.name, target, [c.name for c in found])
        if not found:
            return None, [int(v) for v in wanted]

        owner = found[0]
        column = collection.column(spec.name)
        if spec.is_list:
            positions: Any = [owner.index_of(np.asarray(items, dtype=np.int64)) for items in column]
            for raw, pos in zip(column, positions):
                pos[np.asarray(raw, dtype=np.int64) == 0] = -1
        else:
            positions = owner.index_of(column)
            positions[np.asarray(column) == 0] = -1
        binding = CrossReference(spec.name, handle, owner, positions)
        collection.bind(handle, binding)
        missing = np.setdiff1d(wanted, owner.ids())
        logger.debug("Bound %s.%s -> %s", collection.name, spec.name, owner.name)
        return binding, [int(v) for v in missing]

    def bind_reference(
        self, card: str, field: str, target: str | None = None
    ) -> CrossReference | None:
        collection = self[card]
        return self.link(collection, collection.variant.spec(field), target)[0]

    def summarise(self) -> list[str]:
        return [f"{card:>8s} - {len(c):6d} entry/entries" for card, c in self.collections.items()]
