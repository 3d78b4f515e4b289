"""Declarative record schemas for bulk data cards.

A card (``GRID``, ``CBAR``...) is a :class:`SchemaVariant`: an ordered list of
:class:`FieldSpec` entries that fixes column position, storage kind, defaults,
repeat masks, list tails and cross references. Several variants can share one
entity type, e.g. ``CROD``/``CBAR``/``CBEAM`` are all ``Beam`` entities.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from nasbulk.errors import SchemaError, UnknownVariant

logger = logging.getLogger(__name__)

Validator = Callable[[Any], Any]


class FieldKind(Enum):
    INTEGER = "i"
    REAL = "r"
    LABEL = "c"
    BLANK = "b"

    @property
    def zero(self) -> Any:
        return {FieldKind.INTEGER: 0, FieldKind.REAL: 0.0}.get(self, "")


@dataclass(frozen=True)
class Reference:
    """Cross-reference declaration: ``target`` is a card name or entity type."""

    target: str
    handle: str


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    default: Any = None
    repeat: int = 1
    is_list: bool = False
    ref: Reference | None = None
    validators: tuple[Validator, ...] = ()
    required: bool = False

    @property
    def masked(self) -> bool:
        return self.repeat > 1

    @property
    def stored(self) -> bool:
        return self.kind is not FieldKind.BLANK

    @property
    def fill(self) -> Any:
        """Value used to preallocate storage."""
        return self.kind.zero if self.default is None else self.default

    @property
    def width(self) -> int:
        """Number of physical tokens consumed (0 for a list tail)."""
        return 0 if self.is_list else self.repeat


def integer(name: str, default: Any = None, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name, FieldKind.INTEGER, default, **kwargs)


def real(name: str, default: Any = None, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name, FieldKind.REAL, default, **kwargs)


def label(name: str, default: Any = None, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name, FieldKind.LABEL, default, **kwargs)


def blank(name: str) -> FieldSpec:
    return FieldSpec(name, FieldKind.BLANK)


@dataclass(frozen=True)
class SchemaVariant:
    name: str
    entity_type: str
    fields: tuple[FieldSpec, ...]
    unique_ids: bool = True
    _by_name: dict[str, FieldSpec] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_name.update({f.name: f for f in self.fields})

    @property
    def id_field(self) -> FieldSpec:
        return self.fields[0]

    @property
    def stored_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.stored)

    @property
    def references(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.ref is not None)

    @property
    def list_field(self) -> FieldSpec | None:
        last = self.fields[-1]
        return last if last.is_list else None

    def spec(self, name: str) -> FieldSpec:
        try:
            return self._by_name[name]
        except KeyError:
            raise SchemaError(f"Card {self.name} has no field '{name}'") from None

    def __contains__(self, name: object) -> bool:
        return name in self._by_name


class SchemaRegistry:
    """Card name -> :class:`SchemaVariant` lookup.

    Registration is only allowed until :meth:`freeze` is called; the importer
    freezes the registry when an import starts.
    """

    def __init__(self) -> None:
        self._variants: dict[str, SchemaVariant] = {}
        self._frozen = False

    def register(
        self,
        entity_type: str,
        variant_name: str,
        fields: Sequence[FieldSpec],
        masks: Mapping[str, int] | None = None,
        lists: Iterable[str] = (),
        unique_ids: bool = True,
    ) -> SchemaVariant:
        if self._frozen:
            raise SchemaError(f"Registry is frozen; cannot register '{variant_name}'")
        key = variant_name.upper()
        if not key or not key.replace("_", "").isalnum():
            raise SchemaError(f"Invalid card name '{variant_name}'")
        if key in self._variants:
            raise SchemaError(
                f"Card '{key}' is already registered for entity "
                f"'{self._variants[key].entity_type}'"
            )
        if not fields:
            raise SchemaError(f"Card '{key}' must declare at least one field")

        names = [f.name for f in fields]
        for name in names:
            if not isinstance(name, str) or not name.isidentifier():
                raise SchemaError(f"Card '{key}': field name {name!r} is not a valid identifier")
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise SchemaError(f"Card '{key}': duplicate field names {', '.join(dupes)}")

        resolved = list(fields)
        for name, count in (masks or {}).items():
            if name not in names:
                raise SchemaError(f"Card '{key}': mask references undeclared field '{name}'")
            idx = names.index(name)
            resolved[idx] = replace(resolved[idx], repeat=count)
        for name in lists:
            if name not in names:
                raise SchemaError(f"Card '{key}': list references undeclared field '{name}'")
            idx = names.index(name)
            resolved[idx] = replace(resolved[idx], is_list=True)

        for spec in resolved:
            if not isinstance(spec.repeat, int) or spec.repeat < 1:
                raise SchemaError(
                    f"Card '{key}': repeat count for '{spec.name}' must be a positive integer"
                )
            if spec.is_list and spec.masked:
                raise SchemaError(f"Card '{key}': list field '{spec.name}' cannot be masked")
        list_positions = [i for i, spec in enumerate(resolved) if spec.is_list]
        if len(list_positions) > 1:
            raise SchemaError(f"Card '{key}': only one list-tail field is allowed")
        if list_positions and list_positions[0] != len(resolved) - 1:
            raise SchemaError(f"Card '{key}': list-tail field must be the last field")

        first = resolved[0]
        if first.kind is not FieldKind.INTEGER or first.masked or first.is_list:
            raise SchemaError(f"Card '{key}': identifier '{first.name}' must be a scalar integer")
        resolved[0] = replace(first, required=True)

        for spec in resolved:
            if spec.ref and spec.ref.target.upper() not in self._variants and not any(
                v.entity_type == spec.ref.target for v in self._variants.values()
            ):
                # targets may be registered later; checked again at resolution time
                logger.debug("Card %s.%s references unregistered %s", key, spec.name, spec.ref.target)

        variant = SchemaVariant(
            name=key, entity_type=entity_type, fields=tuple(resolved), unique_ids=unique_ids
        )
        self._variants[key] = variant
        return variant

    def lookup(self, variant_name: str) -> SchemaVariant:
        try:
            return self._variants[variant_name.upper()]
        except KeyError:
            raise UnknownVariant(variant_name) from None

    def variants(self, entity_type: str | None = None) -> list[SchemaVariant]:
        return [
            v for v in self._variants.values() if entity_type is None or v.entity_type == entity_type
        ]

    def entity_types(self) -> list[str]:
        return sorted({v.entity_type for v in self._variants.values()})

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, variant_name: object) -> bool:
        return isinstance(variant_name, str) and variant_name.upper() in self._variants

    def __iter__(self) -> Iterator[SchemaVariant]:
        return iter(self._variants.values())

    def __len__(self) -> int:
        return len(self._variants)
