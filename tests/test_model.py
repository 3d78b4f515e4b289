import pytest

from nasbulk.assembler import resolve_references
from nasbulk.errors import AmbiguousReference, BulkDataError
from nasbulk.model import Model
from nasbulk.report import ImportReport
from nasbulk.schema.registry import Reference, SchemaRegistry, integer, real


def _registry() -> SchemaRegistry:
    registry = SchemaRegistry()
    registry.register("Node", "GRID", [integer("GID"), real("X", 0.0)], masks={"X": 3})
    registry.register("Node", "SPOINT", [integer("ID")])
    registry.register("Link", "LINK", [integer("EID"), integer("G", ref=Reference("Node", "node"))])
    registry.register(
        "Link", "PAIR", [integer("EID"), integer("G", ref=Reference("GRID", "nodes"))], masks={"G": 2}
    )
    registry.register(
        "Link", "GROUP", [integer("SID"), integer("G", ref=Reference("Node", "nodes"))], lists=["G"]
    )
    return registry


def _fill(model: Model, registry: SchemaRegistry, card: str, field: str, values: list) -> None:
    collection, first = model.create_or_extend(card, len(values), registry)
    id_field = collection.variant.id_field.name
    for offset, value in enumerate(values):
        row = first + offset
        collection.set_field(row, id_field, row + 1)
        collection.set_field(row, field, value)


def test_positions_follow_target_rows() -> None:
    registry = _registry()
    model = Model()
    grids, _ = model.create_or_extend("GRID", 2, registry)
    grids.set_field(0, "GID", 20)
    grids.set_field(1, "GID", 10)
    _fill(model, registry, "LINK", "G", [10, 20, 10])

    report = ImportReport()
    resolve_references(model, report)
    binding = model["LINK"].reference("node")
    assert binding.target is grids
    assert binding.positions.tolist() == [1, 0, 1]
    assert binding.resolved
    assert report.unresolved == []


def test_masked_and_list_references() -> None:
    registry = _registry()
    model = Model()
    grids, _ = model.create_or_extend("GRID", 3, registry)
    for row, gid in enumerate([1, 2, 3]):
        grids.set_field(row, "GID", gid)
    _fill(model, registry, "PAIR", "G", [[1, 3], [3, 0]])
    _fill(model, registry, "GROUP", "G", [[2, 3], [1]])

    resolve_references(model, ImportReport())
    assert model["PAIR"].reference("nodes").positions.tolist() == [[0, 2], [2, -1]]
    positions = model["GROUP"].reference("nodes").positions
    assert [p.tolist() for p in positions] == [[1, 2], [0]]


def test_candidates_narrow_by_ids() -> None:
    registry = _registry()
    model = Model()
    _fill(model, registry, "GRID", "X", [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    spoints, _ = model.create_or_extend("SPOINT", 2, registry)
    spoints.set_field(0, "ID", 100)
    spoints.set_field(1, "ID", 101)
    _fill(model, registry, "LINK", "G", [101, 100])

    resolve_references(model, ImportReport())
    binding = model["LINK"].reference("node")
    assert binding.target is spoints
    assert binding.positions.tolist() == [1, 0]


def test_ambiguous_reference_is_fatal() -> None:
    registry = _registry()
    model = Model()
    _fill(model, registry, "GRID", "X", [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    spoints, _ = model.create_or_extend("SPOINT", 1, registry)
    spoints.set_field(0, "ID", 2)
    _fill(model, registry, "LINK", "G", [2])

    with pytest.raises(AmbiguousReference) as info:
        resolve_references(model, ImportReport())
    assert set(info.value.candidates) == {"GRID", "SPOINT"}


def test_unresolved_references_are_reported() -> None:
    registry = _registry()
    model = Model()
    _fill(model, registry, "GRID", "X", [[0.0, 0.0, 0.0]])
    _fill(model, registry, "LINK", "G", [1, 99])

    report = ImportReport()
    resolve_references(model, report)
    assert model["LINK"].reference("node").positions.tolist() == [0, -1]
    (missing,) = report.unresolved
    assert (missing.card, missing.field, missing.target, missing.missing_ids) == (
        "LINK",
        "G",
        "Node",
        [99],
    )


def test_missing_target_collection_leaves_field_unbound() -> None:
    registry = _registry()
    model = Model()
    _fill(model, registry, "LINK", "G", [5, 6])
    report = ImportReport()
    resolve_references(model, report)
    assert "node" not in model["LINK"].bindings
    assert report.unresolved[0].missing_ids == [5, 6]


def test_create_or_extend_and_finalize() -> None:
    registry = _registry()
    model = Model()
    grids, first = model.create_or_extend("grid", 2, registry)
    assert first == 0
    same, first = model.create_or_extend("GRID", 3, registry)
    assert same is grids
    assert first == 2
    assert len(grids) == 5
    assert model.summarise() == ["    GRID -      5 entry/entries"]

    model.finalize()
    assert model.finalized
    with pytest.raises(BulkDataError):
        model.create_or_extend("GRID", 1, registry)


def test_bind_reference_on_demand() -> None:
    registry = _registry()
    model = Model()
    _fill(model, registry, "GRID", "X", [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
    _fill(model, registry, "LINK", "G", [2])
    binding = model.bind_reference("LINK", "G")
    assert binding is not None
    assert binding.positions.tolist() == [1]


def test_all_zero_reference_binds_unresolved_positions() -> None:
    registry = _registry()
    model = Model()
    grids, _ = model.create_or_extend("GRID", 1, registry)
    grids.set_field(0, "GID", 1)
    _fill(model, registry, "PAIR", "G", [[0, 0], [0, 0]])

    report = ImportReport()
    resolve_references(model, report)
    binding = model["PAIR"].reference("nodes")
    assert binding.target is grids
    assert binding.positions.tolist() == [[-1, -1], [-1, -1]]
    assert not binding.resolved
    assert report.unresolved == []
