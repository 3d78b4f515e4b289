"""Standard card library.

Field order follows the Nastran Quick Reference Guide layout of each card
(blank columns included) so that positional decoding lines up.
"""

from __future__ import annotations

from nasbulk.schema.registry import (
    FieldSpec,
    Reference,
    SchemaRegistry,
    blank,
    integer,
    label,
    real,
)
from nasbulk.schema.validators import dof_code, non_negative, one_of

OFFSET_TOKENS = ("GGG", "BGG", "GGO", "BGO", "GOG", "BOG", "GOO", "BOO")

ID = (non_negative,)


def _id(name: str) -> FieldSpec:
    return integer(name, validators=ID)


def _ref(name: str, target: str, handle: str, default: int | None = 0) -> FieldSpec:
    return integer(name, default, ref=Reference(target, handle), validators=ID)


def _dof(name: str) -> FieldSpec:
    return label(name, "", validators=(dof_code,))


def register_nodes(registry: SchemaRegistry) -> None:
    registry.register(
        "Node",
        "GRID",
        [
            _id("GID"),
            _ref("CP", "CoordSystem", "input_coord"),
            real("X", 0.0),
            _ref("CD", "CoordSystem", "output_coord"),
            _dof("PS"),
            integer("SEID", 0, validators=ID),
        ],
        masks={"X": 3},
    )
    registry.register("Node", "SPOINT", [_id("ID")])


def register_coordinates(registry: SchemaRegistry) -> None:
    registry.register(
        "CoordSystem",
        "CORD2R",
        [
            _id("CID"),
            _ref("RID", "CoordSystem", "reference_coord"),
            real("A", 0.0),
            real("B", 0.0),
            real("C", 0.0),
        ],
        masks={"A": 3, "B": 3, "C": 3},
    )


def register_beams(registry: SchemaRegistry) -> None:
    registry.register(
        "Beam",
        "CROD",
        [
            _id("EID"),
            _ref("PID", "BeamProp", "prop", default=None),
            _ref("GA_GB", "Node", "nodes", default=None),
        ],
        masks={"GA_GB": 2},
    )
    registry.register(
        "Beam",
        "CBAR",
        [
            _id("EID"),
            _ref("PID", "BeamProp", "prop", default=None),
            _ref("GA_GB", "Node", "nodes", default=None),
            real("X"),
            label("OFFT", "GGG", validators=(one_of(*OFFSET_TOKENS),)),
            _dof("PA"),
            _dof("PB"),
            real("WA", 0.0),
            real("WB", 0.0),
        ],
        masks={"GA_GB": 2, "X": 3, "WA": 3, "WB": 3},
    )
    registry.register(
        "Beam",
        "CBEAM",
        [
            _id("EID"),
            _ref("PID", "BeamProp", "prop", default=None),
            _ref("GA_GB", "Node", "nodes", default=None),
            real("X"),
            label("OFFT", "GGG", validators=(one_of(*OFFSET_TOKENS),)),
            _dof("PA"),
            _dof("PB"),
            real("WA", 0.0),
            real("WB", 0.0),
            integer("SA_SB", 0, validators=ID),
        ],
        masks={"GA_GB": 2, "X": 3, "WA": 3, "WB": 3, "SA_SB": 2},
    )


def register_properties(registry: SchemaRegistry) -> None:
    registry.register(
        "BeamProp",
        "PBAR",
        [
            _id("PID"),
            _ref("MID", "Material", "material", default=None),
            real("A", 0.0),
            real("I1", 0.0),
            real("I2", 0.0),
            real("J", 0.0),
            real("NSM", 0.0),
            blank("unused"),
            real("C", 0.0),
            real("D", 0.0),
            real("E", 0.0),
            real("F", 0.0),
            real("K", 0.0),
            real("I12", 0.0),
        ],
        masks={"C": 2, "D": 2, "E": 2, "F": 2, "K": 2},
    )
    registry.register(
        "BeamProp",
        "PROD",
        [
            _id("PID"),
            _ref("MID", "Material", "material", default=None),
            real("A", 0.0),
            real("J", 0.0),
            real("C", 0.0),
            real("NSM", 0.0),
        ],
    )
    registry.register(
        "Property",
        "PSHELL",
        [
            _id("PID"),
            _ref("MID1", "Material", "material"),
            real("T", 0.0),
            _ref("MID2", "Material", "bending_material"),
            real("BK", 1.0),
            _ref("MID3", "Material", "shear_material"),
            real("TS", 0.833333),
            real("NSM", 0.0),
            real("Z1", 0.0),
            real("Z2", 0.0),
            _ref("MID4", "Material", "coupling_material"),
        ],
    )


def register_materials(registry: SchemaRegistry) -> None:
    registry.register(
        "Material",
        "MAT1",
        [_id("MID")]
        + [real(name, 0.0) for name in ("E", "G", "NU", "RHO", "A", "TREF", "GE", "ST", "SC", "SS")]
        + [integer("MCSID", 0, validators=ID)],
    )


def register_shells(registry: SchemaRegistry) -> None:
    registry.register(
        "Shell",
        "CQUAD4",
        [
            _id("EID"),
            _ref("PID", "Property", "prop", default=None),
            _ref("G", "Node", "nodes", default=None),
            real("THETA", 0.0),
            real("ZOFFS", 0.0),
            blank("unused"),
            integer("TFLAG", 0),
            real("T", 0.0),
        ],
        masks={"G": 4, "T": 4},
    )
    registry.register(
        "Shell",
        "CTRIA3",
        [
            _id("EID"),
            _ref("PID", "Property", "prop", default=None),
            _ref("G", "Node", "nodes", default=None),
            real("THETA", 0.0),
            real("ZOFFS", 0.0),
            blank("unused1"),
            blank("unused2"),
            integer("TFLAG", 0),
            real("T", 0.0),
        ],
        masks={"G": 3, "T": 3},
    )


def register_constraints(registry: SchemaRegistry) -> None:
    registry.register(
        "Constraint",
        "SPC",
        [
            _id("SID"),
            _ref("G1", "Node", "node_a", default=None),
            _dof("C1"),
            real("D1", 0.0),
            _ref("G2", "Node", "node_b"),
            _dof("C2"),
            real("D2", 0.0),
        ],
        unique_ids=False,
    )
    registry.register(
        "Constraint",
        "SPC1",
        [_id("SID"), _dof("C"), _ref("G", "Node", "nodes", default=None)],
        lists=["G"],
        unique_ids=False,
    )


def register_masses(registry: SchemaRegistry) -> None:
    registry.register(
        "Mass",
        "CONM2",
        [
            _id("EID"),
            _ref("G", "Node", "node", default=None),
            _ref("CID", "CoordSystem", "coord"),
            real("M", 0.0),
            real("X", 0.0),
            blank("unused"),
        ]
        + [real(name, 0.0) for name in ("I11", "I21", "I22", "I31", "I32", "I33")],
        masks={"X": 3},
    )


def register_aero(registry: SchemaRegistry) -> None:
    registry.register(
        "AeroPanel",
        "CAERO1",
        [
            _id("EID"),
            integer("PID", validators=ID),
            _ref("CP", "CoordSystem", "coord"),
            integer("NSPAN", 0),
            integer("NCHORD", 0),
            _ref("LSPAN", "AEFACT", "span_divisions"),
            _ref("LCHORD", "AEFACT", "chord_divisions"),
            integer("IGID", 0),
            real("X1"),
            real("X12", 0.0),
            real("X4"),
            real("X43", 0.0),
        ],
        masks={"X1": 3, "X4": 3},
    )
    registry.register(
        "AeroelasticSpline",
        "SPLINE1",
        [
            _id("EID"),
            _ref("CAERO", "AeroPanel", "aero_panel", default=None),
            integer("BOX1", validators=ID),
            integer("BOX2", validators=ID),
            _ref("SETG", "SET1", "structural_nodes", default=None),
            real("DZ", 0.0),
            label("METHOD", "IPS", validators=(one_of("IPS", "TPS", "FPS"),)),
            label("USAGE", "BOTH", validators=(one_of("FORCE", "DISP", "BOTH"),)),
            integer("NELEM", 10),
            integer("MELEM", 10),
        ],
    )


def register_lists(registry: SchemaRegistry) -> None:
    registry.register("List", "AEFACT", [_id("SID"), real("D")], lists=["D"])
    registry.register(
        "List", "SET1", [_id("SID"), _ref("G", "Node", "nodes", default=None)], lists=["G"]
    )


def default_registry() -> SchemaRegistry:
    """Build a fresh registry holding every card in this module."""
    registry = SchemaRegistry()
    for register in (
        register_nodes,
        register_coordinates,
        register_beams,
        register_properties,
        register_materials,
        register_shells,
        register_constraints,
        register_masses,
        register_aero,
        register_lists,
    ):
        register(registry)
    return registry
