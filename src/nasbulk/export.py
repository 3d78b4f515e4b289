"""Analytics-friendly outputs: Arrow IPC per collection and a JSON import report."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import orjson
import pyarrow as pa

from nasbulk.collection import RecordCollection
from nasbulk.model import Model
from nasbulk.report import ImportReport, report_to_dict
from nasbulk.schema.registry import FieldKind

ARROW_TYPES = {FieldKind.INTEGER: pa.int64(), FieldKind.REAL: pa.float64(), FieldKind.LABEL: pa.string()}


def _fixed(values: np.ndarray, kind: FieldKind) -> pa.Array:
    width = values.shape[1]
    flat = pa.array(values.ravel().tolist(), type=ARROW_TYPES[kind])
    return pa.FixedSizeListArray.from_arrays(flat, width)


def collection_to_table(collection: RecordCollection) -> pa.Table:
    columns: dict[str, pa.Array] = {}
    for spec in collection.variant.stored_fields:
        data = collection.column(spec.name)
        arrow_type = ARROW_TYPES[spec.kind]
        if spec.is_list:
            columns[spec.name] = pa.array([list(items) for items in data], type=pa.list_(arrow_type))
        elif spec.masked:
            columns[spec.name] = _fixed(data, spec.kind)
        else:
            columns[spec.name] = pa.array(data.tolist(), type=arrow_type)
    for handle, binding in collection.bindings.items():
        positions = binding.positions
        if isinstance(positions, list):
            columns[f"{handle}_index"] = pa.array(
                [p.tolist() for p in positions], type=pa.list_(pa.int64())
            )
        elif positions.ndim == 2:
            columns[f"{handle}_index"] = _fixed(positions, FieldKind.INTEGER)
        else:
            columns[f"{handle}_index"] = pa.array(positions, type=pa.int64())
    return pa.table(columns)


def model_to_arrow(model: Model, out_dir: Path) -> list[Path]:
    """Write one ``<CARD>.arrow`` IPC file per collection; returns the paths written."""
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for card, collection in model.collections.items():
        table = collection_to_table(collection)
        path = out_dir / f"{card}.arrow"
        with pa.OSFile(str(path), "wb") as sink:
            with pa.ipc.new_file(sink, table.schema) as writer:
                writer.write_table(table)
        written.append(path)
    return written


def report_to_json(report: ImportReport, model: Model | None = None) -> bytes:
    payload = report_to_dict(report)
    if model is not None:
        payload["parameters"] = model.parameters
        payload["summary"] = model.summarise()
    return orjson.dumps(payload, option=orjson.OPT_INDENT_2)


def write_report(path: Path, report: ImportReport, model: Model | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(report_to_json(report, model))
