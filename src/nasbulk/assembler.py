"""Build a :class:`Model` from a bulk data file and its includes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from nasbulk.collection import RecordCollection
from nasbulk.config import ImportConfig
from nasbulk.data.reader import read_lines
from nasbulk.data.splitter import LogicalRecord, split_input
from nasbulk.decoder import decode_into
from nasbulk.errors import BulkFileError, DuplicateIdError, InclusionCycleError, ValidationError
from nasbulk.model import Model
from nasbulk.report import ImportReport, UnresolvedReference
from nasbulk.schema.cards import default_registry
from nasbulk.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    model: Model
    report: ImportReport


def import_bulk_data(
    path: Path | str,
    config: ImportConfig | None = None,
    registry: SchemaRegistry | None = None,
) -> ImportResult:
    """Import ``path`` (and everything it includes) into a finalized model."""
    path = Path(path)
    config = config or ImportConfig()
    registry = default_registry() if registry is None else registry
    if not config.accepts(path):
        raise BulkFileError(
            path,
            f"unsupported extension '{path.suffix}'; expected one of "
            f"{', '.join(config.valid_extensions)}",
        )
    registry.freeze()

    model = Model()
    report = ImportReport()
    _import_file(path, model, report, registry, config, stack=[])
    if config.check_duplicate_ids:
        check_duplicate_ids(model)
    resolve_references(model, report)
    model.finalize()

    report.counts = {card: len(c) for card, c in model.collections.items()}
    logger.info(
        "Imported %d entries across %d cards from %d file(s)",
        sum(report.counts.values()),
        len(report.counts),
        len(report.sources),
    )
    for line in model.summarise():
        logger.debug(line)
    return ImportResult(model, report)


def _group_by_card(records: list[LogicalRecord]) -> dict[str, list[LogicalRecord]]:
    grouped: dict[str, list[LogicalRecord]] = {}
    for record in records:
        grouped.setdefault(record.card, []).append(record)
    return grouped


def _import_file(
    path: Path,
    model: Model,
    report: ImportReport,
    registry: SchemaRegistry,
    config: ImportConfig,
    stack: list[Path],
) -> None:
    key = path.resolve()
    if key in stack:
        chain = " -> ".join(p.name for p in [*stack, key])
        raise InclusionCycleError(f"INCLUDE cycle {chain}", source=stack[-1])
    stack.append(key)

    lines = read_lines(path, config.encoding)
    split = split_input(lines, source=path, base_dir=path.parent, config=config)
    model.sources.append(path)
    report.sources.append(path)
    model.executive_control.extend(split.executive_control)
    model.case_control.extend(split.case_control)
    for kind, values in split.parameters.items():
        model.parameters.setdefault(kind, {}).update(values)

    for card, records in _group_by_card(split.records).items():
        if card not in registry:
            logger.debug("Skipping %d %s entries in %s", len(records), card, path)
            report.skip(card, len(records), path)
            continue
        collection = RecordCollection(registry.lookup(card), len(records))
        for row, record in enumerate(records):
            try:
                decode_into(collection, row, record)
            except ValidationError:
                logger.error("Invalid %s entry at %s:%d", card, path, record.line)
                raise
        model.merge(collection)

    for include in split.includes:
        logger.debug("Following INCLUDE %s from %s", include, path)
        _import_file(include, model, report, registry, config, stack)
    stack.pop()


def check_duplicate_ids(model: Model) -> None:
    for card, collection in model.collections.items():
        if not collection.variant.unique_ids:
            continue
        dupes = collection.find_duplicate_ids()
        if dupes:
            shown = ", ".join(str(d) for d in dupes[:10])
            raise DuplicateIdError(
                f"duplicate {collection.variant.id_field.name} values: {shown}"
                + (" ..." if len(dupes) > 10 else ""),
                card=card,
            )


def resolve_references(model: Model, report: ImportReport | None = None) -> None:
    """Bind every reference field in the model to its target positions."""
    for collection in model.collections.values():
        for spec in collection.variant.references:
            _, missing = model.link(collection, spec)
            if not missing:
                continue
            logger.warning(
                "%s.%s: %d id(s) not found in %s",
                collection.name,
                spec.name,
                len(missing),
                spec.ref.target,
            )
            if report is not None:
                report.unresolved.append(
                    UnresolvedReference(collection.name, spec.name, spec.ref.target, missing)
                )
