"""Turn logical records into typed field values.

Fixed-format lines are cut into 8-character slots (16 for large-field ``*``
lines) after the name field; free-field lines are split on commas. Every line
but the last of a record is padded to a full line of fields so that field
positions stay aligned across continuations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from nasbulk.errors import DecodeError
from nasbulk.schema.registry import FieldKind, FieldSpec, SchemaVariant

if TYPE_CHECKING:
    from nasbulk.collection import RecordCollection
    from nasbulk.data.splitter import LogicalRecord

logger = logging.getLogger(__name__)

SMALL_WIDTH = 8
LARGE_WIDTH = 16
DATA_COLUMNS = 72
LIST_END = "ENDT"


def repair_exponent(token: str) -> str:
    """Normalise Nastran's short exponent forms: ``3.2-5`` -> ``3.2E-5``, ``1.0D3`` -> ``1.0E3``."""
    text = token.strip().upper().replace("D", "E")
    if "E" in text:
        return text
    for idx in range(len(text) - 1, 0, -1):
        if text[idx] in "+-":
            return f"{text[:idx]}E{text[idx:]}"
    return text


def parse_real(token: str) -> float | None:
    try:
        return float(repair_exponent(token))
    except ValueError:
        return None


def parse_integer(token: str) -> int | None:
    text = token.strip()
    try:
        return int(text)
    except ValueError:
        pass
    value = parse_real(text)
    if value is not None and value.is_integer():
        return int(value)
    return None


def parse_token(token: str) -> int | float | str:
    """Best-effort scalar: integer, then real, else the trimmed text."""
    text = token.strip()
    try:
        return int(text)
    except ValueError:
        pass
    value = parse_real(text)
    return text if value is None else value


def _lead(line: str) -> str:
    return line.split(",", 1)[0].strip() if "," in line else line[:SMALL_WIDTH].strip()


def _split_line(line: str, wide: bool) -> list[str]:
    if "," in line:
        return [t.strip() for t in line.split(",")[1:]]
    width = LARGE_WIDTH if wide else SMALL_WIDTH
    body = line[SMALL_WIDTH:DATA_COLUMNS]
    return [body[i : i + width].strip() for i in range(0, len(body), width)]


def tokenize(record: LogicalRecord) -> list[str]:
    tokens: list[str] = []
    wide = record.wide
    last = len(record.lines) - 1
    for idx, line in enumerate(record.lines):
        lead = _lead(line)
        if lead.startswith("*") or lead.endswith("*"):
            wide = True
        elif lead:
            wide = False
        fields = _split_line(line, wide)
        if idx != last:
            per_line = 4 if wide else 8
            fields += [""] * (per_line - len(fields))
        tokens.extend(fields)
    return tokens


def _error(message: str, spec: FieldSpec | None, record: LogicalRecord | None) -> DecodeError:
    if record is None:
        return DecodeError(message, field=spec.name if spec else None)
    return DecodeError(
        message,
        card=record.card,
        source=record.source,
        line=record.line,
        field=spec.name if spec else None,
    )


def coerce(token: str, spec: FieldSpec, record: LogicalRecord | None = None) -> Any:
    text = token.strip()
    if spec.kind is FieldKind.BLANK:
        return None
    if not text:
        if spec.required:
            raise _error("required field is blank", spec, record)
        return spec.fill
    if spec.kind is FieldKind.LABEL:
        return text
    value = parse_integer(text) if spec.kind is FieldKind.INTEGER else parse_real(text)
    if value is None:
        if spec.required:
            raise _error(f"cannot read {text!r} as {spec.kind.name.lower()}", spec, record)
        logger.debug("Unreadable %s token %r; using default", spec.name, text)
        return spec.fill
    return value


def expand_list(
    tokens: list[str], spec: FieldSpec, record: LogicalRecord | None = None
) -> list[Any]:
    """Decode a list tail: drop blanks and ``ENDT``, expand ``a THRU b [BY n]``."""
    items = [t.strip() for t in tokens if t.strip() and t.strip().upper() != LIST_END]
    if spec.kind is FieldKind.LABEL:
        return items
    parse = parse_integer if spec.kind is FieldKind.INTEGER else parse_real
    values: list[Any] = []
    idx = 0
    while idx < len(items):
        token = items[idx]
        if token.upper() == "THRU":
            if spec.kind is not FieldKind.INTEGER:
                raise _error("THRU ranges are only valid in integer lists", spec, record)
            if not values or idx + 1 >= len(items):
                raise _error("THRU needs a start and an end value", spec, record)
            end = parse_integer(items[idx + 1])
            if end is None:
                raise _error(f"unrecognized list entry {items[idx + 1]!r}", spec, record)
            idx += 2
            step = 1
            if idx < len(items) and items[idx].upper() == "BY":
                step = parse_integer(items[idx + 1]) if idx + 1 < len(items) else None
                if not step or step < 0:
                    raise _error("BY needs a positive integer step", spec, record)
                idx += 2
            start = values[-1]
            if end < start:
                raise _error(f"THRU range {start} -> {end} runs backwards", spec, record)
            values.extend(range(start + step, end + 1, step))
            continue
        value = parse(token)
        if value is None:
            raise _error(f"unrecognized list entry {token!r}", spec, record)
        values.append(value)
        idx += 1
    return values


def decode_record(record: LogicalRecord, variant: SchemaVariant) -> dict[str, Any]:
    tokens = tokenize(record)
    values: dict[str, Any] = {}
    pos = 0
    for spec in variant.fields:
        if spec.is_list:
            values[spec.name] = expand_list(tokens[pos:], spec, record)
            pos = len(tokens)
            break
        chunk = tokens[pos : pos + spec.repeat]
        pos += spec.repeat
        if not spec.stored:
            continue
        chunk += [""] * (spec.repeat - len(chunk))
        decoded = [coerce(token, spec, record) for token in chunk]
        values[spec.name] = decoded if spec.masked else decoded[0]
    extra = [t for t in tokens[pos:] if t]
    if extra:
        logger.debug(
            "%s at %s:%s: ignoring %d extra fields",
            record.card,
            record.source,
            record.line,
            len(extra),
        )
    return values


def decode_into(collection: RecordCollection, row: int, record: LogicalRecord) -> None:
    for name, value in decode_record(record, collection.variant).items():
        collection.set_field(row, name, value)
