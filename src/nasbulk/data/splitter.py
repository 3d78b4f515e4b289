"""Split raw input lines into sections, parameters, includes and logical records."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from nasbulk.config import ImportConfig
from nasbulk.decoder import DATA_COLUMNS, SMALL_WIDTH, parse_real, parse_token
from nasbulk.errors import DecodeError

logger = logging.getLogger(__name__)

PARAMETER_CARDS = ("PARAM", "MDLPRM")


@dataclass
class LogicalRecord:
    """One card: its physical lines (tags removed) and where they came from."""

    card: str
    lines: list[str]
    line_numbers: list[int]
    source: Path | None = None
    wide: bool = False

    @property
    def line(self) -> int:
        return self.line_numbers[0]


@dataclass
class SplitResult:
    records: list[LogicalRecord] = field(default_factory=list)
    parameters: dict[str, dict[str, Any]] = field(default_factory=dict)
    includes: list[Path] = field(default_factory=list)
    executive_control: list[str] = field(default_factory=list)
    case_control: list[str] = field(default_factory=list)


@dataclass
class _Line:
    number: int
    text: str
    lead: str
    tag: str
    free: bool


def _strip_comment(text: str) -> str:
    return text.split("$", 1)[0].rstrip()


def _leading_field(text: str) -> str:
    if "," in text:
        return text.split(",", 1)[0].strip()
    return text[:SMALL_WIDTH].strip()


def _keyword(text: str) -> str:
    return _leading_field(text).upper().rstrip("*")


def _sections(lines: list[tuple[int, str]]) -> tuple[list[str], list[str], list[tuple[int, str]]]:
    upper = [text.strip().upper() for _, text in lines]
    begin = next((i for i, t in enumerate(upper) if t.startswith("BEGIN BULK")), None)
    if begin is None:
        logger.debug("No BEGIN BULK found; treating the whole input as bulk data")
        bulk = lines
        executive: list[str] = []
        case: list[str] = []
    else:
        cend = next((i for i, t in enumerate(upper[:begin]) if t.startswith("CEND")), None)
        head = [text for _, text in lines[:begin]]
        if cend is None:
            executive, case = [], head
        else:
            executive, case = head[:cend], head[cend + 1 :]
        bulk = lines[begin + 1 :]
    for idx, (_, text) in enumerate(bulk):
        if text.strip().upper().startswith("ENDDATA"):
            bulk = bulk[:idx]
            break
    return executive, case, bulk


def _parameter(text: str) -> tuple[str, str, Any]:
    parts = text.split(",") if "," in text else text.split()
    keyword = parts[0].strip().upper().rstrip("*")
    name = parts[1].strip().upper() if len(parts) > 1 else ""
    value = parse_token(parts[2]) if len(parts) > 2 else ""
    return keyword, name, value


def _resolve_include(text: str, base_dir: Path, config: ImportConfig) -> Path:
    path = Path(config.expand_symbol(text))
    if path.is_absolute():
        return path
    candidates = [base_dir / path] + [Path(d) / path for d in config.include_dirs]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def _include_target(chunks: list[str]) -> str:
    joined = "".join(chunk.strip() for chunk in chunks)
    body = joined[len("INCLUDE") :].strip()
    return body.replace("'", "").replace('"', "").strip()


def _tag_line(number: int, text: str) -> _Line:
    lead = _leading_field(text)
    if "," in text:
        tokens = text.split(",")
        wide = "*" in lead
        tag = ""
        if tokens[-1].strip()[:1] in ("+", "*") and len(tokens) >= (6 if wide else 10):
            tag = tokens[-1].strip()
            text = ",".join(tokens[:-1])
        return _Line(number, text, lead, tag, True)
    tag = text[DATA_COLUMNS : DATA_COLUMNS + SMALL_WIDTH].strip()
    return _Line(number, text[:DATA_COLUMNS], lead, tag, False)


def _is_continuation(line: _Line, tags: set[str]) -> bool:
    lead = line.lead
    if not lead or lead[0] in "*+" or lead in tags:
        return True
    return line.free and parse_real(lead) is not None


def _group(lines: list[_Line], source: Path | None) -> list[LogicalRecord]:
    tags = {line.tag for line in lines if line.tag}
    candidate = [_is_continuation(line, tags) for line in lines]
    by_lead: dict[str, list[int]] = {}
    owners: dict[str, list[int]] = {}
    for idx, line in enumerate(lines):
        if line.lead in tags:
            by_lead.setdefault(line.lead, []).append(idx)
        if line.tag:
            owners.setdefault(line.tag, []).append(idx)
    consumed = [False] * len(lines)
    records: list[LogicalRecord] = []

    def claimed(idx: int) -> bool:
        # a pending tagged line whose own next line does not carry the tag
        lead = lines[idx].lead
        return any(
            not consumed[o] and (o + 1 == len(lines) or lines[o + 1].lead != lead)
            for o in owners.get(lead, ())
        )

    for start, first in enumerate(lines):
        if consumed[start] or candidate[start]:
            continue
        consumed[start] = True
        chain = [start]
        current = start
        while True:
            tag = lines[current].tag
            nxt = current + 1
            if tag:
                if nxt < len(lines) and not consumed[nxt] and lines[nxt].lead == tag:
                    current = nxt
                else:
                    matches = [i for i in by_lead.get(tag, ()) if not consumed[i]]
                    if len(matches) != 1:
                        problem = "not found" if not matches else "is not unique"
                        raise DecodeError(
                            f"continuation '{tag}' {problem}",
                            card=_keyword(first.text),
                            source=source,
                            line=lines[current].number,
                        )
                    current = matches[0]
            elif (
                nxt < len(lines)
                and not consumed[nxt]
                and candidate[nxt]
                and not claimed(nxt)
            ):
                current = nxt
            else:
                break
            consumed[current] = True
            chain.append(current)

        name = _leading_field(first.text).upper()
        records.append(
            LogicalRecord(
                card=name.rstrip("*"),
                lines=[lines[i].text for i in chain],
                line_numbers=[lines[i].number for i in chain],
                source=source,
                wide=name.endswith("*"),
            )
        )

    orphans = [line for line, used in zip(lines, consumed) if not used]
    if orphans:
        raise DecodeError(
            f"continuation line '{orphans[0].lead}' does not belong to any card",
            source=source,
            line=orphans[0].number,
        )
    return records


def split_input(
    lines: Sequence[str],
    source: Path | None = None,
    base_dir: Path | None = None,
    config: ImportConfig | None = None,
) -> SplitResult:
    config = config or ImportConfig()
    if base_dir is None:
        base_dir = source.parent if source is not None else Path()
    cleaned = [(n, _strip_comment(text)) for n, text in enumerate(lines, start=1)]
    cleaned = [(n, text) for n, text in cleaned if text.strip()]

    executive, case, bulk = _sections(cleaned)
    result = SplitResult(executive_control=executive, case_control=case)

    data: list[_Line] = []
    idx = 0
    while idx < len(bulk):
        number, text = bulk[idx]
        keyword = _keyword(text)
        if keyword in PARAMETER_CARDS:
            kind, name, value = _parameter(text)
            result.parameters.setdefault(kind, {})[name] = value
            idx += 1
            continue
        if text.strip().upper().startswith("INCLUDE"):
            chunks = [text]
            quote = "'" if "'" in text else '"'
            while sum(chunk.count(quote) for chunk in chunks) % 2 and idx + 1 < len(bulk):
                idx += 1
                chunks.append(bulk[idx][1])
            target = _include_target(chunks)
            if not target:
                raise DecodeError("INCLUDE without a file name", source=source, line=number)
            result.includes.append(_resolve_include(target, base_dir, config))
            idx += 1
            continue
        data.append(_tag_line(number, text))
        idx += 1

    result.records = _group(data, source)
    if result.includes:
        logger.debug("%s includes %s", source, ", ".join(str(p) for p in result.includes))
    return result
