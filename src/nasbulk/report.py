"""Non-fatal import diagnostics and helpers to log them for trend tracking."""

from __future__ import annotations

import csv
import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class SkippedCard:
    """A card name with no registered schema, counted across files."""

    card: str
    count: int = 0
    sources: list[Path] = field(default_factory=list)


@dataclass
class UnresolvedReference:
    card: str
    field: str
    target: str
    missing_ids: list[int]


@dataclass
class ImportReport:
    sources: list[Path] = field(default_factory=list)
    skipped: dict[str, SkippedCard] = field(default_factory=dict)
    unresolved: list[UnresolvedReference] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)

    def skip(self, card: str, count: int, source: Path | None) -> None:
        entry = self.skipped.setdefault(card, SkippedCard(card))
        entry.count += count
        if source is not None and source not in entry.sources:
            entry.sources.append(source)

    @property
    def clean(self) -> bool:
        return not self.skipped and not self.unresolved


def report_to_dict(report: ImportReport) -> dict[str, Any]:
    return {
        "sources": [str(p) for p in report.sources],
        "counts": dict(report.counts),
        "skipped": [
            {"card": s.card, "count": s.count, "sources": [str(p) for p in s.sources]}
            for s in report.skipped.values()
        ],
        "unresolved": [
            {"card": u.card, "field": u.field, "target": u.target, "missing_ids": list(u.missing_ids)}
            for u in report.unresolved
        ],
    }


def report_to_row(report: ImportReport, source: str, tag: str | None = None) -> dict:
    """Flatten a report into a CSV/JSONL-friendly row."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": source,
        "tag": tag or "",
        "cards": len(report.counts),
        "entries": sum(report.counts.values()),
        "skipped": sum(s.count for s in report.skipped.values()),
        "unresolved": len(report.unresolved),
        "counts": json.dumps(report.counts),
    }


def append_csv(path: Path, report: ImportReport, source: str, tag: str | None = None) -> dict:
    """Append one summary row for ``report``; the header is written for a new file."""
    row = report_to_row(report, source, tag)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(row))
        if f.tell() == 0:
            writer.writeheader()
        writer.writerow(row)
    return row


def append_jsonl(path: Path, report: ImportReport, source: str, tag: str | None = None) -> dict:
    """Append one summary row for ``report`` as a JSON line, keeping counts nested."""
    row = {**report_to_row(report, source, tag), "counts": dict(report.counts)}
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(row) + "\n")
    return row


def _iter_log(path: Path) -> Iterator[dict[str, Any]]:
    with path.open(newline="" if path.suffix.lower() == ".csv" else None) as f:
        if path.suffix.lower() == ".csv":
            yield from csv.DictReader(f)
            return
        for line in f:
            line = line.strip()
            if line:
                yield json.loads(line)


def summarize_log(path: Path) -> dict[str, Any]:
    """Aggregate an import trend log written by :func:`append_csv`/:func:`append_jsonl`."""
    runs = 0
    entries = skipped = unresolved = 0
    card_counts: dict[str, int] = {}
    for row in _iter_log(path):
        runs += 1
        entries += int(row.get("entries", 0))
        skipped += int(row.get("skipped", 0))
        unresolved += int(row.get("unresolved", 0))
        counts = row.get("counts", {})
        if isinstance(counts, str):
            counts = json.loads(counts)
        for card, count in counts.items():
            card_counts[card] = card_counts.get(card, 0) + int(count)
    return {
        "runs": runs,
        "entries_total": entries,
        "skipped_total": skipped,
        "unresolved_total": unresolved,
        "card_counts": card_counts,
    }
