import json
from pathlib import Path

from nasbulk.report import (
    ImportReport,
    UnresolvedReference,
    append_csv,
    append_jsonl,
    report_to_dict,
    report_to_row,
    summarize_log,
)


def _sample_report() -> ImportReport:
    report = ImportReport(sources=[Path("model.bdf")], counts={"GRID": 4, "CBAR": 2})
    report.skip("FORCE", 2, Path("model.bdf"))
    report.skip("FORCE", 1, Path("loads.bdf"))
    report.unresolved.append(UnresolvedReference("CBAR", "PID", "BeamProp", [7]))
    return report


def test_skip_accumulates_counts_and_sources() -> None:
    report = _sample_report()
    skipped = report.skipped["FORCE"]
    assert skipped.count == 3
    assert skipped.sources == [Path("model.bdf"), Path("loads.bdf")]
    assert not report.clean


def test_report_to_dict() -> None:
    payload = report_to_dict(_sample_report())
    assert payload["skipped"] == [
        {"card": "FORCE", "count": 3, "sources": ["model.bdf", "loads.bdf"]}
    ]
    assert payload["unresolved"][0]["missing_ids"] == [7]


def test_row_and_csv(tmp_path: Path) -> None:
    row = report_to_row(_sample_report(), source="model.bdf", tag="nightly")
    assert row["entries"] == 6
    assert row["skipped"] == 3
    out = tmp_path / "logs" / "log.csv"
    written = append_csv(out, _sample_report(), source="model.bdf", tag="nightly")
    append_csv(out, _sample_report(), source="model.bdf")
    assert written["tag"] == "nightly"
    content = out.read_text()
    assert content.count("model.bdf") == 2
    assert content.startswith("timestamp,")


def test_append_jsonl(tmp_path: Path) -> None:
    path = tmp_path / "log.jsonl"
    row = append_jsonl(path, _sample_report(), source="model.bdf")
    (line,) = path.read_text().splitlines()
    assert json.loads(line) == row
    assert row["counts"] == {"GRID": 4, "CBAR": 2}


def test_summarize_log(tmp_path: Path) -> None:
    csv_log = tmp_path / "log.csv"
    jsonl_log = tmp_path / "log.jsonl"
    for _ in range(2):
        append_csv(csv_log, _sample_report(), source="model.bdf")
        append_jsonl(jsonl_log, _sample_report(), source="model.bdf")
    for log in (csv_log, jsonl_log):
        summary = summarize_log(log)
        assert summary["runs"] == 2
        assert summary["entries_total"] == 12
        assert summary["unresolved_total"] == 2
        assert summary["card_counts"] == {"GRID": 8, "CBAR": 4}
