import logging
from pathlib import Path

import orjson
import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from nasbulk.assembler import import_bulk_data
from nasbulk.config import ImportConfig, load_config, sample_config
from nasbulk.errors import BulkDataError
from nasbulk.export import model_to_arrow, write_report
from nasbulk.report import append_csv, append_jsonl, summarize_log
from nasbulk.schema.cards import default_registry

app = typer.Typer(help="Import Nastran bulk data into a cross-referenced columnar model.")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command("import")
def import_(
    input: Path = typer.Argument(..., help="Bulk data file (.bdf, .dat, .nas, .blk, .inc)."),
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Import config (yaml/json); see sample-config."
    ),
    report: Path | None = typer.Option(
        None, "--report", "-r", help="Optional path to write the import report as JSON."
    ),
    arrow_dir: Path | None = typer.Option(
        None, "--arrow-dir", help="Write one Arrow IPC file per card into this directory."
    ),
    log_csv: Path | None = typer.Option(
        None, "--log-csv", help="Append a summary row as CSV for trend tracking."
    ),
    log_jsonl: Path | None = typer.Option(
        None, "--log-jsonl", help="Append a summary row as JSONL for trend tracking."
    ),
    tag: str | None = typer.Option(None, "--tag", help="Optional tag to mark this run."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
) -> None:
    """Import a bulk data file and its includes, then resolve cross references."""
    _configure_logging(verbose)
    if not input.is_file():
        raise typer.BadParameter(f"Input file not found: {input}")
    cfg = load_config(config) if config else ImportConfig()

    try:
        result = import_bulk_data(input, cfg)
    except BulkDataError as exc:
        console.print(f"[bold red]Import failed:[/] {escape(str(exc))}")
        raise typer.Exit(code=1) from None

    model, rep = result.model, result.report
    table = Table(title=f"Bulk data in {input.name}")
    table.add_column("Card")
    table.add_column("Entity")
    table.add_column("Entries", justify="right")
    for card, collection in model.collections.items():
        table.add_row(card, collection.entity_type, str(len(collection)))
    console.print(table)

    for skipped in rep.skipped.values():
        console.print(f"[yellow]Skipped[/] {skipped.count} {skipped.card} entries (no schema)")
    for missing in rep.unresolved:
        console.print(
            f"[yellow]Unresolved[/] {missing.card}.{missing.field} -> {missing.target}: "
            f"{len(missing.missing_ids)} id(s)"
        )

    if report:
        write_report(report, rep, model)
        console.print(f"[bold green]Wrote report[/] to {report}")
    if arrow_dir:
        paths = model_to_arrow(model, arrow_dir)
        console.print(f"[bold green]Wrote[/] {len(paths)} Arrow file(s) to {arrow_dir}")
    if log_csv:
        append_csv(log_csv, rep, source=str(input), tag=tag)
        console.print(f"[green]Appended CSV log[/] {log_csv}")
    if log_jsonl:
        append_jsonl(log_jsonl, rep, source=str(input), tag=tag)
        console.print(f"[green]Appended JSONL log[/] {log_jsonl}")


@app.command()
def cards() -> None:
    """List the cards the importer understands."""
    table = Table(title="Registered cards")
    table.add_column("Card", no_wrap=True)
    table.add_column("Entity")
    table.add_column("Fields")
    table.add_column("References")
    for variant in default_registry():
        fields = ", ".join(
            f"{f.name}[{f.repeat}]" if f.masked else f"{f.name}..." if f.is_list else f.name
            for f in variant.stored_fields
        )
        refs = ", ".join(f"{f.name}->{f.ref.target}" for f in variant.references)
        table.add_row(variant.name, variant.entity_type, fields, refs)
    console.print(table)


@app.command("sample-config")
def sample_config_cmd(
    output: Path | None = typer.Option(None, "--output", "-o", help="Where to write the sample."),
    format: str = typer.Option("yaml", "--format", "-f", help="yaml | json"),
) -> None:
    """Emit a config template to edit for your model tree."""
    payload = sample_config()
    fmt = format.lower()
    if fmt == "yaml":
        text = yaml.safe_dump(payload, sort_keys=False)
    elif fmt == "json":
        text = orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode()
    else:
        raise typer.BadParameter(f"Unsupported format '{format}'. Choose yaml or json.")
    if output:
        output.write_text(text)
        console.print(f"[bold green]Wrote sample config[/] to {output}")
    else:
        console.print(text, markup=False, highlight=False)


@app.command("log-summary")
def log_summary(
    log: Path = typer.Argument(..., help="CSV or JSONL log written by import --log-*."),
) -> None:
    """Aggregate an import trend log."""
    if not log.is_file():
        raise typer.BadParameter(f"Log file not found: {log}")
    summary = summarize_log(log)
    console.print(
        f"- runs: {summary['runs']}, entries: {summary['entries_total']}, "
        f"skipped: {summary['skipped_total']}, unresolved: {summary['unresolved_total']}"
    )
    table = Table(title="Card Counts")
    table.add_column("Card")
    table.add_column("Entries", justify="right")
    for card, count in sorted(summary["card_counts"].items(), key=lambda kv: kv[1], reverse=True):
        table.add_row(card, str(count))
    console.print(table)


if __name__ == "__main__":
    app()
