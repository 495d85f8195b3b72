import json
import os
from typing import List

import typer
import yaml

from scholar_sections import config as config_module
from scholar_sections import mail_fetcher
from scholar_sections import normalizer
from scholar_sections import report_builder

app = typer.Typer()


def _load(config_file):
    try:
        config = config_module.load_config(config_file)
        taxonomy = config_module.load_taxonomy(config)
    except (OSError, ValueError, AttributeError, yaml.YAMLError) as e:
        typer.echo(f"Error: could not load config {config_file or config_module.CONFIG_FILE}: {e}")
        raise typer.Exit(code=1)
    return config, taxonomy


def _workers(config):
    parallel_cfg = (config.get('processing', {}) or {}).get('parallel', {}) or {}
    if not parallel_cfg.get('enable', False):
        return 1
    return int(parallel_cfg.get('workers', 4))


def _run(records, config, taxonomy, html=False, csv=False, write_report=True):
    result = normalizer.process_emails(records, taxonomy, workers=_workers(config))

    for section in taxonomy.sections:
        typer.echo(f"  {section.display_name}: {result.counts.get(section.id, 0)}")
    typer.echo(f"Done. {result.total} study item(s).")

    if not write_report:
        return result

    output_cfg = config.get('output', {}) or {}
    markdown_content = report_builder.generate_markdown_report(result, taxonomy)
    csv_df = None
    if csv or output_cfg.get('csv', False):
        csv_df = report_builder.results_to_dataframe(result, taxonomy)
    report_file = report_builder.save_report(
        markdown_content,
        report_dir=output_cfg.get('report_dir', 'reports'),
        html=html or output_cfg.get('html', False),
        csv_df=csv_df,
    )
    typer.echo(f"Report generated: {report_file}")
    return result


def read_records(path):
    """Mail records from a local file: .html/.htm markup, a .eml message, or a .json alerts payload."""
    extension = os.path.splitext(path)[1].lower()
    if extension in (".html", ".htm"):
        with open(path, 'r', encoding='utf-8', errors='ignore') as f:
            return [{"id": os.path.basename(path), "rawHtml": f.read()}]
    if extension == ".eml":
        with open(path, 'rb') as f:
            return [mail_fetcher.record_from_raw_message(os.path.basename(path), f.read())]
    if extension == ".json":
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        emails = payload.get('emails') if isinstance(payload, dict) else payload
        if not isinstance(emails, list):
            raise ValueError("expected a list of emails or an object with an 'emails' list")
        return emails
    raise ValueError(f"unsupported file type '{extension}' (use .html, .eml or .json)")


@app.command()
def fetch(
    limit: int = typer.Option(None, "--limit", help="Number of newest alert emails to fetch (max 50)."),
    config_file: str = typer.Option(None, "--config", help="Path to an alternative config.yml."),
    html: bool = typer.Option(False, "--html", help="Also write an HTML version of the report."),
    csv: bool = typer.Option(False, "--csv", help="Also write a CSV export of the sections."),
    write_report: bool = typer.Option(True, "--report/--no-report", help="Write the report files."),
):
    """Fetch the newest Google Scholar alert emails, sort their studies into sections, and build a report."""
    config, taxonomy = _load(config_file)
    gmail_cfg = config.get('gmail', {}) or {}

    typer.echo("Fetching alerts...")
    records = mail_fetcher.get_scholar_alert_emails(
        limit=limit if limit is not None else gmail_cfg.get('limit', mail_fetcher.DEFAULT_LIMIT),
        sender=gmail_cfg.get('sender', mail_fetcher.DEFAULT_SENDER),
        gmail_config=gmail_cfg,
    )
    if not records:
        typer.echo("No alert emails found. Exiting.")
        raise typer.Exit()
    typer.echo(f"Loaded {len(records)} email(s). Parsing...")
    _run(records, config, taxonomy, html=html, csv=csv, write_report=write_report)


@app.command(name="parse")
def parse_command(
    paths: List[str] = typer.Argument(..., help="Alert emails as .html, .eml or .json (alerts payload) files."),
    config_file: str = typer.Option(None, "--config", help="Path to an alternative config.yml."),
    html: bool = typer.Option(False, "--html", help="Also write an HTML version of the report."),
    csv: bool = typer.Option(False, "--csv", help="Also write a CSV export of the sections."),
    write_report: bool = typer.Option(True, "--report/--no-report", help="Write the report files."),
):
    """Sort studies from locally saved alert emails into sections."""
    config, taxonomy = _load(config_file)

    records = []
    for path in paths:
        try:
            records.extend(read_records(path))
        except (OSError, ValueError) as e:
            typer.echo(f"Error: could not read {path}: {e}")
            raise typer.Exit(code=1)

    typer.echo(f"Loaded {len(records)} email(s). Parsing...")
    _run(records, config, taxonomy, html=html, csv=csv, write_report=write_report)


@app.command(name="sections")
def sections_command(
    config_file: str = typer.Option(None, "--config", help="Path to an alternative config.yml."),
):
    """List the configured sections in matching order."""
    _, taxonomy = _load(config_file)
    for position, section in enumerate(taxonomy.sections, start=1):
        matchers = ", ".join(section.matchers) if section.matchers else "(fallback)"
        typer.echo(f"{position}. {section.id} - {section.display_name}: {matchers}")


if __name__ == "__main__":
    # python -m scholar_sections.cli parse alerts.json
    app()
