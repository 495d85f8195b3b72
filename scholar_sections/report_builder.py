import os
from datetime import datetime

import mistune
import pandas as pd
from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")
DEFAULT_TEMPLATE = "report_template.md.j2"
CSV_COLUMNS = ['section_id', 'section', 'title', 'url', 'summary']


def sections_for_report(result, taxonomy):
    """Non-empty sections in taxonomy order, shaped for the template."""
    report_sections = []
    for section_id, studies in result.non_empty():
        section = taxonomy.get(section_id)
        report_sections.append({
            "id": section_id,
            "name": section.display_name if section else section_id,
            "count": len(studies),
            "studies": [study.model_dump() for study in studies],
        })
    return report_sections


def generate_markdown_report(result, taxonomy, template_name=DEFAULT_TEMPLATE):
    """Renders the aggregated sections to Markdown with the Jinja2 template. Empty sections are left out."""
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(['html', 'xml', 'md'])
    )
    template = env.get_template(template_name)

    template_vars = {
        "sections": sections_for_report(result, taxonomy),
        "total": result.total,
        "today_date": datetime.now().strftime("%Y-%m-%d"),
        "generation_time": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    }
    return template.render(template_vars)


def results_to_dataframe(result, taxonomy):
    rows = []
    for section_id, studies in result.non_empty():
        section = taxonomy.get(section_id)
        for study in studies:
            rows.append({
                'section_id': section_id,
                'section': section.display_name if section else section_id,
                'title': study.title,
                'url': study.url,
                'summary': study.summary,
            })
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def save_report(markdown_content, report_dir="reports", output_filename_base="scholar_sections_report",
                html=False, csv_df=None):
    """
    Saves the Markdown report (and optionally an HTML rendering and a CSV export) into report_dir.
    Returns the path of the Markdown file.
    """
    os.makedirs(report_dir, exist_ok=True)
    stamp = datetime.now().strftime('%Y%m%d_%H%M%S')

    report_filename_md = os.path.join(report_dir, f"{output_filename_base}_{stamp}.md")
    with open(report_filename_md, 'w', encoding='utf-8') as f:
        f.write(markdown_content)
    print(f"Markdown report saved to: {report_filename_md}")

    if html:
        report_filename_html = os.path.join(report_dir, f"{output_filename_base}_{stamp}.html")
        with open(report_filename_html, 'w', encoding='utf-8') as f:
            f.write(mistune.html(markdown_content))
        print(f"HTML report saved to: {report_filename_html}")

    if csv_df is not None:
        report_filename_csv = os.path.join(report_dir, f"{output_filename_base}_{stamp}.csv")
        csv_df.to_csv(report_filename_csv, index=False)
        print(f"CSV export saved to: {report_filename_csv}")

    return report_filename_md
