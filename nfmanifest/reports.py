"""
Build Reports

Summaries of a manifest build: a per-output-kind summary table and a
self-contained HTML report for review before annotations are submitted.

Example Usage:
    >>> from nfmanifest.reports import generate_html_report
    >>> generate_html_report(result, Path("manifests"), title="JH-2-002 nf-rnaseq")
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging

import numpy as np
import pandas as pd
from jinja2 import Template

from .core import ProcessedMeta, manifest_filename

logger = logging.getLogger(__name__)


HTML_REPORT_CSS = """
<style>
    body {
        font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
        color: #2c3e50;
        background: #f5f7fa;
        margin: 0;
    }
    .container { max-width: 1100px; margin: 0 auto; padding: 24px; }
    .header { border-bottom: 2px solid #3498db; margin-bottom: 20px; }
    .header h1 { margin: 0 0 4px 0; }
    .subtitle, .timestamp { color: #7f8c8d; font-size: 0.9em; }
    .quick-stats { display: flex; gap: 16px; margin-bottom: 20px; }
    .quick-stat {
        background: #fff;
        border-radius: 6px;
        padding: 12px 20px;
        box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
    }
    .quick-stat .number { font-size: 1.6em; font-weight: 600; }
    .quick-stat .label { color: #7f8c8d; font-size: 0.85em; }
    .section {
        background: #fff;
        border-radius: 6px;
        padding: 16px 20px;
        margin-bottom: 20px;
        box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
    }
    table { border-collapse: collapse; width: 100%; font-size: 0.9em; }
    th, td { text-align: left; padding: 6px 10px; border-bottom: 1px solid #ecf0f1; }
    th { background: #ecf0f1; }
    .alert { padding: 10px 14px; border-radius: 4px; }
    .alert-info { background: #eaf2f8; }
    .alert-warning { background: #fdebd0; }
    .alert-error { background: #fadbd8; }
    .footer { color: #95a5a6; font-size: 0.8em; text-align: center; }
</style>
"""

HTML_REPORT_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="generator" content="nfmanifest">
    <title>{{ title }} - nfmanifest Report</title>
    {{ css | safe }}
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{{ title }}</h1>
            <div class="subtitle">Processed data manifests</div>
            <div class="timestamp">Generated: {{ timestamp }} (nfmanifest v{{ version }})</div>
        </div>

        {% if quick_stats %}
        <div class="quick-stats">
            {% for stat in quick_stats %}
            <div class="quick-stat">
                <div class="number">{{ stat.value }}</div>
                <div class="label">{{ stat.label }}</div>
            </div>
            {% endfor %}
        </div>
        {% endif %}

        <div class="content">
            {{ content | safe }}
        </div>

        <div class="footer">
            <p><strong>nfmanifest</strong> - manifests for nf-core workflow outputs</p>
        </div>
    </div>
</body>
</html>
"""


class HTMLReportBuilder:
    """
    Builder class for generating HTML reports.

    Sections are HTML fragments rendered in the order they are added.
    """

    def __init__(self, title: str, version: str = "0.1.0"):
        self.title = title
        self.version = version
        self.sections = []
        self.quick_stats = []

    def add_quick_stat(self, value: str, label: str):
        """Add a quick stat to the header bar."""
        self.quick_stats.append({'value': value, 'label': label})

    def add_section(self, content: str):
        """Add a section to the report."""
        self.sections.append(content)

    def render(self) -> str:
        """
        Render the complete HTML report.

        Returns
        -------
        str
            Complete HTML document
        """
        template = Template(HTML_REPORT_TEMPLATE)

        return template.render(
            title=self.title,
            version=self.version,
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            css=HTML_REPORT_CSS,
            quick_stats=self.quick_stats,
            content='\n'.join(self.sections),
        )


def _format_number(value, decimals: int = 2) -> str:
    """Format a number for display."""
    if pd.isna(value):
        return "N/A"
    if isinstance(value, (int, np.integer)):
        return f"{value:,}"
    return f"{value:,.{decimals}f}"


def _dataframe_to_html(df: pd.DataFrame, max_rows: int = 100) -> str:
    if df.empty:
        return '<p class="alert alert-info">No data available</p>'

    total = len(df)
    truncated = total > max_rows
    if truncated:
        df = df.head(max_rows)

    html = df.to_html(index=False, border=0, escape=True)
    if truncated:
        html += f'<p class="timestamp">Showing first {max_rows} rows of {total} total</p>\n'
    return html


# ============================================================================
# Summaries
# ============================================================================

def summarize_manifests(result: ProcessedMeta) -> pd.DataFrame:
    """
    One row per built output kind.

    Returns
    -------
    pd.DataFrame
        Columns ``output_kind``, ``files``, ``samples``, ``data_types``,
        ``manifest``
    """
    rows = []
    for output_kind, manifest in result.manifests.items():
        n_samples = 0
        if not result.sample_io.empty:
            linked = result.sample_io[result.sample_io["output_id"].isin(manifest["entityId"])]
            n_samples = linked["sample"].nunique()

        data_types = ""
        if "dataType" in manifest.columns:
            counts = manifest["dataType"].value_counts()
            data_types = ", ".join(f"{k} ({v})" for k, v in counts.items())

        rows.append({
            "output_kind": output_kind,
            "files": len(manifest),
            "samples": n_samples,
            "data_types": data_types,
            "manifest": manifest_filename(output_kind),
        })
    return pd.DataFrame(rows, columns=["output_kind", "files", "samples", "data_types", "manifest"])


def _build_summary_section(summary: pd.DataFrame) -> str:
    html = '<div class="section" id="section-summary">\n'
    html += '<h2>Manifests</h2>\n'
    html += _dataframe_to_html(summary)
    html += '</div>\n'
    return html


def _build_errors_section(result: ProcessedMeta) -> str:
    html = '<div class="section" id="section-errors">\n'
    html += '<h2>Failed Output Kinds</h2>\n'
    if not result.errors:
        html += '<p class="alert alert-info">All output kinds were annotated</p>\n'
    else:
        errors = pd.DataFrame(
            [{"output_kind": k, "error": v} for k, v in result.errors.items()]
        )
        html += '<p class="alert alert-error">Manifests for these outputs were not built</p>\n'
        html += _dataframe_to_html(errors)
    html += '</div>\n'
    return html


def _build_linkage_section(result: ProcessedMeta) -> str:
    html = '<div class="section" id="section-linkage">\n'
    html += '<h2>Sample Linkage</h2>\n'
    if result.sample_io.empty:
        html += '<p class="alert alert-warning">No outputs were linked to inputs</p>\n'
    else:
        linkage = result.sample_io[["sample", "output_kind", "output_name", "input_id"]].copy()
        linkage["input_id"] = linkage["input_id"].map(
            lambda ids: ", ".join(ids) if isinstance(ids, list) else ids
        )
        html += _dataframe_to_html(linkage)
    html += '</div>\n'
    return html


def generate_html_report(
    result: ProcessedMeta,
    output_dir: Path,
    title: str = "nfmanifest",
    version: str = "0.1.0",
) -> Optional[Path]:
    """
    Generate an HTML summary report of a manifest build.

    Parameters
    ----------
    result : ProcessedMeta
        Build result
    output_dir : Path
        Directory to write ``manifest_report.html`` to
    title : str
        Report title, e.g. the project or run name
    version : str
        nfmanifest version

    Returns
    -------
    Optional[Path]
        Path to generated HTML report, or None if generation failed
    """
    logger.info(f"Generating HTML summary report for {title}...")

    try:
        builder = HTMLReportBuilder(title=title, version=version)
        summary = summarize_manifests(result)

        builder.add_quick_stat(_format_number(len(result.manifests)), "Manifests")
        builder.add_quick_stat(_format_number(int(summary["files"].sum()) if not summary.empty else 0), "Files")
        builder.add_quick_stat(_format_number(len(result.errors)), "Failed")

        builder.add_section(_build_summary_section(summary))
        builder.add_section(_build_errors_section(result))
        builder.add_section(_build_linkage_section(result))

        html_content = builder.render()

        output_file = Path(output_dir) / "manifest_report.html"
        output_file.parent.mkdir(parents=True, exist_ok=True)

        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(html_content)

        logger.info(f"HTML report saved: {output_file}")
        return output_file

    except Exception as e:
        logger.error(f"Failed to generate HTML report: {e}", exc_info=True)
        return None
