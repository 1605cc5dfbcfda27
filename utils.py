# utils.py
"""
Utility helpers: JSON loading, report generation, and console output.

- Uses Rich for colorful, wrapped tables in the terminal.
- Saves JSON, CSV, and HTML reports.
"""

import csv
import html
import json
import os
from json import JSONDecodeError
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from models import ComplianceReport

_console = Console()

CSV_FIELDS = ["location", "field", "dataType", "classification", "gdprCategory", "detectionMethod", "riskLevel"]


def load_json_file(path: str) -> dict:
    """
    Load JSON from a file and return a Python dict.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Input JSON file not found: {path}.")
    try:
        with open(path, "r", encoding="utf-8-sig") as fh:
            return json.load(fh)
    except JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e.msg} (line {e.lineno} column {e.colno})") from e

def ensure_reports_dir(path: str = "reports") -> str:
    os.makedirs(path, exist_ok=True)
    return path

def report_to_json(report: ComplianceReport) -> str:
    return json.dumps(report.to_dict(), indent=2)

def findings_to_table_rows(report: ComplianceReport) -> List[List[str]]:
    rows: List[List[str]] = []
    for f in report.findings:
        rows.append([f.location, f.field, f.data_type, f.classification.value, f.risk_level.value])
    return rows

def _report_paths(report: ComplianceReport, mode: str, out_dir: str, output_path: Optional[str]) -> Dict[str, str]:
    if output_path:
        base = os.path.splitext(output_path)[0]
        parent = os.path.dirname(output_path)
        if parent:
            ensure_reports_dir(parent)
        return {"json": output_path, "csv": base + ".csv", "html": base + ".html"}
    out_dir = ensure_reports_dir(out_dir)
    base_ts = report.timestamp.replace(":", "-")
    base = os.path.join(out_dir, f"pd-scan-{base_ts}-{mode}")
    return {"json": base + ".json", "csv": base + ".csv", "html": base + ".html"}

def _html_report(report: ComplianceReport, mode: str) -> str:
    data = report.to_dict()
    status = data["complianceStatus"]
    e = html.escape
    rows: List[str] = []
    rows.append("<!doctype html>")
    rows.append("<html><head><meta charset='utf-8'><title>Personal Data Compliance Report</title>")
    rows.append("<style>body{font-family:Arial,Helvetica,sans-serif;margin:20px}table{border-collapse:collapse;width:100%;margin-bottom:20px}th,td{border:1px solid #ddd;padding:8px}th{background:#f2f2f2;text-align:left}tr:nth-child(even){background:#fafafa}.High{color:#b00020;font-weight:bold}.Medium{color:#b36b00}</style>")
    rows.append("</head><body>")
    rows.append(f"<h2>Personal Data Compliance Report - {e(report.timestamp)} - mode: {e(mode)}</h2>")
    rows.append(f"<p>Subscription: {e(report.scope.subscription_id)} | Scope: {e(report.scope.describe())}</p>")
    rows.append(f"<p id='overall-risk'>Overall risk: <span class='{e(status['overallRisk'])}'>{e(status['overallRisk'])}</span></p>")
    rows.append(f"<p>Total findings: {len(report.findings)}</p>")
    if status.get("partial"):
        rows.append("<p><strong>Partial scan:</strong> some accounts, objects or feeds could not be read.</p>")

    rows.append("<h3>Personal data discovered</h3>")
    rows.append("<table id='findings'><thead><tr><th>Location</th><th>Field</th><th>Data Type</th><th>Classification</th><th>GDPR Category</th><th>Detection</th><th>Risk</th></tr></thead><tbody>")
    for f in data["personalDataDiscovered"]:
        rows.append(
            f"<tr><td>{e(f['location'])}</td><td>{e(f['field'])}</td><td>{e(f['dataType'])}</td>"
            f"<td>{e(f['classification'])}</td><td>{e(f['gdprCategory'])}</td><td>{e(f['detectionMethod'])}</td>"
            f"<td class='{e(f['riskLevel'])}'>{e(f['riskLevel'])}</td></tr>"
        )
    rows.append("</tbody></table>")

    rows.append("<h3>Security findings</h3>")
    rows.append("<table id='security'><thead><tr><th>Name</th><th>Severity</th><th>Status</th><th>Description</th></tr></thead><tbody>")
    for s in report.security_findings:
        rows.append(f"<tr><td>{e(s.name)}</td><td>{e(s.severity)}</td><td>{e(s.status)}</td><td>{e(s.description)}</td></tr>")
    rows.append("</tbody></table>")

    rows.append("<h3>Recommendations</h3>")
    rows.append("<table id='recommendations'><thead><tr><th>Priority</th><th>Category</th><th>Recommendation</th><th>Control</th><th>Action</th></tr></thead><tbody>")
    for r in data["recommendations"]:
        rows.append(
            f"<tr><td>{e(r['priority'])}</td><td>{e(r['category'])}</td><td>{e(r['recommendation'])}</td>"
            f"<td>{e(r['complianceControl'])}</td><td>{e(r['actionRequired'])}</td></tr>"
        )
    rows.append("</tbody></table></body></html>")
    return "\n".join(rows)

def save_report(report: ComplianceReport, mode: str, out_dir: str = "reports",
                output_path: Optional[str] = None) -> Dict[str, str]:
    """
    Save JSON, CSV, and HTML reports and return their paths.

    - output_path names the JSON file; CSV and HTML are written next to it.
    - Without output_path, timestamped files go to out_dir.
    """
    paths = _report_paths(report, mode, out_dir, output_path)
    data = report.to_dict()

    # JSON
    with open(paths["json"], "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)

    # CSV
    with open(paths["csv"], "w", encoding="utf-8", newline="") as fh:
        writer = csv.DictWriter(fh, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for f in data["personalDataDiscovered"]:
            writer.writerow({k: f.get(k, "") for k in CSV_FIELDS})

    # HTML
    with open(paths["html"], "w", encoding="utf-8") as fh:
        fh.write(_html_report(report, mode))

    return paths

# --- Console printing with color/wrapping ---

def _rich_risk_text(risk: str) -> Text:
    """
    Return a Rich Text object styled by risk level or priority.
    """
    if risk in ("High", "Critical"):
        return Text(risk, style="bold red")
    if risk == "Medium":
        return Text(risk, style="bold yellow")
    return Text(risk, style="green")

def print_summary_and_report_path(report: ComplianceReport, report_paths: Optional[Dict[str, str]] = None,
                                  show_top: int = 5, print_full_table: bool = False):
    """
    Print a compact summary, a colorful table of findings and the recommendations.
    """
    status = report.status
    _console.print("\n[bold]Personal data discovery summary:[/bold]")
    _console.print(f"- Scope: {escape(report.scope.subscription_id)} ({escape(report.scope.describe())})")
    _console.print(f"- Accounts scanned: {status['accountsScanned']}")
    _console.print(f"- Personal data findings: {status['personalDataCount']}")
    _console.print(f"- Sensitive personal data findings: {status['sensitivePersonalDataCount']}")
    _console.print(f"- Security findings: {status['securityFindingsCount']}")
    _console.print(Text.assemble("- Overall risk: ", _rich_risk_text(status["overallRisk"])))
    if status.get("partial"):
        _console.print(
            f"[yellow]- Partial scan: {len(status['failedAccounts'])} account(s), "
            f"{len(status['failedObjects'])} object(s), {len(status['failedFeeds'])} feed(s) unavailable"
            f"{', cancelled' if status.get('cancelled') else ''}[/yellow]"
        )

    rows = findings_to_table_rows(report)
    if rows:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Location", style="cyan", overflow="fold")
        table.add_column("Field", style="magenta")
        table.add_column("Data Type")
        table.add_column("Classification")
        table.add_column("Risk", justify="right")
        for r in (rows if print_full_table else rows[:show_top]):
            table.add_row(Text(r[0]), Text(r[1]), Text(r[2]), Text(r[3]), _rich_risk_text(r[4]))
        _console.print(table)

    if report.recommendations:
        _console.print("\n[bold]Recommendations:[/bold]")
        for rec in report.recommendations:
            _console.print(Text.assemble("- [", _rich_risk_text(rec.priority.value), f"] {rec.recommendation}"))

    if report_paths:
        _console.print("\nSaved reports:")
        _console.print(f"- JSON: {escape(str(report_paths.get('json')))}")
        _console.print(f"- CSV:  {escape(str(report_paths.get('csv')))}")
        _console.print(f"- HTML: {escape(str(report_paths.get('html')))}\n")
