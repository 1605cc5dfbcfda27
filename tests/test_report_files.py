# tests/test_report_files.py
"""
Report file tests.

- Parses the generated HTML report with BeautifulSoup and asserts rows and metadata.
- Uses tmp_path to isolate report outputs.
"""

import csv
import json
import os

from bs4 import BeautifulSoup

from main import run_scan
from models import ScanScope
from utils import print_summary_and_report_path, save_report
from tests.conftest import FakeBackend, FakeFeed


def _report(scope, two_blob_backend):
    feed = FakeFeed(alerts=[{"name": "Data exfiltration <script>", "severity": "High", "status": "Active"}])
    return run_scan(two_blob_backend, feed, scope)


def test_reports_are_written_to_report_dir(tmp_path, scope, two_blob_backend):
    report = _report(scope, two_blob_backend)
    paths = save_report(report, mode="dummy", out_dir=str(tmp_path))
    for key in ("json", "csv", "html"):
        assert os.path.exists(paths[key])
        assert os.path.dirname(paths[key]) == str(tmp_path)

    with open(paths["json"], "r", encoding="utf-8") as fh:
        data = json.load(fh)
    assert data["complianceStatus"]["overallRisk"] == "High"
    assert len(data["personalDataDiscovered"]) == 2
    assert data["securityFindings"][0]["alertName"] == "Data exfiltration <script>"

    with open(paths["csv"], "r", encoding="utf-8", newline="") as fh:
        rows = list(csv.DictReader(fh))
    assert sorted(r["dataType"] for r in rows) == ["Email", "SSN"]


def test_output_path_places_all_formats_side_by_side(tmp_path, scope, two_blob_backend):
    target = tmp_path / "out" / "compliance.json"
    paths = save_report(_report(scope, two_blob_backend), mode="dummy", output_path=str(target))
    assert paths == {
        "json": str(target),
        "csv": str(tmp_path / "out" / "compliance.csv"),
        "html": str(tmp_path / "out" / "compliance.html"),
    }
    assert all(os.path.exists(p) for p in paths.values())


def test_html_report_contains_findings_and_escapes_text(tmp_path, scope, two_blob_backend):
    paths = save_report(_report(scope, two_blob_backend), mode="dummy", out_dir=str(tmp_path))
    with open(paths["html"], "r", encoding="utf-8") as fh:
        soup = BeautifulSoup(fh, "html.parser")

    assert "mode: dummy" in soup.find("h2").get_text(strip=True)
    assert "High" in soup.find(id="overall-risk").get_text()

    rows = soup.find(id="findings").find_all("tr")[1:]
    cols = [[td.get_text(strip=True) for td in tr.find_all("td")] for tr in rows]
    assert ["acct1/docs/employee.json", "id", "SSN"] in [c[:3] for c in cols]

    assert soup.find("script") is None
    assert "Data exfiltration <script>" in soup.find(id="security").get_text()
    assert len(soup.find(id="recommendations").find_all("tr")) == 4


def test_summary_is_printed_even_for_empty_partial_scan(capsys, scope):
    backend = FakeBackend({"locked": {}}, failing_accounts={"locked"})
    report = run_scan(backend, FakeFeed(alerts_error=True), scope)
    print_summary_and_report_path(report)
    out = capsys.readouterr().out
    assert "Overall risk: Medium" in out
    assert "Partial scan" in out


def test_summary_prints_scope_names_literally(capsys, two_blob_backend):
    scope = ScanScope("sub[red]1", resource_group="rg[bold]x")
    report = run_scan(two_blob_backend, FakeFeed(), scope)
    print_summary_and_report_path(report, report_paths={"json": "out[1]/r.json", "csv": "r.csv", "html": "r.html"})
    out = capsys.readouterr().out
    assert "sub[red]1" in out
    assert "Resource Group: rg[bold]x" in out
    assert "out[1]/r.json" in out
