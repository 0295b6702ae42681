"""Tests for run reports and exit codes."""

import json

import pytest
from apicompat.classifier import ValidationMode, classify
from apicompat.diagnostics import Severity, build_diagnostics
from apicompat.differ import diff_surfaces
from apicompat.reporter import EXIT_BREAKING, EXIT_OK, Report
from apicompat.suppression import SuppressedDiagnostic, Suppression
from apicompat.surface import Member, MemberKind, Surface


def _diagnostics(**kwargs):
    old = Surface("net", "1.0", [Member(name="connect", kind=MemberKind.METHOD,
                                        declaring_type="net.Client")])
    new = Surface("net", "2.0", [])
    classified = [(d, classify(d, old, new)) for d in diff_surfaces(old, new)]
    return build_diagnostics(classified, "1.0", "2.0", **kwargs)


@pytest.fixture
def failing_report():
    return Report(baseline="net 1.0", candidate="net 2.0", diagnostics=_diagnostics(),
                  compatible_changes={"member-added": 2})


def test_errors_fail_the_run(failing_report):
    assert not failing_report.passed
    assert failing_report.exit_code == EXIT_BREAKING == 12
    assert len(failing_report.errors) == 1


def test_warnings_do_not_fail_the_run():
    report = Report("net 1.0", "net 2.0",
                    diagnostics=_diagnostics(overrides={"APICOMPAT0001": Severity.WARNING}))
    assert report.passed
    assert report.exit_code == EXIT_OK
    assert len(report.warnings) == 1


def test_empty_report_passes():
    report = Report("net 1.0", "net 1.0")
    assert report.passed
    assert report.exit_code == 0
    assert report.format_summary().startswith("✅ PASS")


def test_text_format(failing_report):
    text = failing_report.format_text()
    assert "Comparing net 1.0 → net 2.0 (mode: full)" in text
    assert "error: APICOMPAT0001: The method 'net.Client.connect()'" in text
    assert "Compatible changes: member-added: 2" in text


def test_json_format(failing_report):
    data = json.loads(failing_report.render("json"))
    assert data["passed"] is False
    assert data["exit_code"] == 12
    assert data["summary"]["errors"] == 1
    assert data["summary"]["by_id"] == {"APICOMPAT0001": 1}
    assert data["diagnostics"][0]["target"] == "net.Client.connect()"
    assert data["compatible_changes"] == {"member-added": 2}


def test_markdown_lists_suppressed_and_stale():
    [diag] = _diagnostics()
    suppression = Suppression(diag.id, diag.target, "intentional")
    report = Report("net 1.0", "net 2.0",
                    suppressed=[SuppressedDiagnostic(diag, suppression)],
                    stale=[Suppression("APICOMPAT0005", "net.Client.read()")])
    md = report.render("markdown")
    assert md.startswith("# API Compatibility Report")
    assert "No unsuppressed breaking changes" in md
    assert "| `APICOMPAT0001` | `net.Client.connect()` | intentional |" in md
    assert "## Stale suppressions" in md
    assert report.exit_code == 0


def test_skipped_report():
    report = Report("a", "b", mode=ValidationMode.BINARY, skipped=True)
    assert report.passed
    assert "SKIPPED" in report.format_summary()
    assert report.to_dict()["skipped"] is True
    assert "disabled" in report.to_markdown()


def test_source_only_changes_are_listed_apart_from_compatible():
    report = Report("net 1.0", "net 2.0", mode=ValidationMode.BINARY,
                    compatible_changes={"member-added": 1},
                    source_only_changes={"parameter-renamed": 2})
    text = report.format_text()
    assert "Compatible changes: member-added: 1" in text
    assert "Source-breaking changes not checked in binary mode: parameter-renamed: 2" in text
    data = report.to_dict()
    assert data["compatible_changes"] == {"member-added": 1}
    assert data["source_only_changes"] == {"parameter-renamed": 2}
    assert "## Source-breaking changes not checked (binary mode)" in report.to_markdown()
