"""Tests for pass reports."""

from datetime import datetime, timezone

from Samplewatch.catalog_schema import ExtractionFailure
from Samplewatch.importer_context import ImportReport, PhaseReport, RowStatus


def test_phase_report_counts_and_reasons():
    report = PhaseReport("documents")
    report.record(0, RowStatus.imported, identifier="d1")
    report.record(1, RowStatus.skipped_missing_field, reason="invalid_date")
    report.record(2, RowStatus.skipped_missing_field, reason="invalid_date")
    report.record(3, RowStatus.skipped_filtered, identifier="g1", reason="not_sample_code")

    assert report.imported == 1
    assert report.skipped == 2
    assert report.filtered == 1
    assert report.skip_reasons() == {"invalid_date": 2, "not_sample_code": 1}
    summary = report.summary()
    assert summary["rows"] == 4
    assert "aborted" not in summary


def test_phase_report_abort_summary():
    report = PhaseReport("documents")
    report.abort("resource type 'Sample Code' not found")
    summary = report.summary()
    assert summary["aborted"] is True
    assert summary["abort_reason"] == "resource type 'Sample Code' not found"
    assert summary["rows"] == 0


def test_import_report_completion_flags():
    started = datetime(2016, 1, 23, tzinfo=timezone.utc)
    report = ImportReport(run_id="r1", started_at=started)
    assert not report.completed

    report.add_phase(PhaseReport("topics"))
    report.finished_at = started
    assert report.completed
    assert [p["phase"] for p in report.summary()["phases"]] == ["topics"]

    failed = ImportReport(
        run_id="r2",
        started_at=started,
        extraction_failure=ExtractionFailure("documents", "document table missing or malformed"),
    )
    assert not failed.completed
    assert failed.summary()["extraction_failure"].startswith("unexpected data: documents")
