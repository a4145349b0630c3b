"""Tests for report generation."""

import json

import pytest

from serial_audit.models import AuditSummary, CertificateResource, RenewalResult, RenewalStatus
from serial_audit.reporter import (
    format_affected_list,
    format_summary_lines,
    generate_json_report,
    generate_text_report,
)


@pytest.fixture
def web():
    return CertificateResource(namespace="prod", name="web", uid="u1", secret_name="web-tls")


@pytest.fixture
def sample_summary(web):
    return AuditSummary(total=5, skipped=1, unaffected=3, affected={"0A1B2C": web})


def test_summary_lines_are_stable(sample_summary):
    assert format_summary_lines(sample_summary) == [
        "  Skipped: 1",
        "  Unaffected: 3",
        "  Affected: 1",
    ]


def test_affected_certificate_counted_once(web):
    """Two spellings of one serial still mean one affected certificate."""
    summary = AuditSummary(total=1, skipped=0, unaffected=0, affected={"0a1b2c": web, "A1B2C": web})
    assert format_summary_lines(summary)[2] == "  Affected: 1"


def test_affected_list_shows_file_serial(web):
    assert format_affected_list({"0A1B2C": web}) == ["  * prod/web (serial number: 0A1B2C)"]


def test_text_report_report_only(sample_summary):
    report = generate_text_report(sample_summary)

    assert "Certificates checked: 5" in report
    assert "Unaffected: 3" in report
    assert "prod/web (serial number: 0A1B2C)" in report
    assert "Renewal not requested" in report


def test_text_report_with_renewals(sample_summary, web):
    sample_summary.renew_requested = True
    sample_summary.renewals = [
        RenewalResult(certificate=web, status=RenewalStatus.RENEWED, new_request="prod/web-2"),
    ]

    report = generate_text_report(sample_summary)

    assert "prod/web: renewed (CertificateRequest prod/web-2)" in report
    assert "Renewal not requested" not in report


def test_text_report_in_progress(sample_summary, web):
    sample_summary.renew_requested = True
    sample_summary.renewals = [RenewalResult(certificate=web, status=RenewalStatus.IN_PROGRESS)]

    assert "renewal already in progress" in generate_text_report(sample_summary)


def test_json_report(sample_summary, web):
    sample_summary.renewals = [
        RenewalResult(
            certificate=web,
            status=RenewalStatus.RENEWED,
            deleted_requests=["prod/web-1"],
            new_request="prod/web-2",
        ),
    ]

    data = json.loads(generate_json_report(sample_summary))

    assert data["total"] == 5
    assert data["skipped"] == 1
    assert data["unaffected"] == 3
    assert data["affected"] == [{"serial_number": "0A1B2C", "namespace": "prod", "name": "web"}]
    assert data["renewals"][0]["status"] == "RENEWED"
    assert data["renewals"][0]["certificate"]["name"] == "web"
