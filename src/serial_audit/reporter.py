"""Report generation (summary lines and JSON)."""

import json
from dataclasses import asdict
from typing import Any, Dict, List, Mapping

from serial_audit.models import AuditSummary, CertificateResource, RenewalStatus


def format_summary_lines(summary: AuditSummary) -> List[str]:
    """
    Format the count summary.

    The line format is stable so scripts can grep for it.
    """
    return [
        f"  Skipped: {summary.skipped}",
        f"  Unaffected: {summary.unaffected}",
        f"  Affected: {len({cert.key for cert in summary.affected.values()})}",
    ]


def format_affected_list(affected: Mapping[str, CertificateResource]) -> List[str]:
    """One line per affected certificate, with the serial as written in the serials file."""
    return [f"  * {cert.key} (serial number: {serial})" for serial, cert in affected.items()]


def generate_text_report(summary: AuditSummary) -> str:
    """
    Generate human-readable text report.

    Args:
        summary: AuditSummary to report

    Returns:
        Formatted text report
    """
    lines = []
    lines.append("=" * 70)
    lines.append("Certificate Serial Audit Report")
    lines.append("=" * 70)
    lines.append(f"Certificates checked: {summary.total}")
    lines.extend(format_summary_lines(summary))

    if summary.affected:
        lines.append("")
        lines.append("Affected Certificates:")
        lines.extend(format_affected_list(summary.affected))

    if summary.renewals:
        lines.append("")
        lines.append("Renewals:")
        for renewal in summary.renewals:
            if renewal.status == RenewalStatus.IN_PROGRESS:
                lines.append(f"  * {renewal.certificate.key}: renewal already in progress")
            else:
                lines.append(f"  * {renewal.certificate.key}: renewed (CertificateRequest {renewal.new_request})")
    elif summary.affected and not summary.renew_requested:
        lines.append("")
        lines.append("Renewal not requested (use --renew to trigger re-issuance)")

    lines.append("=" * 70)
    return "\n".join(lines)


def generate_json_report(summary: AuditSummary) -> str:
    """
    Generate JSON report.

    Args:
        summary: AuditSummary to report

    Returns:
        JSON string
    """
    def serialize(obj: Any) -> str:
        if isinstance(obj, RenewalStatus):
            return obj.value
        raise TypeError(f"Type {type(obj)} not serializable")

    data: Dict[str, Any] = {
        "total": summary.total,
        "skipped": summary.skipped,
        "unaffected": summary.unaffected,
        "affected": [
            {"serial_number": serial, "namespace": cert.namespace, "name": cert.name}
            for serial, cert in summary.affected.items()
        ],
        "renew_requested": summary.renew_requested,
        "renewals": [asdict(renewal) for renewal in summary.renewals],
    }
    return json.dumps(data, indent=2, default=serialize)
