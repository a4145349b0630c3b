"""Sequence one audit run: snapshot, index, scan, report and optionally renew."""

import logging
import threading
from typing import Optional

from serial_audit.certificate import build_serial_index
from serial_audit.cluster import ClusterClient
from serial_audit.models import AuditConfig, AuditSummary
from serial_audit.polling import AuditCancelled, raise_if_cancelled, wait_or_cancel
from serial_audit.renewal import renew_certificate
from serial_audit.reporter import format_affected_list, format_summary_lines
from serial_audit.scanner import scan_revocation_file

logger = logging.getLogger(__name__)


def run_audit(
    audit_config: AuditConfig,
    cluster: ClusterClient,
    cancel: Optional[threading.Event] = None,
) -> AuditSummary:
    """
    Run one audit pass against the cluster.

    Renewals run one at a time in file order and the run stops at the first
    one that fails; renewals already triggered are kept.

    Args:
        audit_config: Settings for this run
        cluster: Cluster API client
        cancel: Set to abort the run between phases, during the scan, or while waiting

    Returns:
        AuditSummary

    Raises:
        ClusterError: If listing resources or a renewal API call fails
        RevocationFileError: If the affected serials file cannot be read completely
        RenewalError: If a renewal cannot be confirmed
        AuditCancelled: If ``cancel`` is set before the run completes
    """
    certificates = cluster.list_certificates()
    logger.info(f"Found {len(certificates)} Certificate resources to check")
    secrets = cluster.list_secrets()
    raise_if_cancelled(cancel)

    index_result = build_serial_index(certificates, secrets)
    scan_result = scan_revocation_file(audit_config.serials_file, index_result.index, cancel=cancel)
    raise_if_cancelled(cancel)
    affected = scan_result.affected

    # Several file lines can name the same certificate with different spellings
    affected_keys = {cert.key for cert in affected.values()}
    indexed_keys = {cert.key for cert in index_result.index.values()}
    summary = AuditSummary(
        total=len(certificates),
        skipped=len(index_result.skipped),
        unaffected=len(indexed_keys - affected_keys),
        affected=affected,
        renew_requested=audit_config.renew,
    )

    logger.info("Finished analyzing certificates, results:")
    for line in format_summary_lines(summary):
        logger.info(line)

    if not affected:
        return summary
    if not audit_config.renew:
        logger.info("Will NOT trigger a renewal as --renew set to false")
        return summary

    logger.info("Will now attempt to renew the following certificates:")
    for line in format_affected_list(affected):
        logger.info(line)
    logger.warning(
        f"!!!!! Will now attempt to renew {len(affected)} certificates, "
        f"waiting {audit_config.safety_delay:g}s... !!!!!"
    )
    wait_or_cancel(audit_config.safety_delay, cancel)

    renewed = set()
    for cert in affected.values():
        if cert.key in renewed:
            continue
        raise_if_cancelled(cancel)
        logger.info(f"Triggering renewal of Certificate {cert.key}")
        try:
            result = renew_certificate(
                cluster,
                cert,
                poll_interval=audit_config.poll_interval,
                poll_timeout=audit_config.poll_timeout,
                cancel=cancel,
            )
        except AuditCancelled:
            raise
        except Exception as e:
            logger.error(f"Failed to renew certificate {cert.key}: {e}")
            raise
        renewed.add(cert.key)
        summary.renewals.append(result)

    return summary
