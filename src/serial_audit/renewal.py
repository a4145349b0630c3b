"""Trigger cert-manager re-issuance of a single Certificate."""

import logging
import threading
from typing import List, Optional

from serial_audit.cluster import ClusterClient
from serial_audit.models import CertificateResource, RenewalResult, RenewalStatus
from serial_audit.polling import PollOutcome, poll_until

logger = logging.getLogger(__name__)

# cert-manager compares this annotation with the Certificate's issuerRef; a
# mismatch makes it believe the issuer changed and issue once more.
RENEWAL_ANNOTATION_KEY = "cert-manager.io/issuer-name"
RENEWAL_ANNOTATION_VALUE = "force-renewal-triggered"


class RenewalError(Exception):
    """Raised when a renewal was attempted but could not be confirmed."""


def renew_certificate(
    cluster: ClusterClient,
    cert: CertificateResource,
    poll_interval: float = 1.0,
    poll_timeout: float = 60.0,
    cancel: Optional[threading.Event] = None,
) -> RenewalResult:
    """
    Trigger a one-time re-issuance of ``cert`` and wait for cert-manager to pick it up.

    If a CertificateRequest for the Certificate is still pending, nothing is
    written and the result is IN_PROGRESS. Completed requests are deleted
    first so the new one can be told apart.

    Args:
        cluster: Cluster API client
        cert: Certificate to renew
        poll_interval: Seconds between checks for the new CertificateRequest
        poll_timeout: Seconds to wait for the new CertificateRequest

    Returns:
        RenewalResult

    Raises:
        ClusterError: If any API call fails, including a write conflict
        RenewalError: If no new CertificateRequest appears before the timeout
        AuditCancelled: If the run is cancelled while waiting
    """
    deleted: List[str] = []
    for req in cluster.list_certificate_requests(cert.namespace):
        if not req.is_controlled_by(cert):
            continue

        if req.is_pending:
            logger.info(
                f"Found existing CertificateRequest {req.key} for Certificate {cert.key} - "
                f"skipping triggering a renewal..."
            )
            return RenewalResult(certificate=cert, status=RenewalStatus.IN_PROGRESS, deleted_requests=deleted)

        if cluster.delete_certificate_request(req.namespace, req.name):
            logger.info(f"Deleted old CertificateRequest {req.key} for Certificate {cert.key}")
        else:
            logger.debug(f"Old CertificateRequest {req.key} was already deleted")
        deleted.append(req.key)

    # Always read the Secret fresh so the write carries a current resourceVersion
    secret = cluster.get_secret(cert.namespace, cert.secret_name)
    secret.annotations[RENEWAL_ANNOTATION_KEY] = RENEWAL_ANNOTATION_VALUE
    cluster.update_secret(secret)
    logger.info(f"Triggered renewal of Certificate {cert.key} - waiting for new CertificateRequest resource to be created...")

    found: List[str] = []

    def _new_request_exists() -> bool:
        for req in cluster.list_certificate_requests(cert.namespace):
            # A deleted request can still be listed while its finalizers run
            if req.is_controlled_by(cert) and req.key not in deleted:
                found.append(req.key)
                return True
        return False

    outcome = poll_until(_new_request_exists, interval=poll_interval, timeout=poll_timeout, cancel=cancel)
    if outcome is PollOutcome.TIMEOUT:
        raise RenewalError(
            f"renewal of Certificate {cert.key} was triggered but no new CertificateRequest "
            f"appeared within {poll_timeout:g}s"
        )

    logger.info(f"CertificateRequest {found[0]} found, renewal in progress!")
    return RenewalResult(
        certificate=cert,
        status=RenewalStatus.RENEWED,
        deleted_requests=deleted,
        new_request=found[0],
    )
