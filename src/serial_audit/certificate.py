"""Build the serial number index of cluster Certificates."""

import logging
import re
import warnings
from typing import Dict, Iterable, List

from cryptography import x509
from cryptography.utils import CryptographyDeprecationWarning

from serial_audit.models import CertificateResource, IndexResult, SecretResource, SkippedCertificate
from serial_audit.serial import serial_key

logger = logging.getLogger(__name__)

TLS_CERT_KEY = "tls.crt"

_PEM_CERT_PATTERN = re.compile(
    rb"-----BEGIN CERTIFICATE-----(.*?)-----END CERTIFICATE-----", re.DOTALL
)


def _first_pem_certificate(data: bytes) -> bytes:
    """Return the first PEM certificate block, or empty bytes if there is none."""
    match = _PEM_CERT_PATTERN.search(data)
    if not match:
        return b""
    return match.group(0) + b"\n"


def decode_certificate_bytes(data: bytes) -> x509.Certificate:
    """
    Decode the leaf certificate stored in a TLS secret.

    The secret normally holds a PEM bundle with the leaf first; DER is
    accepted as a fallback.

    Args:
        data: Raw bytes of the ``tls.crt`` entry

    Returns:
        The first certificate in the data

    Raises:
        ValueError: If the data holds no decodable certificate
    """
    # Certificates with non-positive serials still load, but cryptography warns about them
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", CryptographyDeprecationWarning)
        pem_block = _first_pem_certificate(data)
        if pem_block:
            return x509.load_pem_x509_certificate(pem_block)
        return x509.load_der_x509_certificate(data)


def make_secrets_map(secrets: Iterable[SecretResource]) -> Dict[str, SecretResource]:
    """Key secrets by ``namespace/name``."""
    return {secret.key: secret for secret in secrets}


def build_serial_index(
    certificates: Iterable[CertificateResource],
    secrets: Iterable[SecretResource],
) -> IndexResult:
    """
    Map the serial number of each Certificate's issued certificate to the Certificate.

    Certificates whose secret is missing, empty or undecodable are recorded
    as skipped and left out of the index.

    Args:
        certificates: All Certificate resources from one cluster snapshot
        secrets: All Secret resources from the same snapshot

    Returns:
        IndexResult
    """
    secrets_map = make_secrets_map(secrets)
    result = IndexResult()
    skipped: List[SkippedCertificate] = result.skipped

    for cert in certificates:
        logger.info(f"+++ Checking Secret resource for Certificate {cert.key}")
        secret = secrets_map.get(f"{cert.namespace}/{cert.secret_name}")
        if secret is None:
            reason = f"Secret {cert.secret_name!r} not found"
            logger.warning(f"Unable to find Secret resource {cert.secret_name!r} for Certificate {cert.key}, skipping...")
            skipped.append(SkippedCertificate(certificate=cert, reason=reason))
            continue

        cert_data = secret.data.get(TLS_CERT_KEY)
        if not cert_data:
            reason = f"Secret {cert.secret_name!r} has no data for key {TLS_CERT_KEY!r}"
            logger.warning(
                f"Secret {cert.secret_name!r} does not contain any data for key {TLS_CERT_KEY!r} "
                f"(Certificate {cert.key}), skipping..."
            )
            skipped.append(SkippedCertificate(certificate=cert, reason=reason))
            continue

        try:
            x509_cert = decode_certificate_bytes(cert_data)
        except ValueError as e:
            reason = f"failed to decode x509 certificate data: {e}"
            logger.warning(
                f"Failed to decode x509 certificate data in Secret {cert.secret_name!r} "
                f"(Certificate {cert.key}): {e}, skipping..."
            )
            skipped.append(SkippedCertificate(certificate=cert, reason=reason))
            continue

        key = serial_key(x509_cert.serial_number)
        previous = result.index.get(key)
        if previous is not None and previous.key != cert.key:
            logger.warning(f"Certificates {previous.key} and {cert.key} share serial number {key}; keeping {cert.key}")
        result.index[key] = cert
        logger.debug(f"Certificate {cert.key} has serial number {key}")

    return result
