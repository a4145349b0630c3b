"""Shared pytest fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from serial_audit.cluster import ClusterError
from serial_audit.models import CertificateRequestResource, CertificateResource, SecretResource


@pytest.fixture(scope="session")
def signing_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def make_cert_pem(signing_key):
    """Return a factory minting a self-signed PEM certificate with a given serial."""

    def _make(serial: int, common_name: str = "example.com") -> bytes:
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        now = datetime.now(timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(signing_key.public_key())
            .serial_number(serial)
            .not_valid_before(now - timedelta(days=1))
            .not_valid_after(now + timedelta(days=90))
            .sign(signing_key, hashes.SHA256())
        )
        return cert.public_bytes(serialization.Encoding.PEM)

    return _make


class FakeCluster:
    """
    In-memory stand-in for ClusterClient.

    When ``controller_creates_requests`` is set, updating a Secret behaves
    like cert-manager noticing the annotation: a pending CertificateRequest
    owned by the matching Certificate appears.
    """

    def __init__(self, controller_creates_requests: bool = True) -> None:
        self.certificates: List[CertificateResource] = []
        self.secrets: Dict[str, SecretResource] = {}
        self.requests: List[CertificateRequestResource] = []
        self.controller_creates_requests = controller_creates_requests
        self.secret_updates: List[SecretResource] = []
        self.deleted_requests: List[str] = []
        self.update_error: Optional[ClusterError] = None
        self.list_error: Optional[ClusterError] = None

    def add_certificate(self, namespace: str, name: str, cert_pem: Optional[bytes], secret_name: Optional[str] = None):
        secret_name = secret_name or f"{name}-tls"
        cert = CertificateResource(namespace=namespace, name=name, uid=f"uid-{namespace}-{name}", secret_name=secret_name)
        self.certificates.append(cert)
        if cert_pem is not None:
            self.secrets[f"{namespace}/{secret_name}"] = SecretResource(
                namespace=namespace,
                name=secret_name,
                data={"tls.crt": cert_pem},
                resource_version="1",
            )
        return cert

    def add_request(self, cert: CertificateResource, name: str, issued: bool) -> CertificateRequestResource:
        req = CertificateRequestResource(
            namespace=cert.namespace,
            name=name,
            uid=f"uid-req-{name}",
            controller_uid=cert.uid,
            certificate=b"LS0tLS1CRUdJTg==" if issued else b"",
        )
        self.requests.append(req)
        return req

    def list_certificates(self) -> List[CertificateResource]:
        if self.list_error:
            raise self.list_error
        return list(self.certificates)

    def list_secrets(self) -> List[SecretResource]:
        return list(self.secrets.values())

    def list_certificate_requests(self, namespace: str) -> List[CertificateRequestResource]:
        return [req for req in self.requests if req.namespace == namespace]

    def delete_certificate_request(self, namespace: str, name: str) -> bool:
        for req in list(self.requests):
            if req.namespace == namespace and req.name == name:
                self.requests.remove(req)
                self.deleted_requests.append(req.key)
                return True
        return False

    def get_secret(self, namespace: str, name: str) -> SecretResource:
        secret = self.secrets.get(f"{namespace}/{name}")
        if secret is None:
            raise ClusterError(f"error retrieving Secret {namespace}/{name}: 404 Not Found", status=404)
        return SecretResource(
            namespace=secret.namespace,
            name=secret.name,
            data=dict(secret.data),
            annotations=dict(secret.annotations),
            resource_version=secret.resource_version,
        )

    def update_secret(self, secret: SecretResource) -> None:
        if self.update_error:
            raise self.update_error
        self.secret_updates.append(secret)
        self.secrets[secret.key] = secret
        if not self.controller_creates_requests:
            return
        for cert in self.certificates:
            if cert.namespace == secret.namespace and cert.secret_name == secret.name:
                self.add_request(cert, f"{cert.name}-{len(self.secret_updates)}", issued=False)


@pytest.fixture
def fake_cluster():
    return FakeCluster()
