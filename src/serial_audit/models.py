"""Data models for cluster resources and audit results."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional


@dataclass
class CertificateResource:
    """A cert-manager Certificate, reduced to the fields the audit uses."""

    namespace: str
    name: str
    uid: str
    secret_name: str

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class SecretResource:
    """A Kubernetes Secret with its data already base64-decoded."""

    namespace: str
    name: str
    data: Dict[str, bytes] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    resource_version: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class CertificateRequestResource:
    """A cert-manager CertificateRequest (one issuance attempt)."""

    namespace: str
    name: str
    uid: str
    controller_uid: Optional[str] = None  # UID of the owner reference with controller=true
    certificate: bytes = b""  # status.certificate, empty until issued

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_pending(self) -> bool:
        return len(self.certificate) == 0

    def is_controlled_by(self, cert: CertificateResource) -> bool:
        return self.controller_uid is not None and self.controller_uid == cert.uid


@dataclass
class SkippedCertificate:
    """A Certificate that could not be checked."""

    certificate: CertificateResource
    reason: str


@dataclass
class IndexResult:
    """Certificates keyed by canonical serial, plus the ones that were skipped."""

    index: Dict[str, CertificateResource] = field(default_factory=dict)
    skipped: List[SkippedCertificate] = field(default_factory=list)


@dataclass
class ScanResult:
    """Outcome of streaming the affected serials file against an index."""

    affected: Dict[str, CertificateResource] = field(default_factory=dict)  # keyed by serial as written in the file
    lines_read: int = 0
    malformed_lines: int = 0


class RenewalStatus(str, Enum):
    """Terminal states of a successful renewal trigger."""

    RENEWED = "RENEWED"
    IN_PROGRESS = "IN_PROGRESS"


@dataclass
class RenewalResult:
    """Result of triggering renewal for one Certificate."""

    certificate: CertificateResource
    status: RenewalStatus
    deleted_requests: List[str] = field(default_factory=list)
    new_request: Optional[str] = None


@dataclass
class AuditConfig:
    """Settings for one audit run, built once from the command line."""

    serials_file: Path
    renew: bool = False
    safety_delay: float = 2.0  # pause between listing affected certs and renewing them
    renew_warning_delay: float = 5.0  # pause at startup when renewals are enabled
    poll_interval: float = 1.0
    poll_timeout: float = 60.0


@dataclass
class AuditSummary:
    """Overall result of an audit run."""

    total: int
    skipped: int
    unaffected: int
    affected: Dict[str, CertificateResource] = field(default_factory=dict)
    renewals: List[RenewalResult] = field(default_factory=list)
    renew_requested: bool = False
