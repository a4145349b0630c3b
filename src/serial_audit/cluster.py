"""Kubernetes API access for cert-manager Certificates, CertificateRequests and Secrets."""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import HTTPError

from serial_audit.models import CertificateRequestResource, CertificateResource, SecretResource

logger = logging.getLogger(__name__)

CERT_MANAGER_GROUP = "cert-manager.io"
CERTIFICATE_PLURAL = "certificates"
CERTIFICATE_REQUEST_PLURAL = "certificaterequests"


class ClusterError(Exception):
    """Raised when a Kubernetes API call fails."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


def load_kube_config(kubeconfig: Optional[str] = None, context: Optional[str] = None) -> None:
    """Load kubeconfig, falling back to the in-cluster service account."""
    try:
        config.load_kube_config(config_file=kubeconfig, context=context)
    except (ConfigException, OSError) as e:
        if kubeconfig or context:
            raise ClusterError(f"error loading kubeconfig: {e}") from e
        logger.debug(f"No usable kubeconfig ({e}), trying in-cluster configuration")
        try:
            config.load_incluster_config()
        except ConfigException as e2:
            raise ClusterError(f"error building API client: {e2}") from e2


def _decode_data(data: Optional[Dict[str, str]]) -> Dict[str, bytes]:
    decoded: Dict[str, bytes] = {}
    for key, value in (data or {}).items():
        try:
            decoded[key] = base64.b64decode(value or "")
        except (binascii.Error, ValueError):
            logger.debug(f"Secret data key {key!r} is not valid base64, ignoring it")
    return decoded


def _controller_uid(metadata: Dict[str, Any]) -> Optional[str]:
    for ref in metadata.get("ownerReferences") or []:
        if ref.get("controller"):
            return ref.get("uid")
    return None


def certificate_from_k8s_object(obj: Dict[str, Any]) -> CertificateResource:
    metadata = obj.get("metadata", {})
    return CertificateResource(
        namespace=metadata.get("namespace", ""),
        name=metadata.get("name", ""),
        uid=metadata.get("uid", ""),
        secret_name=(obj.get("spec") or {}).get("secretName", ""),
    )


def certificate_request_from_k8s_object(obj: Dict[str, Any]) -> CertificateRequestResource:
    metadata = obj.get("metadata", {})
    issued = (obj.get("status") or {}).get("certificate") or ""
    return CertificateRequestResource(
        namespace=metadata.get("namespace", ""),
        name=metadata.get("name", ""),
        uid=metadata.get("uid", ""),
        controller_uid=_controller_uid(metadata),
        # status.certificate is base64 in the API; only its presence matters here
        certificate=issued.encode("ascii", errors="replace"),
    )


def secret_from_v1_secret(secret: client.V1Secret) -> SecretResource:
    metadata = secret.metadata
    return SecretResource(
        namespace=metadata.namespace,
        name=metadata.name,
        data=_decode_data(secret.data),
        annotations=dict(metadata.annotations or {}),
        resource_version=metadata.resource_version,
    )


class ClusterClient:
    """
    Thin wrapper over the kubernetes client.

    Every call is synchronous and bounded by ``request_timeout``. API failures
    are raised as ClusterError; nothing is retried.
    """

    def __init__(
        self,
        core: client.CoreV1Api,
        custom_objects: client.CustomObjectsApi,
        api_version: str = "v1",
        request_timeout: float = 30.0,
    ) -> None:
        self.core = core
        self.custom_objects = custom_objects
        self.api_version = api_version
        self.request_timeout = request_timeout

    @classmethod
    def from_kubeconfig(
        cls,
        kubeconfig: Optional[str] = None,
        context: Optional[str] = None,
        api_version: str = "v1",
        request_timeout: float = 30.0,
    ) -> "ClusterClient":
        load_kube_config(kubeconfig, context)
        return cls(
            client.CoreV1Api(),
            client.CustomObjectsApi(),
            api_version=api_version,
            request_timeout=request_timeout,
        )

    def _call(self, description: str, func, *args, **kwargs):
        try:
            return func(*args, _request_timeout=self.request_timeout, **kwargs)
        except ApiException as e:
            raise ClusterError(f"error {description}: {e.status} {e.reason}", status=e.status) from e
        except HTTPError as e:
            raise ClusterError(f"error {description}: {e}") from e

    def list_certificates(self) -> List[CertificateResource]:
        result = self._call(
            "listing Certificate resources",
            self.custom_objects.list_cluster_custom_object,
            CERT_MANAGER_GROUP,
            self.api_version,
            CERTIFICATE_PLURAL,
        )
        return [certificate_from_k8s_object(item) for item in result.get("items", [])]

    def list_secrets(self) -> List[SecretResource]:
        result = self._call("listing Secret resources", self.core.list_secret_for_all_namespaces)
        return [secret_from_v1_secret(item) for item in result.items]

    def list_certificate_requests(self, namespace: str) -> List[CertificateRequestResource]:
        result = self._call(
            f"listing CertificateRequest resources in namespace {namespace}",
            self.custom_objects.list_namespaced_custom_object,
            CERT_MANAGER_GROUP,
            self.api_version,
            namespace,
            CERTIFICATE_REQUEST_PLURAL,
        )
        return [certificate_request_from_k8s_object(item) for item in result.get("items", [])]

    def delete_certificate_request(self, namespace: str, name: str) -> bool:
        """Delete a CertificateRequest. Returns False if it was already gone."""
        try:
            self._call(
                f"deleting CertificateRequest {namespace}/{name}",
                self.custom_objects.delete_namespaced_custom_object,
                CERT_MANAGER_GROUP,
                self.api_version,
                namespace,
                CERTIFICATE_REQUEST_PLURAL,
                name,
            )
        except ClusterError as e:
            if e.status == 404:
                return False
            raise
        return True

    def get_secret(self, namespace: str, name: str) -> SecretResource:
        secret = self._call(f"retrieving Secret {namespace}/{name}", self.core.read_namespaced_secret, name, namespace)
        return secret_from_v1_secret(secret)

    def update_secret(self, secret: SecretResource) -> None:
        """
        Write the secret's annotations back.

        The patch carries the resourceVersion that was read, so a concurrent
        modification fails with 409 Conflict instead of being overwritten.
        """
        body = {
            "metadata": {
                "annotations": secret.annotations,
                "resourceVersion": secret.resource_version,
            }
        }
        self._call(
            f"updating Secret {secret.namespace}/{secret.name}",
            self.core.patch_namespaced_secret,
            secret.name,
            secret.namespace,
            body,
        )
