"""Shared test fixtures."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from ecr_pullthrough_webhook.admission import AdmissionPipeline
from ecr_pullthrough_webhook.rewrite import RegistryCatalog

CACHE = "12345.dkr.ecr.us-west-2.amazonaws.com/"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment out of Settings defaults."""
    for name in (
        "ECR_AWS_ACCOUNT_ID",
        "ECR_AWS_REGION",
        "ECR_REGISTRIES",
        "WEBHOOK_HOST",
        "WEBHOOK_PORT",
        "WEBHOOK_CERT_FILE",
        "WEBHOOK_KEY_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def catalog() -> RegistryCatalog:
    """ghcr.io then Docker Hub, cached in 12345 / us-west-2."""
    return RegistryCatalog.from_registries(["ghcr.io/", "docker.io/"], CACHE)


@pytest.fixture()
def pipeline(catalog: RegistryCatalog) -> AdmissionPipeline:
    return AdmissionPipeline(catalog)


@pytest.fixture()
def make_review() -> Callable[..., bytes]:
    """Build a raw AdmissionReview body around a Pod spec."""

    def _make(
        spec: dict[str, Any] | None = None,
        uid: str = "test-uid",
        api_version: str = "admission.k8s.io/v1",
    ) -> bytes:
        pod = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"name": "test-pod", "namespace": "default"},
            "spec": spec or {},
        }
        review = {
            "apiVersion": api_version,
            "kind": "AdmissionReview",
            "request": {
                "uid": uid,
                "kind": {"group": "", "version": "v1", "kind": "Pod"},
                "namespace": "default",
                "operation": "CREATE",
                "object": pod,
            },
        }
        return json.dumps(review).encode()

    return _make


@pytest.fixture()
def patch_of() -> Callable[[bytes | dict[str, Any]], list[dict[str, str]]]:
    """Decode the JSON Patch carried by an encoded review."""

    def _decode(mutated: bytes | dict[str, Any]) -> list[dict[str, str]]:
        review = json.loads(mutated) if isinstance(mutated, bytes) else mutated
        return json.loads(base64.b64decode(review["response"]["patch"]))

    return _decode


@pytest.fixture()
def write_cert_pair() -> Callable[..., None]:
    """Write a self-signed certificate and key for *common_name*."""

    def _write(cert_path: Path, key_path: Path, common_name: str = "webhook.local") -> None:
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        now = datetime.now(timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - timedelta(minutes=1))
            .not_valid_after(now + timedelta(days=1))
            .add_extension(x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False)
            .sign(private_key, hashes.SHA256())
        )
        cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
        key_path.write_bytes(
            private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )

    return _write
