"""Pydantic models for the admission review envelope and the Pod fields we rewrite."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_KIND = "AdmissionReview"
PATCH_TYPE_JSON_PATCH = "JSONPatch"


class _WireModel(BaseModel):
    """Base for Kubernetes wire objects: camelCase on the wire, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ──────────────────────────── Pod ─────────────────────────────────────────────


class Container(_WireModel):
    """The slice of a container spec the webhook cares about."""

    name: str = ""
    image: str = ""


class PodSpec(_WireModel):
    containers: list[Container] = Field(default_factory=list)
    init_containers: list[Container] = Field(default_factory=list, alias="initContainers")
    ephemeral_containers: list[Container] = Field(
        default_factory=list, alias="ephemeralContainers"
    )


class ObjectMeta(_WireModel):
    name: str = ""
    generate_name: str = Field(default="", alias="generateName")
    namespace: str = ""


class Pod(_WireModel):
    """A Pod as embedded in an admission request."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)

    @property
    def display_name(self) -> str:
        """Name for log lines; Pods created by controllers only carry generateName."""
        return self.metadata.name or self.metadata.generate_name

    def container_groups(self) -> list[tuple[str, list[Container]]]:
        """JSON-pointer base paths and their containers, in patch order."""
        return [
            ("/spec/containers", self.spec.containers),
            ("/spec/initContainers", self.spec.init_containers),
            ("/spec/ephemeralContainers", self.spec.ephemeral_containers),
        ]


# ──────────────────────────── Admission review ────────────────────────────────


class AdmissionRequest(_WireModel):
    uid: str = ""
    kind: dict[str, str] = Field(default_factory=dict)
    namespace: str = ""
    operation: str = ""
    object: Any = None


class Status(_WireModel):
    status: str = ""
    message: str | None = None


class AdmissionResponse(_WireModel):
    uid: str = ""
    allowed: bool = True
    patch_type: str | None = Field(default=None, alias="patchType")
    patch: str | None = Field(default=None, description="base64 encoded JSON Patch")
    result: Status | None = None


class AdmissionReview(_WireModel):
    """The request/response envelope exchanged with the API server."""

    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = ADMISSION_KIND
    request: AdmissionRequest | None = None
    response: AdmissionResponse | None = None


# ──────────────────────────── JSON Patch ──────────────────────────────────────


class PatchOperation(BaseModel):
    """One RFC 6902 operation; the webhook only ever replaces image strings."""

    model_config = ConfigDict(frozen=True)

    op: Literal["replace"] = "replace"
    path: str = Field(description="JSON pointer, e.g. /spec/containers/0/image")
    value: str
