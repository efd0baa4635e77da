"""Admission pipeline: AdmissionReview in, AdmissionReview with an image patch out.

The pipeline is a single pass with no retries:

  decode review → extract Pod → walk containers, init containers and
  ephemeral containers in index order → one ``replace`` per rewritten image →
  allowed response with the JSON Patch → encode review.

It never denies a Pod. An image that matches nothing is simply left alone.
The only failure is input that cannot be decoded, which the HTTP layer turns
into a 500.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from ecr_pullthrough_webhook.models import (
    PATCH_TYPE_JSON_PATCH,
    AdmissionRequest,
    AdmissionResponse,
    AdmissionReview,
    Pod,
    Status,
)
from ecr_pullthrough_webhook.patch import PatchBuilder
from ecr_pullthrough_webhook.rewrite import RegistryCatalog

logger = logging.getLogger(__name__)


class DecodeError(ValueError):
    """The admission review or its embedded Pod is malformed."""


class AdmissionPipeline:
    """Turns a raw admission review into the mutated review to send back.

    Parameters
    ----------
    catalog : RegistryCatalog
        Registry matchers and cache hostname. Read-only, so one pipeline can
        serve concurrent requests.
    """

    def __init__(self, catalog: RegistryCatalog) -> None:
        self.catalog = catalog

    # ── Stages ────────────────────────────────────────────────────────────

    def decode(self, body: bytes | str) -> AdmissionReview:
        try:
            review = AdmissionReview.model_validate_json(body)
        except ValidationError as exc:
            raise DecodeError(f"unmarshaling request failed: {exc}") from exc
        if review.request is None:
            raise DecodeError("admission review carries no request")
        return review

    def extract_pod(self, request: AdmissionRequest) -> Pod:
        try:
            return Pod.model_validate(request.object)
        except ValidationError as exc:
            raise DecodeError(f"unable to unmarshal pod object: {exc}") from exc

    def build_patch(self, pod: Pod) -> PatchBuilder:
        """Walk every container list in patch order and collect the rewrites."""
        builder = PatchBuilder()
        for base_path, containers in pod.container_groups():
            for i, container in enumerate(containers):
                decision = self.catalog.decide(container.image)
                if builder.add(f"{base_path}/{i}/image", decision):
                    logger.info(
                        "Patched image namespace=%s pod=%s original=%s new=%s",
                        pod.metadata.namespace,
                        pod.display_name,
                        decision.original_image,
                        decision.new_image,
                    )
        return builder

    def respond(self, request: AdmissionRequest, builder: PatchBuilder) -> AdmissionResponse:
        return AdmissionResponse(
            uid=request.uid,
            allowed=True,
            patch_type=PATCH_TYPE_JSON_PATCH,
            patch=builder.encode(),
            result=Status(status="Success"),
        )

    # ── Entry point ───────────────────────────────────────────────────────

    def review(self, body: bytes | str) -> AdmissionReview:
        """Run the pipeline and return the response envelope."""
        incoming = self.decode(body)
        request = incoming.request
        pod = self.extract_pod(request)
        logger.info(
            "Received mutation request uid=%s namespace=%s pod=%s",
            request.uid,
            pod.metadata.namespace or request.namespace,
            pod.display_name,
        )

        builder = self.build_patch(pod)
        response = self.respond(request, builder)
        logger.info(
            "Mutation complete uid=%s namespace=%s pod=%s patches=%d",
            request.uid,
            pod.metadata.namespace or request.namespace,
            pod.display_name,
            len(builder),
        )
        return AdmissionReview(
            api_version=incoming.api_version,
            kind=incoming.kind,
            response=response,
        )

    def mutate(self, body: bytes | str) -> bytes:
        """Decode *body*, rewrite images and return the encoded review.

        Raises ``DecodeError`` if the review or Pod cannot be decoded.
        """
        review = self.review(body)
        return review.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
