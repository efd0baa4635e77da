"""Collect image rewrites into a JSON Patch."""

from __future__ import annotations

import base64
import json

from ecr_pullthrough_webhook.models import PatchOperation
from ecr_pullthrough_webhook.rewrite import RewriteDecision


class PatchBuilder:
    """Ordered list of ``replace`` operations for one admission request.

    The API server applies operations positionally, so they are kept in the
    order they were added.
    """

    def __init__(self) -> None:
        self._operations: list[PatchOperation] = []

    def __len__(self) -> int:
        return len(self._operations)

    @property
    def operations(self) -> list[PatchOperation]:
        return list(self._operations)

    def add(self, path: str, decision: RewriteDecision) -> bool:
        """Append a replace for *path* if *decision* matched. Returns whether one was added."""
        if not decision.matched:
            return False
        self._operations.append(PatchOperation(path=path, value=decision.new_image))
        return True

    def to_json(self) -> bytes:
        return json.dumps([op.model_dump() for op in self._operations]).encode("utf-8")

    def encode(self) -> str:
        """Base64 of the JSON array, as ``AdmissionResponse.patch`` carries it."""
        return base64.b64encode(self.to_json()).decode("ascii")
