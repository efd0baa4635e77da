"""Decide whether a container image is routed through the pull-through cache.

The registry catalog is an ordered list of source registry prefixes. Each
entry becomes a matcher:

  • ``docker.io/``            → :class:`DockerHubMatcher` (normalizes short forms first)
  • ``*.dkr.ecr.*`` hostnames → :class:`EcrMatcher` (foreign ECR re-rooted at the cache root)
  • any other registry host   → :class:`PrefixMatcher` (registry kept as a path component)

Entries without a registry host (``myorg/``) are ignored with a warning.

Matchers are tried in configured order and the first one that accepts the
image wins, even when a later entry would also match.

Everything here is immutable after construction and safe to share between
concurrent requests.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

from ecr_pullthrough_webhook.config import DOCKER_HUB_REGISTRY
from ecr_pullthrough_webhook.images import (
    is_docker_hub,
    looks_like_host,
    normalize_docker_hub_image,
)

logger = logging.getLogger(__name__)

ECR_HOST_MARKER = ".dkr.ecr."


def is_ecr_registry(registry: str) -> bool:
    """True if *registry* is an ECR endpoint hostname."""
    return ECR_HOST_MARKER in registry


@dataclass(frozen=True)
class RewriteDecision:
    """Outcome of running one image through the catalog."""

    original_image: str
    new_image: str
    matched: bool

    @classmethod
    def no_match(cls, image: str) -> "RewriteDecision":
        return cls(original_image=image, new_image=image, matched=False)


# ──────────────────────────── Matchers ────────────────────────────────────────


@dataclass(frozen=True)
class Matcher(ABC):
    """One catalog entry. ``rewrite`` returns the cached image or None."""

    prefix: str

    @abstractmethod
    def rewrite(self, image: str, cache_hostname: str) -> str | None:
        ...


@dataclass(frozen=True)
class DockerHubMatcher(Matcher):
    prefix: str = DOCKER_HUB_REGISTRY

    def rewrite(self, image: str, cache_hostname: str) -> str | None:
        if not is_docker_hub(image):
            return None
        return cache_hostname + normalize_docker_hub_image(image)


@dataclass(frozen=True)
class EcrMatcher(Matcher):
    def rewrite(self, image: str, cache_hostname: str) -> str | None:
        if not image.startswith(self.prefix):
            return None
        # Foreign account / region is dropped; the repository path is kept verbatim.
        return cache_hostname + image[len(self.prefix):]


@dataclass(frozen=True)
class PrefixMatcher(Matcher):
    def rewrite(self, image: str, cache_hostname: str) -> str | None:
        if not image.startswith(self.prefix):
            return None
        return cache_hostname + image


def matcher_for(registry: str) -> Matcher | None:
    """Pick the matcher variant for a normalized catalog entry.

    Returns None when the entry does not start with a registry host
    (``myorg/``): images under such a prefix are Docker Hub images and only
    the ``docker.io/`` entry may claim them.
    """
    if registry == DOCKER_HUB_REGISTRY:
        return DockerHubMatcher()
    if not looks_like_host(registry.partition("/")[0]):
        return None
    if is_ecr_registry(registry):
        return EcrMatcher(prefix=registry)
    return PrefixMatcher(prefix=registry)


# ──────────────────────────── Catalog ─────────────────────────────────────────


@dataclass(frozen=True)
class RegistryCatalog:
    """Ordered matchers plus the destination cache hostname.

    Parameters
    ----------
    matchers : tuple[Matcher, ...]
        Evaluated in order; first match wins.
    cache_hostname : str
        ``<account>.dkr.ecr.<region>.amazonaws.com/``.
    """

    matchers: tuple[Matcher, ...]
    cache_hostname: str

    @classmethod
    def from_registries(cls, registries: Iterable[str], cache_hostname: str) -> "RegistryCatalog":
        matchers: list[Matcher] = []
        for registry in registries:
            matcher = matcher_for(registry)
            if matcher is None:
                logger.warning("Ignoring registry %s: it does not start with a registry host", registry)
                continue
            matchers.append(matcher)
        return cls(matchers=tuple(matchers), cache_hostname=cache_hostname)

    @property
    def registries(self) -> list[str]:
        return [m.prefix for m in self.matchers]

    def decide(self, image: str) -> RewriteDecision:
        """Return the rewrite decision for a single image string."""
        if not image:
            return RewriteDecision.no_match(image)
        # Already served from the cache: rewriting again would nest the prefix.
        if image.startswith(self.cache_hostname):
            return RewriteDecision.no_match(image)

        for matcher in self.matchers:
            new_image = matcher.rewrite(image, self.cache_hostname)
            if new_image is not None:
                logger.debug("Image %s matched %s → %s", image, matcher.prefix, new_image)
                return RewriteDecision(original_image=image, new_image=new_image, matched=True)
        return RewriteDecision.no_match(image)
