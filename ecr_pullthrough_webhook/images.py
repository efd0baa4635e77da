"""Parse container image references and canonicalise the Docker Hub short forms.

Pod specs rarely spell out Docker Hub in full: ``nginx``, ``owner/image`` and
``docker.io/nginx`` all mean images under ``docker.io``. Before a Docker Hub
image can be re-rooted under the cache it has to be written one way only, so
that the cache sees a single repository per upstream image.

Only the leading registry host is interpreted. Tags and digests are opaque and
pass through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass

DOCKER_HUB_HOST = "docker.io"
LIBRARY_NAMESPACE = "library/"


@dataclass(frozen=True)
class ImageReference:
    """A raw image string split into registry host and repository path.

    ``host`` is empty when the reference names no registry (implicit Docker
    Hub). ``path`` keeps any ``:tag`` or ``@digest`` suffix.
    """

    host: str
    path: str

    @property
    def is_implicit(self) -> bool:
        return not self.host

    def __str__(self) -> str:
        return f"{self.host}/{self.path}" if self.host else self.path


def looks_like_host(segment: str) -> bool:
    # "docker.io", "localhost:5000" and "1234.dkr.ecr..." are hosts; "owner" is not.
    return "." in segment or ":" in segment


def parse_image(image: str) -> ImageReference:
    """Split *image* at the first ``/`` into host and path."""
    first, sep, rest = image.partition("/")
    if sep and looks_like_host(first):
        return ImageReference(host=first, path=rest)
    return ImageReference(host="", path=image)


def is_docker_hub(image: str) -> bool:
    ref = parse_image(image)
    return ref.is_implicit or ref.host == DOCKER_HUB_HOST


def normalize_docker_hub_image(image: str) -> str:
    """Return *image* in fully-qualified ``docker.io/...`` form.

    ``nginx`` becomes ``docker.io/library/nginx``, ``owner/image`` becomes
    ``docker.io/owner/image`` and ``docker.io/nginx`` gains its ``library/``
    namespace. Images on any other registry are returned unchanged.
    """
    ref = parse_image(image)
    if ref.is_implicit:
        if "/" not in ref.path:
            return f"{DOCKER_HUB_HOST}/{LIBRARY_NAMESPACE}{ref.path}"
        return f"{DOCKER_HUB_HOST}/{ref.path}"
    if ref.host == DOCKER_HUB_HOST and "/" not in ref.path:
        return f"{DOCKER_HUB_HOST}/{LIBRARY_NAMESPACE}{ref.path}"
    return image
