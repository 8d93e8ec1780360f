"""
Image reference domain objects for regsync.

An ImageReference names one image in one transport: a tag in a registry
repository (``docker://registry.example.com/ns/app:1.0``) or an image
directory on disk (``dir:/media/usb/app:1.0``). ImageLocation is the
parsed form of a SOURCE or DESTINATION argument, which may name a whole
repository or directory tree rather than a single image.
"""

import posixpath
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..errors import ReferenceParseError, TagParseError

DOCKER = "docker"
DIRECTORY = "dir"
TRANSPORTS = (DOCKER, DIRECTORY)

DEFAULT_DOMAIN = "docker.io"
OFFICIAL_NAMESPACE = "library"

_COMPONENT_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_DOMAIN_RE = re.compile(
    r"^(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])"
    r"(?:\.(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9]))*"
    r"(?::[0-9]+)?$"
)
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")


@dataclass(frozen=True)
class ImageReference:
    """A single image in a transport. Immutable once resolved."""
    transport: str
    repository: str = ""  # docker: "domain/path", unused for dir
    tag: Optional[str] = None
    path: Optional[str] = None  # dir: filesystem path, unused for docker

    @property
    def is_directory(self) -> bool:
        return self.transport == DIRECTORY

    @property
    def domain(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def repo_path(self) -> str:
        """Repository path without the registry domain."""
        parts = self.repository.split("/", 1)
        return parts[1] if len(parts) > 1 else ""

    @property
    def tagged_name(self) -> str:
        """``domain/path:tag`` for docker references, the path for dir."""
        if self.is_directory:
            return self.path or ""
        if self.tag:
            return f"{self.repository}:{self.tag}"
        return self.repository

    def within_transport(self) -> str:
        if self.is_directory:
            return self.path or ""
        return f"//{self.tagged_name}"

    def __str__(self) -> str:
        return f"{self.transport}:{self.within_transport()}"


@dataclass(frozen=True)
class ImageLocation:
    """A parsed SOURCE or DESTINATION locator."""
    transport: str
    host: str = ""
    path: str = ""

    @property
    def is_directory(self) -> bool:
        return self.transport == DIRECTORY

    @property
    def docker_name(self) -> str:
        """``host/path`` with the leading slash removed from path."""
        return posixpath.join(self.host, self.path.lstrip("/")).rstrip("/")

    def __str__(self) -> str:
        if self.is_directory:
            return f"dir:{self.path}"
        return f"docker://{self.docker_name}"


def parse_location(locator: str) -> ImageLocation:
    """
    Parse a ``docker://host/path`` or ``dir:/path`` locator.

    Raises:
        ReferenceParseError: unknown transport or empty location
    """
    if not locator or ":" not in locator:
        raise ReferenceParseError(
            f"Invalid locator '{locator}': expected 'docker://...' or 'dir:...'"
        )

    scheme, _, rest = locator.partition(":")
    if scheme not in TRANSPORTS:
        raise ReferenceParseError(f"Invalid transport '{scheme}' in '{locator}'")

    if scheme == DIRECTORY:
        dir_path = rest[2:] if rest.startswith("//") else rest
        if not dir_path:
            raise ReferenceParseError(f"Missing directory path in '{locator}'")
        return ImageLocation(transport=DIRECTORY, path=dir_path)

    if not rest.startswith("//"):
        raise ReferenceParseError(f"Invalid registry locator '{locator}': expected 'docker://'")
    host, slash, path = rest[2:].partition("/")
    if not host:
        raise ReferenceParseError(f"Missing registry host in '{locator}'")
    return ImageLocation(transport=DOCKER, host=host, path=slash + path)


def split_tag(name: str) -> Tuple[str, Optional[str]]:
    """Split ``repo:tag`` into its parts; the tag is None when absent."""
    last_slash = name.rfind("/")
    colon = name.rfind(":")
    if colon > last_slash:
        return name[:colon], name[colon + 1:]
    return name, None


def normalize_repository(name: str) -> str:
    """
    Validate a repository name and qualify it with a registry domain.

    ``busybox`` becomes ``docker.io/library/busybox``; names whose first
    component looks like a host (contains ``.`` or ``:`` or is
    ``localhost``) keep it as the domain.
    """
    if not name:
        raise ReferenceParseError("Empty repository name")

    components = name.split("/")
    first = components[0]
    if len(components) > 1 and ("." in first or ":" in first or first == "localhost"):
        domain, path_components = first, components[1:]
        if not _DOMAIN_RE.match(domain):
            raise ReferenceParseError(f"Invalid registry domain '{domain}' in '{name}'")
    else:
        domain, path_components = DEFAULT_DOMAIN, components
        if len(path_components) == 1:
            path_components = [OFFICIAL_NAMESPACE] + path_components

    for component in path_components:
        if not _COMPONENT_RE.match(component):
            raise ReferenceParseError(f"Invalid repository name component '{component}' in '{name}'")

    return "/".join([domain] + path_components)


def validate_tag(tag: str) -> str:
    if not _TAG_RE.match(tag):
        raise TagParseError(tag, "must match [A-Za-z0-9_][A-Za-z0-9_.-]{0,127}")
    return tag


def parse_docker_reference(text: str) -> ImageReference:
    """
    Parse ``[//]name[:tag]`` into a docker ImageReference.

    Digest-pinned references are rejected: syncing works on tags.
    """
    name = text[2:] if text.startswith("//") else text
    if "@" in name:
        raise ReferenceParseError(f"Digest references are not supported: '{text}'")

    repository, tag = split_tag(name)
    repository = normalize_repository(repository)
    if tag is not None:
        validate_tag(tag)
    return ImageReference(transport=DOCKER, repository=repository, tag=tag)


def docker_reference(repository: str, tag: str) -> ImageReference:
    """Reference for ``tag`` inside an already normalized repository."""
    return ImageReference(transport=DOCKER, repository=repository, tag=validate_tag(tag))


def directory_reference(path: str) -> ImageReference:
    if not path:
        raise ReferenceParseError("Empty directory path")
    return ImageReference(transport=DIRECTORY, path=path)
