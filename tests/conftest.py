"""
Shared fixtures for regsync tests.
"""

import json
import threading
import time
from pathlib import Path

import pytest

from regsync.domain.manifest import ImageInspectInfo
from regsync.errors import ImageNotFoundError, TransientTransportError


class FakeTransport:
    """
    In-memory image transport.

    Tags come from ``tags`` (repository -> tag list), inspection returns
    ``images[str(ref)]`` or ``default_info``, and copies into directories
    write a manifest.json holding the source layers, like the directory
    transport does.
    """

    def __init__(self, tags=None, default_info=None, fail_copies=None, delay=0.0):
        self.tags = tags or {}
        self.images = {}
        self.default_info = default_info or ImageInspectInfo(
            architecture="amd64", layers=("sha256:aaa", "sha256:bbb")
        )
        self.fail_copies = fail_copies or {}  # str(source) -> number of failures
        self.delay = delay
        self.copies = []
        self.inspected = []
        self.contexts = []
        self._lock = threading.Lock()
        self.active = 0
        self.peak_active = 0

    def list_tags(self, ref, ctx, deadline=None):
        self.contexts.append(ctx)
        if ref.repository not in self.tags:
            raise ImageNotFoundError(f"repository {ref.repository} not found")
        return list(self.tags[ref.repository])

    def inspect(self, ref, ctx, deadline=None):
        if deadline is not None:
            deadline.remaining()
        with self._lock:
            self.inspected.append(str(ref))
        return self.images.get(str(ref), self.default_info)

    def copy(self, source, destination, options, deadline=None):
        if deadline is not None:
            deadline.remaining()
        with self._lock:
            self.active += 1
            self.peak_active = max(self.peak_active, self.active)
            self.copies.append((str(source), str(destination)))
        try:
            if self.delay:
                time.sleep(self.delay)
            with self._lock:
                remaining = self.fail_copies.get(str(source), 0)
                if remaining:
                    self.fail_copies[str(source)] = remaining - 1
                    raise TransientTransportError("connection reset by peer")
            if destination.is_directory:
                info = self.images.get(str(source), self.default_info)
                write_manifest(Path(destination.path), info.layers)
            return ""
        finally:
            with self._lock:
                self.active -= 1


def write_manifest(image_dir: Path, digests):
    """Write a directory-transport style manifest.json."""
    image_dir.mkdir(parents=True, exist_ok=True)
    manifest = {
        "schemaVersion": 2,
        "mediaType": "application/vnd.docker.distribution.manifest.v2+json",
        "config": {
            "mediaType": "application/vnd.docker.container.image.v1+json",
            "size": 1469,
            "digest": "sha256:config",
        },
        "layers": [
            {
                "mediaType": "application/vnd.docker.image.rootfs.diff.tar.gzip",
                "size": 100,
                "digest": digest,
            }
            for digest in digests
        ],
    }
    (image_dir / "manifest.json").write_text(json.dumps(manifest))
    return image_dir / "manifest.json"


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def sync_config():
    """Config dict that keeps SyncService away from ~/.regsync."""
    return {'skopeo': {'path': 'skopeo'}, 'general': {'max_workers': 6}}
