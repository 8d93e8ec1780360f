"""
Manifest summaries and the skip decision.

Only the fields needed to tell whether a directory destination already
holds the source image are read: schema version, media type, config
descriptor and the ordered layer descriptors.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence, Tuple

MANIFEST_FILENAME = "manifest.json"


@dataclass(frozen=True)
class LayerDescriptor:
    """A content-addressed blob referenced by a manifest."""
    media_type: str = ""
    size: int = 0
    digest: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayerDescriptor":
        if not isinstance(data, dict):
            raise ValueError(f"Descriptor must be a JSON object, got {type(data).__name__}")
        try:
            size = int(data.get('size', 0) or 0)
        except TypeError:
            raise ValueError(f"Descriptor size must be a number: {data.get('size')!r}")
        return cls(
            media_type=str(data.get('mediaType', '')),
            size=size,
            digest=str(data.get('digest', '')),
        )


def _schema_version(value: Any) -> int:
    try:
        return int(value or 0)
    except TypeError:
        raise ValueError(f"Manifest schemaVersion must be a number: {value!r}")


@dataclass(frozen=True)
class ManifestSummary:
    """Read-only view of an image manifest."""
    schema_version: int = 0
    media_type: str = ""
    config: LayerDescriptor = field(default_factory=LayerDescriptor)
    layers: Tuple[LayerDescriptor, ...] = ()

    @property
    def layer_digests(self) -> List[str]:
        return [layer.digest for layer in self.layers]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestSummary":
        if not isinstance(data, dict):
            raise ValueError("Manifest must be a JSON object")
        layers = data.get('layers') or []
        if not isinstance(layers, list):
            raise ValueError("Manifest 'layers' must be a list")
        return cls(
            schema_version=_schema_version(data.get('schemaVersion')),
            media_type=str(data.get('mediaType', '')),
            config=LayerDescriptor.from_dict(data.get('config') or {}),
            layers=tuple(LayerDescriptor.from_dict(layer) for layer in layers),
        )


@dataclass(frozen=True)
class ImageInspectInfo:
    """Source image metadata reported by the image transport."""
    architecture: str = ""
    os: str = ""
    digest: str = ""
    layers: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageInspectInfo":
        return cls(
            architecture=data.get('Architecture') or '',
            os=data.get('Os') or '',
            digest=data.get('Digest') or '',
            layers=tuple(data.get('Layers') or ()),
        )


def manifest_path(image_dir: str) -> Path:
    return Path(image_dir) / MANIFEST_FILENAME


def load_manifest(path: Path) -> ManifestSummary:
    """
    Load a manifest.json written by the directory transport.

    Raises:
        OSError: file cannot be read
        ValueError: file is not a manifest (includes JSONDecodeError)
    """
    with open(path, 'r') as f:
        data = json.load(f)
    return ManifestSummary.from_dict(data)


def layers_unchanged(source_layers: Sequence[str], destination: Optional[ManifestSummary]) -> bool:
    """
    Decide whether ``destination`` already holds an image with ``source_layers``.

    A source with no layers is always considered present. Otherwise the
    layer counts must match and every source digest must appear among the
    destination digests; order does not matter.
    """
    if not source_layers:
        return True
    if destination is None:
        return False

    dest_digests = destination.layer_digests
    if len(dest_digests) != len(source_layers):
        return False
    return all(digest in dest_digests for digest in source_layers)
