"""YAML and text file helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


class ManifestLoader(yaml.SafeLoader):
    """YAML loader that tolerates custom tags left behind by Helm or Kustomize."""


def _construct_tagged(loader: ManifestLoader, tag_suffix: str, node: yaml.Node) -> Any:
    if isinstance(node, yaml.ScalarNode):
        return loader.construct_scalar(node)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node)
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node)
    return None


ManifestLoader.add_multi_constructor("!", _construct_tagged)


def load_yaml(text: str) -> Any:
    """Parse a single YAML document with ``ManifestLoader``."""

    return yaml.load(text, Loader=ManifestLoader)


def read_text_file(path: Path) -> str:
    """Return the file contents as UTF-8 text; errors propagate to the caller."""

    return path.read_text(encoding="utf-8")


def scalar_text(value: Any) -> str:
    """Render a YAML scalar the way it reads in the manifest."""

    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
