"""Ingress-nginx dependency and migration-risk auditor."""

from importlib.metadata import version, PackageNotFoundError

TOOL_NAME = "ingress-nginx-auditor"
SCHEMA_VERSION = "1.0"

try:
    __version__ = version(TOOL_NAME)
except PackageNotFoundError:  # pragma: no cover
    __version__ = "1.0.0-dev"

__all__ = ["__version__", "TOOL_NAME", "SCHEMA_VERSION"]
