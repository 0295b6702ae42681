"""Artifact source adapters.

Provides a unified interface for fetching the artifacts a surface is
extracted from:
- PyPI-compatible JSON indexes
- Local filesystem paths
"""

from .base import PackageSource, PackageMetadata, VersionInfo, resolve_previous_version
from .pypi import PyPISource
from .local import LocalSource
from .factory import create_source

__all__ = [
    'PackageSource',
    'PackageMetadata',
    'VersionInfo',
    'PyPISource',
    'LocalSource',
    'create_source',
    'resolve_previous_version',
]
