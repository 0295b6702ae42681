"""Base interface for artifact sources."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from packaging.version import InvalidVersion, Version

from ..errors import PackageNotFoundError
from .utils import fetch_with_retry

logger = logging.getLogger(__name__)


@dataclass
class VersionInfo:
    """Normalized version information from any source."""
    version: str
    filename: Optional[str] = None
    package_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PackageMetadata:
    """Metadata about a fetched artifact."""

    name: str
    version: str
    source: str
    download_path: Optional[Path] = None


def resolve_previous_version(versions: List[str], current: Optional[str]) -> Optional[str]:
    """Return the highest published version strictly lower than ``current``.

    Pre-releases are only considered when ``current`` is itself a pre-release.
    When ``current`` is missing or not a valid version, the latest final
    release is returned.
    """
    try:
        current_v = Version(current) if current else None
    except InvalidVersion:
        current_v = None

    parsed = []
    for v in versions:
        try:
            parsed.append(Version(v))
        except InvalidVersion:
            logger.debug("skipping unparseable version %r", v)
    allow_pre = current_v is not None and current_v.is_prerelease
    candidates = [
        v for v in parsed
        if (allow_pre or not v.is_prerelease)
        and (current_v is None or v < current_v)
    ]
    if not candidates:
        return None
    return str(max(candidates))


class PackageSource(ABC):
    """Abstract base class for artifact sources.

    Each source adapter (pypi, local) implements this interface.
    """

    @abstractmethod
    def list_versions(self, package: str, **kwargs) -> List[VersionInfo]:
        """Return available versions for a package in this source, oldest first.

        Raises:
            PackageNotFoundError: If the package does not exist
            FetchError: On transient or protocol failures
        """
        pass

    @abstractmethod
    def download(self, package_name: str, version: str, output_dir: Path) -> Path:
        """Fetch one artifact of a package version into output_dir.

        Args:
            package_name: Name of the package (e.g., 'requests')
            version: Package version (e.g., '2.31.0')
            output_dir: Directory to save the artifact

        Returns:
            Path to the artifact (wheel, sdist or directory)

        Raises:
            PackageNotFoundError: If package or version does not exist
            FetchError: If the download fails
        """
        pass

    def previous_version(self, package: str, current: Optional[str],
                         attempts: int = 3, backoff: float = 0.5) -> str:
        """Resolve the published version preceding ``current``.

        Raises:
            PackageNotFoundError: If no earlier version is published
        """
        infos = fetch_with_retry(lambda: self.list_versions(package),
                                 max_attempts=attempts, base_delay_s=backoff)
        previous = resolve_previous_version([i.version for i in infos], current)
        if previous is None:
            raise PackageNotFoundError(
                f"No published version of {package} precedes {current or 'the candidate'}"
            )
        return previous

    def get_package(self, package_name: str, version: str, output_dir: Path,
                    attempts: int = 3, backoff: float = 0.5) -> PackageMetadata:
        """Download an artifact with bounded retries (convenience method).

        Args:
            package_name: Name of the package
            version: Package version
            output_dir: Directory for downloads
            attempts: Maximum attempts for transient failures
            backoff: Initial delay between attempts in seconds

        Returns:
            PackageMetadata with the downloaded artifact path
        """
        download_dir = output_dir / 'downloads'
        download_dir.mkdir(parents=True, exist_ok=True)

        artifact = fetch_with_retry(
            lambda: self.download(package_name, version, download_dir),
            max_attempts=attempts,
            base_delay_s=backoff,
        )
        return PackageMetadata(
            name=package_name,
            version=version,
            source=self.__class__.__name__,
            download_path=artifact,
        )
