"""Local filesystem artifact source adapter."""

import logging
import shutil
from pathlib import Path
from typing import List

from ..errors import PackageNotFoundError
from .base import PackageSource, VersionInfo

logger = logging.getLogger(__name__)


class LocalSource(PackageSource):
    """Adapter for local artifacts or source directories.

    Supports wheels, sdists, zip archives, single modules, JSON surface
    snapshots and source trees. Nothing is downloaded; files are copied
    into the work directory and directories are used in place.
    """

    def list_versions(self, _package: str, **_kwargs) -> List[VersionInfo]:
        """Local source has no version index; return empty list."""
        return []

    def download(self, package_name: str, version: str, output_dir: Path) -> Path:
        """'Download' (copy) a local artifact.

        Args:
            package_name: Path to the local artifact (relative or absolute)
            version: Ignored (local files don't have version discovery)
            output_dir: Directory to copy the artifact into

        Returns:
            Path to the copied artifact, or the directory itself
        """
        source_path = Path(package_name).expanduser().resolve()

        if not source_path.exists():
            raise PackageNotFoundError(f"Local artifact not found: {source_path}")

        if source_path.is_dir():
            return source_path

        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / source_path.name

        if output_file.exists() and output_file.samefile(source_path):
            return output_file

        logger.info("Copying %s", source_path.name)
        shutil.copy2(source_path, output_file)
        return output_file
