"""PyPI (JSON API) artifact source adapter."""

import hashlib
import json
import logging
import shutil
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Dict, List, Optional

from packaging.version import InvalidVersion, Version

from ..errors import FetchError, PackageNotFoundError
from .base import PackageSource, VersionInfo

logger = logging.getLogger(__name__)

# 429 and gateway errors are worth retrying; other 4xx are definitive
_TRANSIENT_STATUS = {408, 429, 500, 502, 503, 504}


class PyPISource(PackageSource):
    """Adapter for a PyPI-compatible JSON index.

    Uses ``{index}/pypi/{name}/json`` for version discovery and
    ``{index}/pypi/{name}/{version}/json`` to pick a release file.
    Pure-Python wheels are preferred over platform wheels, and any
    wheel over an sdist, since all carry the same Python sources.
    """

    DEFAULT_INDEX = "https://pypi.org"

    def __init__(self, index_url: Optional[str] = None, timeout: float = 60):
        url = (index_url or self.DEFAULT_INDEX).rstrip("/")
        if not url.startswith("https://"):
            raise ValueError(f"Only https:// index URLs allowed, got: {url}")
        self.index_url = url
        self.timeout = timeout

    def _get_json(self, url: str) -> Dict[str, Any]:
        logger.debug("GET %s", url)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise PackageNotFoundError(f"Not found on index: {url}") from e
            raise FetchError(f"HTTP {e.code} fetching {url}",
                             transient=e.code in _TRANSIENT_STATUS) from e
        except (urllib.error.URLError, OSError) as e:
            reason = getattr(e, "reason", e)
            raise FetchError(f"Network error fetching {url}: {reason}", transient=True) from e

        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FetchError(f"Invalid JSON from {url}: {e}") from e
        if not isinstance(data, dict):
            raise FetchError(f"Unexpected response from {url}")
        return data

    def list_versions(self, package: str, **_kwargs) -> List[VersionInfo]:
        """Return published, non-yanked versions sorted oldest first."""
        data = self._get_json(f"{self.index_url}/pypi/{package}/json")
        entries = []
        for raw, files in (data.get("releases") or {}).items():
            try:
                parsed = Version(raw)
            except InvalidVersion:
                logger.debug("skipping invalid version %r of %s", raw, package)
                continue
            # a release without files cannot be compared; fully yanked ones are gone
            if not files or all(f.get("yanked") for f in files):
                continue
            entries.append((parsed, raw))
        entries.sort()
        return [VersionInfo(version=raw, package_name=package) for _, raw in entries]

    def release_files(self, package: str, version: str) -> List[Dict[str, Any]]:
        data = self._get_json(f"{self.index_url}/pypi/{package}/{version}/json")
        return [f for f in (data.get("urls") or []) if not f.get("yanked")]

    @staticmethod
    def select_file(files: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """Pick the most convenient artifact: pure wheel, any wheel, then sdist."""
        def rank(f: Dict[str, Any]) -> int:
            name = f.get("filename", "")
            if f.get("packagetype") == "bdist_wheel":
                return 0 if name.endswith("-none-any.whl") else 1
            if f.get("packagetype") == "sdist":
                return 2
            return 3

        usable = [f for f in files if rank(f) < 3 and f.get("url")]
        if not usable:
            return None
        return min(usable, key=lambda f: (rank(f), f.get("filename", "")))

    def download(self, package_name: str, version: str, output_dir: Path) -> Path:
        """Download the selected release file, verifying its sha256 digest."""
        files = self.release_files(package_name, version)
        chosen = self.select_file(files)
        if chosen is None:
            raise PackageNotFoundError(
                f"No wheel or sdist published for {package_name}=={version}"
            )

        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / chosen["filename"]
        expected = (chosen.get("digests") or {}).get("sha256")

        if output_file.exists() and (expected is None or _sha256(output_file) == expected):
            logger.info("%s already downloaded", output_file.name)
            return output_file

        url = chosen["url"]
        if not url.startswith("https://"):
            raise FetchError(f"Refusing non-https download URL: {url}")
        logger.info("Downloading %s", url)
        partial = output_file.with_name(output_file.name + ".part")
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp, \
                    open(partial, "wb") as out:
                shutil.copyfileobj(resp, out)
        except urllib.error.HTTPError as e:
            partial.unlink(missing_ok=True)
            raise FetchError(f"HTTP {e.code} downloading {url}",
                             transient=e.code in _TRANSIENT_STATUS) from e
        except (urllib.error.URLError, OSError) as e:
            partial.unlink(missing_ok=True)
            raise FetchError(f"Failed to download {url}: {e}", transient=True) from e

        if expected is not None and _sha256(partial) != expected:
            partial.unlink(missing_ok=True)
            raise FetchError(f"sha256 mismatch for {chosen['filename']}", transient=True)
        partial.replace(output_file)
        return output_file


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()
