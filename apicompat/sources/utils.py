"""Utility functions for safe artifact extraction and fetching."""

import logging
import time
from pathlib import Path
import tarfile
import zipfile
from typing import Callable, TypeVar

from ..errors import ExtractionError, FetchError

T = TypeVar("T")
logger = logging.getLogger(__name__)


def safe_extract_tar(tar: tarfile.TarFile, extract_dir: Path):
    """Safely extract tar archive preventing path traversal (CVE-2007-4559).

    Args:
        tar: tarfile.TarFile object
        extract_dir: Destination directory

    Raises:
        ExtractionError: If any member attempts path traversal or is unsafe
    """
    extract_dir = extract_dir.resolve()

    for member in tar.getmembers():
        member_path = (extract_dir / member.name).resolve()

        if not str(member_path).startswith(str(extract_dir)):
            raise ExtractionError(
                f"Path traversal attempt detected: {member.name} "
                f"would extract outside {extract_dir}"
            )

        # Reject symlinks, hard links, device files
        if member.issym() or member.islnk():
            raise ExtractionError(
                f"Unsafe tar member (symlink/hardlink): {member.name}"
            )
        if member.isdev() or member.ischr() or member.isblk():
            raise ExtractionError(
                f"Unsafe tar member (device file): {member.name}"
            )

        # Extract regular files and directories only
        if member.isfile() or member.isdir():
            tar.extract(member, extract_dir)


def safe_extract_zip(zf: zipfile.ZipFile, extract_dir: Path):
    """Safely extract zip archive (wheels included) preventing path traversal.

    Args:
        zf: zipfile.ZipFile object
        extract_dir: Destination directory

    Raises:
        ExtractionError: If any member attempts path traversal
    """
    extract_dir = extract_dir.resolve()

    for name in zf.namelist():
        member_path = (extract_dir / name).resolve()

        if not str(member_path).startswith(str(extract_dir)):
            raise ExtractionError(
                f"Path traversal attempt: {name} outside {extract_dir}"
            )

        if name.endswith('/'):
            member_path.mkdir(parents=True, exist_ok=True)
        else:
            member_path.parent.mkdir(parents=True, exist_ok=True)
            member_path.write_bytes(zf.read(name))


def fetch_with_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = 3,
    base_delay_s: float = 0.5,
    max_delay_s: float = 8.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` retrying transient FetchErrors with exponential backoff.

    Definitive failures (``transient=False``, e.g. PackageNotFoundError) and
    any other exception propagate immediately.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
    attempt = 0
    while True:
        try:
            return fn()
        except FetchError as e:
            if not e.transient or attempt >= max_attempts - 1:
                raise
            delay = min(max_delay_s, base_delay_s * (2 ** attempt))
            logger.warning("fetch attempt %d/%d failed (%s); retrying in %.1fs",
                           attempt + 1, max_attempts, e, delay)
            sleep(delay)
            attempt += 1
