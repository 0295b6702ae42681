"""Tests for archive safety helpers and fetch retries."""

import io
import tarfile
import zipfile

import pytest
from apicompat.errors import ExtractionError, FetchError, PackageNotFoundError
from apicompat.sources.utils import fetch_with_retry, safe_extract_tar, safe_extract_zip


def _flaky(failures, exc_factory, result="ok"):
    calls = []

    def fn():
        calls.append(1)
        if len(calls) <= failures:
            raise exc_factory()
        return result
    return fn, calls


def test_retry_succeeds_after_transient_failures():
    delays = []
    fn, calls = _flaky(2, lambda: FetchError("timeout", transient=True))

    assert fetch_with_retry(fn, max_attempts=3, base_delay_s=0.5, sleep=delays.append) == "ok"
    assert len(calls) == 3
    assert delays == [0.5, 1.0]


def test_retry_is_bounded():
    delays = []
    fn, calls = _flaky(10, lambda: FetchError("503", transient=True))

    with pytest.raises(FetchError):
        fetch_with_retry(fn, max_attempts=3, sleep=delays.append)
    assert len(calls) == 3
    assert len(delays) == 2


def test_retry_caps_delay():
    delays = []
    fn, _ = _flaky(4, lambda: FetchError("503", transient=True))
    fetch_with_retry(fn, max_attempts=5, base_delay_s=3, max_delay_s=5, sleep=delays.append)
    assert delays == [3, 5, 5, 5]


def test_not_found_is_never_retried():
    delays = []
    fn, calls = _flaky(1, lambda: PackageNotFoundError("no such package"))

    with pytest.raises(PackageNotFoundError):
        fetch_with_retry(fn, max_attempts=5, sleep=delays.append)
    assert len(calls) == 1
    assert delays == []


def test_other_exceptions_propagate():
    fn, calls = _flaky(1, lambda: KeyError("boom"))
    with pytest.raises(KeyError):
        fetch_with_retry(fn, sleep=lambda _: None)
    assert len(calls) == 1


def test_invalid_attempts():
    with pytest.raises(ValueError):
        fetch_with_retry(lambda: None, max_attempts=0)


def test_safe_extract_zip(tmp_path):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("pkg/__init__.py", "x = 1\n")
    with zipfile.ZipFile(buf) as zf:
        safe_extract_zip(zf, tmp_path / "out")
    assert (tmp_path / "out" / "pkg" / "__init__.py").read_text() == "x = 1\n"


def test_safe_extract_zip_rejects_traversal(tmp_path):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("../evil.py", "x = 1\n")
    with zipfile.ZipFile(buf) as zf:
        with pytest.raises(ExtractionError):
            safe_extract_zip(zf, tmp_path / "out")
    assert not (tmp_path / "evil.py").exists()


def test_safe_extract_tar_rejects_symlink(tmp_path):
    archive = tmp_path / "bad.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        info = tarfile.TarInfo("pkg/link.py")
        info.type = tarfile.SYMTYPE
        info.linkname = "/etc/passwd"
        tar.addfile(info)
    with tarfile.open(archive) as tar:
        with pytest.raises(ExtractionError):
            safe_extract_tar(tar, tmp_path / "out")
