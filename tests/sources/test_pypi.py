"""Tests for PyPISource adapter (network access mocked)."""

import hashlib
import io
import json
import urllib.error
from unittest.mock import patch

import pytest
from apicompat.errors import FetchError, PackageNotFoundError
from apicompat.sources.pypi import PyPISource

URLOPEN = "apicompat.sources.pypi.urllib.request.urlopen"

PROJECT = {
    "info": {"name": "mylib"},
    "releases": {
        "1.0.0": [{"filename": "mylib-1.0.0.tar.gz", "yanked": False}],
        "1.10.0": [{"filename": "mylib-1.10.0.tar.gz", "yanked": False}],
        "1.2.0": [{"filename": "mylib-1.2.0.tar.gz", "yanked": True}],
        "1.9.0": [{"filename": "mylib-1.9.0.tar.gz", "yanked": False}],
        "0.1.dev": [],
        "garbage version": [{"filename": "x.tar.gz"}],
    },
}

WHEEL_BYTES = b"wheel contents"


def release(files):
    return {"info": {"name": "mylib"}, "urls": files}


def wheel_entry(name="mylib-1.0.0-py3-none-any.whl", data=WHEEL_BYTES, **extra):
    entry = {
        "filename": name,
        "packagetype": "bdist_wheel",
        "url": f"https://files.example.org/{name}",
        "digests": {"sha256": hashlib.sha256(data).hexdigest()},
        "yanked": False,
    }
    entry.update(extra)
    return entry


def json_response(payload):
    return io.BytesIO(json.dumps(payload).encode("utf-8"))


def http_error(code):
    return urllib.error.HTTPError("https://pypi.org/x", code, "error", {}, None)


@pytest.fixture
def source():
    return PyPISource()


def test_rejects_non_https_index():
    with pytest.raises(ValueError):
        PyPISource(index_url="http://pypi.org")


def test_list_versions_sorted_and_filtered(source):
    with patch(URLOPEN, return_value=json_response(PROJECT)) as urlopen:
        versions = source.list_versions("mylib")

    assert [v.version for v in versions] == ["1.0.0", "1.9.0", "1.10.0"]
    assert urlopen.call_args[0][0] == "https://pypi.org/pypi/mylib/json"


def test_not_found_is_definitive(source):
    with patch(URLOPEN, side_effect=http_error(404)):
        with pytest.raises(PackageNotFoundError) as exc:
            source.list_versions("missing")
    assert exc.value.transient is False


@pytest.mark.parametrize("code", [500, 503, 429])
def test_server_errors_are_transient(source, code):
    with patch(URLOPEN, side_effect=http_error(code)):
        with pytest.raises(FetchError) as exc:
            source.list_versions("mylib")
    assert exc.value.transient is True


def test_client_errors_are_not_transient(source):
    with patch(URLOPEN, side_effect=http_error(403)):
        with pytest.raises(FetchError) as exc:
            source.list_versions("mylib")
    assert exc.value.transient is False


def test_network_error_is_transient(source):
    with patch(URLOPEN, side_effect=urllib.error.URLError("connection refused")):
        with pytest.raises(FetchError) as exc:
            source.list_versions("mylib")
    assert exc.value.transient is True


def test_invalid_json_is_not_transient(source):
    with patch(URLOPEN, return_value=io.BytesIO(b"<html>")):
        with pytest.raises(FetchError) as exc:
            source.list_versions("mylib")
    assert exc.value.transient is False


def test_select_file_prefers_pure_wheel():
    files = [
        {"filename": "mylib-1.0.0.tar.gz", "packagetype": "sdist", "url": "https://x/a"},
        {"filename": "mylib-1.0.0-cp311-cp311-manylinux_2_17_x86_64.whl",
         "packagetype": "bdist_wheel", "url": "https://x/b"},
        {"filename": "mylib-1.0.0-py3-none-any.whl", "packagetype": "bdist_wheel",
         "url": "https://x/c"},
    ]
    assert PyPISource.select_file(files)["url"] == "https://x/c"
    assert PyPISource.select_file(files[:2])["url"] == "https://x/b"
    assert PyPISource.select_file(files[:1])["url"] == "https://x/a"
    assert PyPISource.select_file([{"filename": "x.egg", "packagetype": "bdist_egg",
                                    "url": "https://x/d"}]) is None


def test_download_verifies_and_saves(source, tmp_path):
    responses = [json_response(release([wheel_entry()])), io.BytesIO(WHEEL_BYTES)]
    with patch(URLOPEN, side_effect=responses) as urlopen:
        path = source.download("mylib", "1.0.0", tmp_path)

    assert path == tmp_path / "mylib-1.0.0-py3-none-any.whl"
    assert path.read_bytes() == WHEEL_BYTES
    assert urlopen.call_args_list[0][0][0] == "https://pypi.org/pypi/mylib/1.0.0/json"
    assert not (tmp_path / "mylib-1.0.0-py3-none-any.whl.part").exists()


def test_download_reuses_existing_file(source, tmp_path):
    (tmp_path / "mylib-1.0.0-py3-none-any.whl").write_bytes(WHEEL_BYTES)
    with patch(URLOPEN, return_value=json_response(release([wheel_entry()]))) as urlopen:
        path = source.download("mylib", "1.0.0", tmp_path)

    assert path.read_bytes() == WHEEL_BYTES
    assert urlopen.call_count == 1


def test_download_digest_mismatch(source, tmp_path):
    responses = [json_response(release([wheel_entry()])), io.BytesIO(b"tampered")]
    with patch(URLOPEN, side_effect=responses):
        with pytest.raises(FetchError, match="sha256"):
            source.download("mylib", "1.0.0", tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_download_without_artifacts(source, tmp_path):
    files = [wheel_entry(yanked=True)]
    with patch(URLOPEN, return_value=json_response(release(files))):
        with pytest.raises(PackageNotFoundError):
            source.download("mylib", "1.0.0", tmp_path)
