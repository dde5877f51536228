"""Tests for LocalFileFetcher."""

import pytest

from reweave.core.errors import FetchError
from reweave.core.transform.fetcher import LocalFileFetcher
from reweave.core.transform.models import RepositoryRef


@pytest.fixture
def checkout(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.js").write_text("var a = 1;\n")
    (tmp_path / "package.json").write_text('{"name": "shop"}')
    (tmp_path / "node_modules" / "react").mkdir(parents=True)
    (tmp_path / "node_modules" / "react" / "index.js").write_text("module.exports = {};\n")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe")
    return tmp_path


def _ref(path):
    return RepositoryRef(owner="local", name="shop", path=str(path))


class TestLocalFileFetcher:

    def test_reads_text_files(self, checkout):
        result = LocalFileFetcher().fetch(_ref(checkout))
        paths = [f.path for f in result.files]
        assert paths == ["package.json", "src/app.js"]
        assert result.total_files == 2
        assert result.total_size == len('{"name": "shop"}') + len("var a = 1;\n")

    def test_skips_vendored_directories(self, checkout):
        result = LocalFileFetcher().fetch(_ref(checkout))
        assert not any(f.path.startswith("node_modules/") for f in result.files)

    def test_binary_files_are_reported_as_skipped(self, checkout):
        result = LocalFileFetcher().fetch(_ref(checkout))
        assert result.skipped_files == ["logo.png"]

    def test_oversized_files_are_skipped(self, checkout):
        (checkout / "big.json").write_text("x" * 2048)
        result = LocalFileFetcher(max_file_size_mb=0.001).fetch(_ref(checkout))
        assert "big.json" in result.skipped_files

    def test_too_many_files(self, checkout):
        with pytest.raises(FetchError, match="Too many files"):
            LocalFileFetcher(max_files=1).fetch(_ref(checkout))

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FetchError):
            LocalFileFetcher().fetch(_ref(tmp_path / "nope"))
