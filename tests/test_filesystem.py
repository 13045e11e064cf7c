"""Tests for FilesystemConnection path qualification and listing."""

import pytest
from fsspec.implementations.local import LocalFileSystem
from fsspec.implementations.memory import MemoryFileSystem

from db_export.common.exceptions import PathQualificationError
from db_export.filesystem import FilesystemConnection


class TestQualify:
    """Tests for resolving export paths to filesystem-qualified URLs."""

    @pytest.mark.parametrize(
        "base_url,path,expected",
        [
            ("memory://", "/exports/employees", "memory:///exports/employees"),
            ("memory:///", "/exports/employees", "memory:///exports/employees"),
            ("hdfs://namenode:8020", "/data/employees", "hdfs://namenode:8020/data/employees"),
            ("hdfs://namenode:8020/", "/data/employees/", "hdfs://namenode:8020/data/employees"),
        ],
    )
    def test_absolute_path_against_base_url(self, base_url, path, expected):
        """The scheme separator survives trailing-slash trimming."""
        connection = FilesystemConnection(fs=MemoryFileSystem(), base_url=base_url)
        assert connection.qualify(path) == expected

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("hdfs://namenode:8020/data/employees/", "hdfs://namenode:8020/data/employees"),
            ("memory:///exports/", "memory:///exports"),
            ("memory:///", "memory:///"),
        ],
    )
    def test_qualified_urls_are_kept(self, path, expected):
        connection = FilesystemConnection(fs=MemoryFileSystem())
        assert connection.qualify(path) == expected

    def test_local_path_becomes_file_url(self, tmp_path):
        connection = FilesystemConnection(fs=LocalFileSystem())
        assert connection.qualify(str(tmp_path)) == f"file://{tmp_path.as_posix()}"

    def test_relative_path_against_base_url(self):
        connection = FilesystemConnection(fs=MemoryFileSystem(), base_url="memory://")
        with pytest.raises(PathQualificationError, match="Relative path"):
            connection.qualify("exports/employees")

    def test_empty_path(self):
        with pytest.raises(PathQualificationError, match="empty path"):
            FilesystemConnection(fs=LocalFileSystem()).qualify("")


class TestStatus:
    def test_directory_listing(self, text_export_dir):
        connection = FilesystemConnection.for_path(str(text_export_dir))

        stat = connection.status(str(text_export_dir))
        children = connection.list_children(stat.path)

        assert stat.is_directory
        assert [child.path.rsplit("/", 1)[-1] for child in children] == ["part-m-00000"]
        assert children[0].size == len("1,alice\n2,bob\n3,carol\n")

    def test_missing_path(self, tmp_path):
        connection = FilesystemConnection.for_path(str(tmp_path))
        assert connection.status(str(tmp_path / "missing")) is None
