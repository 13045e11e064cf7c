"""Tests for SequenceFile format detection."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from db_export.common.constants import DetectedFormat
from db_export.filesystem import FileStatus, FilesystemConnection
from db_export.format_detector import detect, is_sequence_formatted


class TestDetectFile:
    """Tests for detection on single files."""

    @pytest.mark.parametrize(
        "content",
        [b"SEQ", b"SEQ\x06", b"SEQ\x06org.apache.hadoop.io.Text" + bytes(range(256))],
    )
    def test_magic_header_is_sequence_container(self, tmp_path, content):
        """Any file starting with S, E, Q is a SequenceFile."""
        path = tmp_path / "data.seq"
        path.write_bytes(content)
        assert detect(str(path)) == DetectedFormat.SEQUENCE_CONTAINER
        assert is_sequence_formatted(str(path)) is True

    @pytest.mark.parametrize("content", [b"1,alice\n", b"seq,lowercase\n", b"SE Q", b"\x00\x01\x02\x03"])
    def test_other_readable_files_are_plain_text(self, tmp_path, content):
        """Readable files without the magic header are plain text."""
        path = tmp_path / "data.csv"
        path.write_bytes(content)
        assert detect(str(path)) == DetectedFormat.PLAIN_TEXT
        assert is_sequence_formatted(str(path)) is False

    @pytest.mark.parametrize("content", [b"", b"S", b"SE"])
    def test_short_file_is_unreadable(self, tmp_path, content):
        """Files shorter than the header are a detection failure, not an error."""
        path = tmp_path / "short"
        path.write_bytes(content)
        assert detect(str(path)) == DetectedFormat.UNREADABLE
        assert is_sequence_formatted(str(path)) is False


class TestDetectDirectory:
    """Tests for detection on directories."""

    def test_directory_with_sequence_file(self, sequence_export_dir):
        """Scenario: one file starting with SEQ reports a container."""
        assert detect(str(sequence_export_dir)) == DetectedFormat.SEQUENCE_CONTAINER

    def test_directory_with_csv_file(self, text_export_dir):
        """Scenario: one plain CSV file reports plain text."""
        assert detect(str(text_export_dir)) == DetectedFormat.PLAIN_TEXT

    def test_empty_directory_is_unreadable(self, tmp_path, caplog):
        """Empty directories warn and fall back to the text outcome."""
        empty = tmp_path / "empty"
        empty.mkdir()
        with caplog.at_level(logging.WARNING):
            assert detect(str(empty)) == DetectedFormat.UNREADABLE
        assert "contains no files" in caplog.text

    def test_only_first_listed_child_is_read(self):
        """Detection opens exactly one file no matter how many children exist."""
        filesystem = MagicMock(spec=FilesystemConnection)
        filesystem.status.return_value = FileStatus(path="/data", is_directory=True)
        filesystem.list_children.return_value = [
            FileStatus(path=f"/data/part-{i}", is_directory=False) for i in range(1000)
        ]
        stream = MagicMock()
        stream.read.return_value = b"SEQ"
        filesystem.open.return_value.__enter__.return_value = stream

        assert detect("/data", filesystem) == DetectedFormat.SEQUENCE_CONTAINER
        filesystem.open.assert_called_once_with("/data/part-0")
        stream.read.assert_called_once_with(3)

    def test_nested_directory_follows_first_child(self, tmp_path):
        """A directory whose first entry is a directory is sampled recursively."""
        outer = tmp_path / "outer"
        inner = outer / "inner"
        inner.mkdir(parents=True)
        (inner / "part-0").write_bytes(b"SEQ\x06")
        assert detect(str(outer)) == DetectedFormat.SEQUENCE_CONTAINER


class TestDetectFailures:
    """Failures degrade to UNREADABLE and never raise."""

    def test_missing_path(self, tmp_path, caplog):
        """A non-existent path warns and reports unreadable."""
        with caplog.at_level(logging.WARNING):
            assert detect(str(tmp_path / "missing")) == DetectedFormat.UNREADABLE
        assert "does not exist" in caplog.text
        assert is_sequence_formatted(str(tmp_path / "missing")) is False

    def test_read_error_releases_stream(self):
        """An I/O error while reading is swallowed and the stream still closed."""
        filesystem = MagicMock(spec=FilesystemConnection)
        filesystem.status.return_value = FileStatus(path="/data/file", is_directory=False)
        stream = MagicMock()
        stream.read.side_effect = OSError("connection reset")
        filesystem.open.return_value.__enter__.return_value = stream
        filesystem.open.return_value.__exit__.return_value = False

        assert detect("/data/file", filesystem) == DetectedFormat.UNREADABLE
        filesystem.open.return_value.__exit__.assert_called_once()

    def test_stream_closed_on_magic_mismatch(self):
        """The stream is released when the header does not match."""
        filesystem = MagicMock(spec=FilesystemConnection)
        filesystem.status.return_value = FileStatus(path="/data/file", is_directory=False)
        filesystem.open.return_value.__enter__.return_value.read.return_value = b"1,a"

        assert detect("/data/file", filesystem) == DetectedFormat.PLAIN_TEXT
        filesystem.open.return_value.__exit__.assert_called_once()

    def test_open_error(self):
        """Failure to open the sampled file is a detection failure."""
        filesystem = MagicMock(spec=FilesystemConnection)
        filesystem.status.return_value = FileStatus(path="/data/file", is_directory=False)
        filesystem.open.side_effect = PermissionError("denied")
        assert detect("/data/file", filesystem) == DetectedFormat.UNREADABLE

    def test_status_error(self):
        """Failure to stat the path is a detection failure."""
        filesystem = MagicMock(spec=FilesystemConnection)
        filesystem.status.side_effect = OSError("namenode unreachable")
        assert detect("/data", filesystem) == DetectedFormat.UNREADABLE

    def test_list_error(self):
        """Failure to list a directory is a detection failure."""
        filesystem = MagicMock(spec=FilesystemConnection)
        filesystem.status.return_value = FileStatus(path="/data", is_directory=True)
        filesystem.list_children.side_effect = OSError("denied")
        assert detect("/data", filesystem) == DetectedFormat.UNREADABLE

    def test_missing_filesystem_backend(self, caplog):
        """A protocol whose fsspec backend is not installed reports unreadable."""
        missing = ModuleNotFoundError("No module named 'pyarrow'")
        with patch.object(FilesystemConnection, "for_path", side_effect=missing):
            with caplog.at_level(logging.WARNING):
                assert detect("hdfs://namenode:8020/data/export") == DetectedFormat.UNREADABLE
            assert is_sequence_formatted("hdfs://namenode:8020/data/export") is False
        assert "pyarrow" in caplog.text
