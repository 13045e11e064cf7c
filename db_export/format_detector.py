"""Detect whether export source files are SequenceFiles or plain text.

Detection samples a single file: when the source is a directory only its
first listed entry is inspected, so the cost is one 3-byte read no matter
how large the input is. A directory mixing containers and text files is
classified by whichever entry happens to be listed first.
"""

from __future__ import annotations

import logging
from typing import Optional

from db_export.common.constants import SEQUENCE_FILE_MAGIC, DetectedFormat
from db_export.filesystem import FileStatus, FilesystemConnection

logger = logging.getLogger(__name__)


def detect(path: str, filesystem: Optional[FilesystemConnection] = None) -> DetectedFormat:
    """
    Sniff ``path`` (a file or a directory of files) for the SequenceFile header.

    Never raises for I/O problems: a missing path, an empty directory, a short
    file or a read error all return DetectedFormat.UNREADABLE, which callers
    treat as plain text.

    Args:
        path: File or directory to inspect
        filesystem: Connection to use (created from ``path`` if not provided)

    Returns:
        DetectedFormat for the sampled file
    """
    try:
        filesystem = filesystem or FilesystemConnection.for_path(path)
        stat = filesystem.status(path)
    except (ImportError, OSError, ValueError) as e:
        logger.warning(f"Could not get status of input path {path}: {e}")
        return DetectedFormat.UNREADABLE

    if stat is None:
        logger.warning(f"Input path {path} does not exist")
        return DetectedFormat.UNREADABLE

    return _detect_status(stat, filesystem)


def _detect_status(stat: FileStatus, filesystem: FilesystemConnection) -> DetectedFormat:
    if stat.is_directory:
        try:
            children = filesystem.list_children(stat.path)
        except OSError as e:
            logger.warning(f"Could not list input path {stat.path}: {e}")
            return DetectedFormat.UNREADABLE

        if not children:
            logger.warning(f"Input path {stat.path} contains no files")
            return DetectedFormat.UNREADABLE

        # Any single entry stands in for the whole directory
        return _detect_status(children[0], filesystem)

    return _read_header(stat.path, filesystem)


def _read_header(path: str, filesystem: FilesystemConnection) -> DetectedFormat:
    try:
        with filesystem.open(path) as stream:
            header = stream.read(len(SEQUENCE_FILE_MAGIC))
    except OSError as e:
        logger.warning(f"Could not read header of {path}: {e}; assuming text")
        return DetectedFormat.UNREADABLE

    if len(header) < len(SEQUENCE_FILE_MAGIC):
        logger.warning(f"File {path} is shorter than the SequenceFile header; assuming text")
        return DetectedFormat.UNREADABLE

    if header == SEQUENCE_FILE_MAGIC:
        return DetectedFormat.SEQUENCE_CONTAINER
    return DetectedFormat.PLAIN_TEXT


def is_sequence_formatted(path: str, filesystem: Optional[FilesystemConnection] = None) -> bool:
    """True if ``path`` is a SequenceFile, or a directory whose sampled entry is one."""
    return detect(path, filesystem) == DetectedFormat.SEQUENCE_CONTAINER
