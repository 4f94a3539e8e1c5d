"""
Byte pattern search utilities, including a bounded-memory backward file scan.
"""

from typing import BinaryIO, Iterator, Optional


def rfind_in_file(stream: BinaryIO, pattern: bytes, chunk_size: int = 4096,
                  file_size: Optional[int] = None) -> int:
    """
    Find the last occurrence of ``pattern`` in a seekable binary stream.

    The stream is scanned from its end toward its start, ``chunk_size`` bytes
    at a time. Each window extends ``len(pattern) - 1`` bytes into the
    previously scanned region so an occurrence straddling a chunk boundary
    is still found. Only one window is held in memory at a time.

    Args:
        stream: Seekable binary stream
        pattern: Exact byte sequence to find
        chunk_size: Number of new bytes examined per read
        file_size: Stream length, if already known

    Returns:
        Absolute offset of the first byte of the match, or -1
    """
    if not pattern:
        raise ValueError("pattern must not be empty")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    if file_size is None:
        stream.seek(0, 2)
        file_size = stream.tell()

    overlap = len(pattern) - 1
    end = file_size

    while end > 0:
        start = max(0, end - chunk_size)
        window_end = min(file_size, end + overlap)

        stream.seek(start)
        window = stream.read(window_end - start)

        index = window.rfind(pattern)
        if index != -1:
            return start + index

        end = start

    return -1


def search_bytes(data: bytes, pattern: bytes) -> Iterator[int]:
    """
    Simple byte pattern search.

    Args:
        data: Binary data to search
        pattern: Exact pattern to find

    Yields:
        Indices where pattern was found
    """
    start = 0
    while True:
        index = data.find(pattern, start)
        if index == -1:
            break
        yield index
        start = index + 1


def count_occurrences(data: bytes, pattern: bytes) -> int:
    """Count possibly-overlapping occurrences of ``pattern`` in ``data``."""
    if not pattern:
        return 0
    return sum(1 for _ in search_bytes(data, pattern))


def hex_to_bytes(hex_string: str) -> bytes:
    """
    Convert a hex string to bytes.

    Args:
        hex_string: Hex string (e.g., "48656C6C6F" or "48 65 6C")

    Returns:
        Bytes representation
    """
    return bytes.fromhex(hex_string.replace(' ', ''))
