"""
In-place substitution of a literal marker inside one module's content.

The patched content always has exactly the original length, so the blob
keeps its size and every pointer recorded in the header and the module
table stays valid without any recomputation. Only the bytes of the target
module's content region change in the output file.
"""

from dataclasses import dataclass
from typing import Optional

from ..errors import CorruptContainer, MarkerNotFound, ReplacementTooLarge, wrap_os_error
from ..formats.container import Container
from ..formats.structures import ModuleRecord
from ..utils.log import LogFn, null_log
from ..utils.pattern_search import count_occurrences

PADDING_BYTE = b' '


@dataclass
class PatchedFile:
    """
    Result of patch_module.

    Attributes:
        data: Complete bytes of the patched file
        original: Complete bytes of the file before patching
        module_index: Index of the patched module
        marker_offset: Offset of the replaced marker within the module content
        content_start: File offset of the module content region
        content_end: File offset one past the module content region
    """
    data: bytes
    original: bytes
    module_index: int
    marker_offset: int
    content_start: int
    content_end: int

    @property
    def size(self) -> int:
        return len(self.data)


def patch_content(content: bytes, marker: bytes, replacement: bytes) -> tuple:
    """
    Replace the first occurrence of ``marker`` in ``content``.

    The replacement is written at the marker's position and the rest of the
    marker's footprint is blanked with spaces.

    Returns:
        Tuple of (patched bytes, marker offset)

    Raises:
        MarkerNotFound: If the marker does not occur
        ReplacementTooLarge: If the replacement is longer than the marker
    """
    if not marker:
        raise MarkerNotFound("marker must not be empty")

    index = content.find(marker)
    if index < 0:
        raise MarkerNotFound("marker not found in module content")

    if len(replacement) > len(marker):
        raise ReplacementTooLarge(
            f"replacement is {len(replacement)} bytes but the marker is only "
            f"{len(marker)}; cannot patch without shifting offsets")

    filler = replacement + PADDING_BYTE * (len(marker) - len(replacement))
    patched = content[:index] + filler + content[index + len(marker):]
    return patched, index


class Patcher:
    """
    Builds a patched copy of a container's file.

    Args:
        container: Decoded container of the file being patched
        log: Progress callback
    """

    def __init__(self, container: Container, log: LogFn = null_log):
        self.container = container
        self.log = log

    def read_original(self) -> bytes:
        """Read the container's file as it is on disk."""
        try:
            with open(self.container.path, 'rb') as f:
                return f.read()
        except OSError as exc:
            raise wrap_os_error(exc, f"reading {self.container.path}", self.container.path) from exc

    def patch_module(self, index: int, marker: bytes, replacement: bytes,
                     original: Optional[bytes] = None) -> PatchedFile:
        """
        Patch one module and reconstruct the whole file.

        Args:
            index: Module index
            marker: Literal bytes to find in the module content
            replacement: Bytes to put in their place (at most len(marker))
            original: File bytes; read from the container's path when omitted

        Raises:
            IndexOutOfRange: If the index is invalid
            MarkerNotFound: If the marker is absent
            ReplacementTooLarge: If the replacement does not fit
        """
        container = self.container
        record: ModuleRecord = container.get_module(index)
        content = container.module_content(record)

        self.log('debug', f"[*] Module: {container.module_name(record)}  ({len(content)} bytes, "
                          f"loader={record.extension})")

        patched, marker_offset = patch_content(content, marker, replacement)
        self.log('debug', f"[*] Marker found at offset {marker_offset}")

        occurrences = count_occurrences(content, marker)
        if occurrences > 1:
            self.log('warning', f"[!] Marker occurs {occurrences} times in module {index}; "
                                "only the first occurrence is replaced")

        if original is None:
            original = self.read_original()

        content_start, content_end = container.file_span(record.contents)
        if original[content_start:content_end] != content:
            raise CorruptContainer(
                "file bytes at the module content region do not match the decoded "
                "content; the file changed since it was opened")

        data = original[:content_start] + patched + original[content_end:]

        return PatchedFile(
            data=data,
            original=original,
            module_index=index,
            marker_offset=marker_offset,
            content_start=content_start,
            content_end=content_end,
        )


def patch_module(container: Container, index: int, marker: bytes, replacement: bytes,
                 original: Optional[bytes] = None, log: LogFn = null_log) -> PatchedFile:
    """Patch module ``index`` of ``container``; see Patcher.patch_module."""
    return Patcher(container, log).patch_module(index, marker, replacement, original)
