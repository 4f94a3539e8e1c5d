"""
Decoder for the data appended to standalone executables.

Decoding is a straight pipeline:

    file -> find_trailer -> decode_header -> load_blob -> module_table

Every stage raises a FormatError subclass on malformed input, so a Container
only exists once the whole pipeline has succeeded.
"""

import copy
import os
from dataclasses import dataclass, field
from io import BytesIO
from typing import BinaryIO, Iterator, List, Tuple

from ..errors import (
    TrailerNotFound, TruncatedInput, CorruptContainer, IndexOutOfRange,
    RecordTableMisaligned, wrap_os_error
)
from ..io.binary_stream import BinaryStream
from ..io.version_aware import LAYOUT_LEGACY, LAYOUT_CURRENT
from ..utils.log import LogFn, null_log
from ..utils.pattern_search import rfind_in_file
from ..utils.string_utils import decode_name, escape_string
from .structures import (
    TRAILER, HEADER_SIZE, CHUNK_SIZE,
    ContainerHeader, ModuleRecord, StringPointer, encoding_name, loader_extension
)


def find_trailer(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> int:
    """
    Locate the magic trailer, scanning backward from the end of the stream.

    Returns:
        File offset of the trailer's first byte, or -1 if there is none
    """
    return rfind_in_file(stream, TRAILER, chunk_size)


def decode_header(data: bytes) -> ContainerHeader:
    """
    Decode the fixed 32-byte header.

    Raises:
        TruncatedInput: If fewer than 32 bytes are supplied
    """
    if len(data) < HEADER_SIZE:
        raise TruncatedInput(f"header data too short: {len(data)} < {HEADER_SIZE}")
    return BinaryStream(data[:HEADER_SIZE]).read_class(ContainerHeader)


def encode_header(header: ContainerHeader) -> bytes:
    """Encode a header into its 32-byte wire form."""
    out = BytesIO()
    BinaryStream(out).write_class(header)
    return out.getvalue()


def encode_record(record: ModuleRecord, layout: int = LAYOUT_CURRENT) -> bytes:
    """Encode a module record into its wire form for the given layout."""
    out = BytesIO()
    BinaryStream(out, layout=layout).write_class(record)
    return out.getvalue()


def load_blob(stream: BinaryIO, header: ContainerHeader, header_offset: int) -> Tuple[bytes, int]:
    """
    Read the blob that sits immediately before the header.

    Returns:
        Tuple of (blob bytes, blob start offset in the file)

    Raises:
        CorruptContainer: If the blob would start before the file does
        TruncatedInput: If the file ends before byte_count bytes were read
    """
    blob_start = header_offset - header.byte_count
    if blob_start < 0:
        raise CorruptContainer(
            f"calculated blob start is negative ({blob_start}); "
            f"byte_count={header.byte_count} exceeds header offset {header_offset}")

    reader = BinaryStream(stream)
    reader.position = blob_start
    try:
        blob = reader.read_bytes(header.byte_count)
    except TruncatedInput as exc:
        raise TruncatedInput(f"unexpected end of file reading data blob: {exc}") from exc
    return blob, blob_start


def record_size(layout: int = LAYOUT_CURRENT) -> int:
    """Wire size of one module record in the given layout revision."""
    if layout not in (LAYOUT_LEGACY, LAYOUT_CURRENT):
        raise ValueError(f"unknown module record layout {layout}")
    return BinaryStream(b'', layout=layout).size_of(ModuleRecord)


def table_bytes(blob: bytes, header: ContainerHeader, layout: int = LAYOUT_CURRENT) -> bytes:
    """
    Resolve the module table region and check it holds whole records.

    Raises:
        PointerOutOfRange: If the table pointer exceeds the blob
        RecordTableMisaligned: If the length is not a multiple of the record size
    """
    raw = header.modules_ptr.read(blob)
    size = record_size(layout)
    if len(raw) % size != 0:
        raise RecordTableMisaligned(
            f"module table length {len(raw)} is not a multiple of the "
            f"{size}-byte record size")
    return raw


def decode_record(data: bytes, layout: int = LAYOUT_CURRENT) -> ModuleRecord:
    """
    Decode one module record.

    Raises:
        TruncatedInput: If ``data`` is shorter than one record
    """
    size = record_size(layout)
    if len(data) < size:
        raise TruncatedInput(f"module data too short: {len(data)} < {size}")
    return BinaryStream(data[:size], layout=layout).read_class(ModuleRecord)


def module_table(blob: bytes, header: ContainerHeader, layout: int = LAYOUT_CURRENT) -> List[ModuleRecord]:
    """Decode every record of the module table."""
    raw = table_bytes(blob, header, layout)
    size = record_size(layout)
    return [decode_record(raw[i:i + size], layout) for i in range(0, len(raw), size)]


@dataclass
class Container:
    """
    Decoded, read-only view of an executable's appended module graph.

    Attributes:
        path: File the container was decoded from
        blob: Shared region every StringPointer resolves against
        module_table_bytes: Raw module table, a slice of the blob
        blob_start: File offset of the blob's first byte
        trailer_pos: File offset of the trailer's first byte
        header: Decoded header
        module_count: Number of records in the module table
        layout: Module record layout revision
    """
    path: str
    blob: bytes
    module_table_bytes: bytes
    blob_start: int
    trailer_pos: int
    header: ContainerHeader
    module_count: int
    layout: int = LAYOUT_CURRENT
    _records: dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def open(cls, path, log: LogFn = null_log, chunk_size: int = CHUNK_SIZE,
             layout: int = LAYOUT_CURRENT) -> 'Container':
        """
        Decode the container appended to the executable at ``path``.

        Raises:
            FormatError: If any stage of decoding fails
            ConstraintViolation: If the module table is misaligned
            ContainerIOError: If the file cannot be read
        """
        path = os.fspath(path)
        log('debug', f"[*] Analyzing {path}...")
        try:
            with open(path, 'rb') as f:
                return cls.from_stream(f, path=path, log=log,
                                       chunk_size=chunk_size, layout=layout)
        except OSError as exc:
            raise wrap_os_error(exc, f"reading {path}", path) from exc

    @classmethod
    def from_bytes(cls, data: bytes, path: str = '<memory>', log: LogFn = null_log,
                   layout: int = LAYOUT_CURRENT) -> 'Container':
        """Decode a container from an in-memory copy of the file."""
        return cls.from_stream(BytesIO(data), path=path, log=log, layout=layout)

    @classmethod
    def from_stream(cls, stream: BinaryIO, path: str = '<stream>', log: LogFn = null_log,
                    chunk_size: int = CHUNK_SIZE, layout: int = LAYOUT_CURRENT) -> 'Container':
        """Run the decode pipeline over a seekable binary stream."""
        size = record_size(layout)

        trailer_pos = find_trailer(stream, chunk_size)
        if trailer_pos < 0:
            raise TrailerNotFound(
                "could not find the trailer signature; is this a compiled standalone executable?")
        log('debug', f"[*] Found trailer at offset: {trailer_pos}")

        header_offset = trailer_pos - HEADER_SIZE
        if header_offset < 0:
            raise TruncatedInput(
                f"trailer at offset {trailer_pos} leaves no room for the {HEADER_SIZE}-byte header")

        stream.seek(header_offset)
        header = decode_header(stream.read(HEADER_SIZE))

        log('debug', "--- Header ---")
        log('debug', f"  byte_count:            {header.byte_count} bytes")
        log('debug', f"  modules_ptr:           {header.modules_ptr}")
        log('debug', f"  entry_point_id:        {header.entry_point_id}")
        log('debug', f"  argv_ptr:              {header.argv_ptr}")
        log('debug', f"  flags:                 {header.flags:b} ({header.flags})")

        blob, blob_start = load_blob(stream, header, header_offset)
        log('debug', f"  blob_start:            {blob_start}")

        raw_table = table_bytes(blob, header, layout)
        module_count = len(raw_table) // size
        log('debug', f"  module_count:          {module_count}")

        container = cls(
            path=path,
            blob=blob,
            module_table_bytes=raw_table,
            blob_start=blob_start,
            trailer_pos=trailer_pos,
            header=header,
            module_count=module_count,
            layout=layout,
        )

        argv = container.exec_argv
        if argv:
            log('debug', f"  exec_argv:             {escape_string(argv)}")

        return container

    # ========== Geometry ==========

    @property
    def header_offset(self) -> int:
        """File offset of the header."""
        return self.trailer_pos - HEADER_SIZE

    @property
    def record_size(self) -> int:
        return record_size(self.layout)

    def file_span(self, pointer: StringPointer) -> Tuple[int, int]:
        """Absolute (start, end) file offsets of a blob-relative span."""
        start = self.blob_start + pointer.offset
        return start, start + pointer.length

    # ========== Modules ==========

    def get_module(self, index: int) -> ModuleRecord:
        """
        Decode the record at ``index``. Each call returns a fresh copy.

        Raises:
            IndexOutOfRange: If the index is outside [0, module_count) or the
                record would reach past the table bytes
        """
        if index < 0 or index >= self.module_count:
            raise IndexOutOfRange(
                f"module index {index} out of range [0, {self.module_count})")
        start = index * self.record_size
        end = start + self.record_size
        if end > len(self.module_table_bytes):
            raise IndexOutOfRange(
                f"module index {index} is out of bounds in modules data (corrupt binary?)")

        if index not in self._records:
            self._records[index] = decode_record(self.module_table_bytes[start:end], self.layout)
        return copy.deepcopy(self._records[index])

    def iter_modules(self) -> Iterator[Tuple[int, ModuleRecord]]:
        """Yield (index, record) for every module in table order."""
        for index in range(self.module_count):
            yield index, self.get_module(index)

    def module_name(self, record: ModuleRecord) -> str:
        """The module's virtual path, decoded best-effort as UTF-8."""
        return decode_name(record.name.read(self.blob))

    def module_content(self, record: ModuleRecord) -> bytes:
        """The module's content bytes (empty when it has none)."""
        return record.contents.read(self.blob)

    def resolve(self, pointer: StringPointer) -> bytes:
        """Resolve any blob-relative pointer."""
        return pointer.read(self.blob)

    def find_module_by_name(self, name: str) -> Tuple[ModuleRecord, int]:
        """
        Find a module by its exact virtual name.

        Returns:
            Tuple of (record, index)

        Raises:
            IndexOutOfRange: If no module has that name
        """
        for index, record in self.iter_modules():
            if self.module_name(record) == name:
                return record, index
        raise IndexOutOfRange(f"module {name!r} not found")

    @property
    def exec_argv(self) -> str:
        """Extra runtime arguments recorded at compile time."""
        return decode_name(self.header.argv_ptr.read(self.blob))

    def describe_module(self, index: int, record: ModuleRecord, log: LogFn) -> None:
        """Log every field of a module record at debug level."""
        name = self.module_name(record)
        log('debug', f"--- Module [{index}] ---")
        log('debug', f"  name:                 {escape_string(name) or '<empty>'}")
        log('debug', f"  name_ptr:             {record.name}")
        log('debug', f"  contents_ptr:         {record.contents}")
        log('debug', f"  sourcemap_ptr:        {record.source_map}")
        log('debug', f"  bytecode_ptr:         {record.bytecode}")
        log('debug', f"  module_info_ptr:      {record.module_info}")
        log('debug', f"  bytecode_origin_ptr:  {record.bytecode_origin_path}")
        log('debug', f"  encoding:             {encoding_name(record.encoding)} ({record.encoding})")
        log('debug', f"  loader:               {loader_extension(record.loader)} ({record.loader})")
        log('debug', f"  module_format:        {record.module_format}")
        log('debug', f"  side:                 {record.side}")
