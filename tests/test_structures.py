"""Tests for the wire structures and the header codec."""

import struct

import pytest

from bunload_py.errors import PointerOutOfRange, TruncatedInput
from bunload_py.formats.container import decode_header, encode_header, decode_record, encode_record, record_size
from bunload_py.formats.structures import (
    ContainerHeader, ModuleRecord, StringPointer, Loader, loader_extension, encoding_name,
    HEADER_SIZE, RECORD_SIZE, LEGACY_RECORD_SIZE
)
from bunload_py.io.binary_stream import BinaryStream
from bunload_py.io.version_aware import LAYOUT_LEGACY, LAYOUT_CURRENT


def test_header_decodes_fixed_little_endian_layout() -> None:
    raw = struct.pack("<QIIIIII", 100, 40, 52, 7, 92, 6, 0b101)
    header = decode_header(raw)

    assert header.byte_count == 100
    assert header.modules_ptr == StringPointer(40, 52)
    assert header.entry_point_id == 7
    assert header.argv_ptr == StringPointer(92, 6)
    assert header.flags == 5
    assert encode_header(header) == raw


def test_header_ignores_trailing_bytes() -> None:
    raw = struct.pack("<QIIIIII", 1, 2, 3, 4, 5, 6, 7) + b"\n---- Bun! ----\n"
    assert decode_header(raw).flags == 7


def test_truncated_header() -> None:
    with pytest.raises(TruncatedInput):
        decode_header(b"\0" * (HEADER_SIZE - 1))


def test_record_sizes() -> None:
    assert BinaryStream(b"", layout=LAYOUT_CURRENT).size_of(ModuleRecord) == RECORD_SIZE
    assert BinaryStream(b"", layout=LAYOUT_LEGACY).size_of(ModuleRecord) == LEGACY_RECORD_SIZE
    assert BinaryStream(b"").size_of(ContainerHeader) == HEADER_SIZE
    assert record_size(LAYOUT_CURRENT) == RECORD_SIZE
    assert record_size(LAYOUT_LEGACY) == LEGACY_RECORD_SIZE


def test_unknown_layout_has_no_record_size() -> None:
    with pytest.raises(ValueError):
        record_size(LAYOUT_CURRENT + 1)


def test_record_decodes_pointers_then_enum_bytes() -> None:
    raw = struct.pack("<12I4B", 1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 2, 1, 1, 0)
    record = decode_record(raw)

    assert record.name == StringPointer(1, 2)
    assert record.contents == StringPointer(3, 4)
    assert record.source_map == StringPointer(5, 6)
    assert record.bytecode == StringPointer(7, 8)
    assert record.module_info == StringPointer(9, 10)
    assert record.bytecode_origin_path == StringPointer(11, 12)
    assert (record.encoding, record.loader, record.module_format, record.side) == (2, 1, 1, 0)
    assert encode_record(record) == raw


def test_legacy_record_has_four_pointers() -> None:
    raw = struct.pack("<8I4B", 1, 2, 3, 4, 5, 6, 7, 8, 0, 13, 0, 1)
    record = decode_record(raw, LAYOUT_LEGACY)

    assert record.bytecode == StringPointer(7, 8)
    assert record.module_info == StringPointer()
    assert record.loader == Loader.TEXT
    assert record.side == 1
    assert encode_record(record, LAYOUT_LEGACY) == raw


def test_short_record() -> None:
    with pytest.raises(TruncatedInput):
        decode_record(b"\0" * (RECORD_SIZE - 1))


def test_string_pointer_read() -> None:
    blob = b"0123456789"
    assert StringPointer(2, 3).read(blob) == b"234"
    assert StringPointer(8, 2).read(blob) == b"89"
    # zero-length spans are empty even when the offset is out of range
    assert StringPointer(500, 0).read(blob) == b""
    with pytest.raises(PointerOutOfRange):
        StringPointer(8, 3).read(blob)


@pytest.mark.parametrize("loader,ext", [
    (0, ".jsx"), (1, ".js"), (2, ".ts"), (3, ".tsx"), (4, ".css"), (5, ".bin"),
    (9, ".wasm"), (10, ".node"), (11, ".b64"), (12, ".txt"), (15, ".sqlite"),
    (17, ".html"), (18, ".yaml"), (20, ".md"), (21, ".bin"), (255, ".bin"),
])
def test_loader_extension(loader: int, ext: str) -> None:
    assert loader_extension(loader) == ext


def test_encoding_name() -> None:
    assert encoding_name(0) == "binary"
    assert encoding_name(1) == "latin1"
    assert encoding_name(2) == "utf8"
    assert encoding_name(9) == "9"
