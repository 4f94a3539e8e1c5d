"""Shared fixtures: synthetic standalone executables built byte by byte."""

import struct
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bunload_py.formats.structures import TRAILER, ContainerHeader, ModuleRecord, StringPointer
from bunload_py.formats.container import encode_header, encode_record
from bunload_py.io.version_aware import LAYOUT_CURRENT

NATIVE_PREFIX = b"\x7fELF" + bytes(range(256)) * 4


@dataclass
class FakeModule:
    name: bytes = b""
    contents: bytes = b""
    source_map: bytes = b""
    bytecode: bytes = b""
    module_info: bytes = b""
    bytecode_origin_path: bytes = b""
    encoding: int = 2
    loader: int = 1
    module_format: int = 0
    side: int = 0


@dataclass
class BuiltContainer:
    data: bytes
    blob_start: int
    header_offset: int
    trailer_pos: int
    header: ContainerHeader
    records: List[ModuleRecord] = field(default_factory=list)

    def write(self, path: Path) -> Path:
        path.write_bytes(self.data)
        return path


def build_container(modules: List[FakeModule], argv: bytes = b"", prefix: bytes = NATIVE_PREFIX,
                    suffix: bytes = b"", layout: int = LAYOUT_CURRENT,
                    blob_size: Optional[int] = None, table_length: Optional[int] = None,
                    byte_count: Optional[int] = None) -> BuiltContainer:
    """
    Assemble ``prefix + blob + header + trailer + suffix``.

    The blob holds every module's data, then the module table, then argv,
    then zero padding up to ``blob_size``. ``table_length`` and
    ``byte_count`` override the header fields to build malformed files.
    """
    blob = bytearray()

    def put(data: bytes) -> StringPointer:
        pointer = StringPointer(len(blob), len(data))
        blob.extend(data)
        return pointer

    records = []
    for module in modules:
        records.append(ModuleRecord(
            name=put(module.name),
            contents=put(module.contents),
            source_map=put(module.source_map),
            bytecode=put(module.bytecode),
            module_info=put(module.module_info),
            bytecode_origin_path=put(module.bytecode_origin_path),
            encoding=module.encoding,
            loader=module.loader,
            module_format=module.module_format,
            side=module.side,
        ))

    table = b"".join(encode_record(r, layout) for r in records)
    modules_ptr = put(table)
    if table_length is not None:
        modules_ptr = StringPointer(modules_ptr.offset, table_length)
        if modules_ptr.end > len(blob):
            blob.extend(bytes(modules_ptr.end - len(blob)))
    argv_ptr = put(argv)

    if blob_size is not None:
        assert blob_size >= len(blob), "blob_size too small for the modules"
        blob.extend(bytes(blob_size - len(blob)))

    header = ContainerHeader(
        byte_count=len(blob) if byte_count is None else byte_count,
        modules_ptr=modules_ptr,
        entry_point_id=0,
        argv_ptr=argv_ptr,
        flags=0,
    )

    blob_start = len(prefix)
    header_offset = blob_start + len(blob)
    trailer_pos = header_offset + 32
    data = bytes(prefix) + bytes(blob) + encode_header(header) + TRAILER + suffix
    return BuiltContainer(data, blob_start, header_offset, trailer_pos, header, records)


POINTER_FIELDS = ("name", "contents", "source_map", "bytecode", "module_info", "bytecode_origin_path")


def with_pointer(built: BuiltContainer, index: int, field_name: str, offset: Optional[int] = None,
                 length: Optional[int] = None, record_size: int = 52) -> bytes:
    """Copy of the file bytes with one pointer of record ``index`` rewritten."""
    record_start = built.blob_start + built.header.modules_ptr.offset + index * record_size
    at = record_start + 8 * POINTER_FIELDS.index(field_name)
    data = bytearray(built.data)
    old_offset, old_length = struct.unpack_from("<II", data, at)
    struct.pack_into("<II", data, at,
                     old_offset if offset is None else offset,
                     old_length if length is None else length)
    return bytes(data)


@pytest.fixture
def sample_modules() -> List[FakeModule]:
    return [
        FakeModule(name=b"/$bunfs/root/cli.js",
                   contents=b"// entry\nconsole.log('hi');\n// MARKER-LICENSE-TEXT\n",
                   source_map=b'{"version":3}', bytecode=b"\x00BC\x01", loader=1),
        FakeModule(name=b"/$bunfs/root/lib/util.ts", contents=b"export const x = 1;\n", loader=2),
        FakeModule(name=b"/$bunfs/root/empty.js", contents=b"", loader=1),
        FakeModule(name=b"/$bunfs/root/addon.node", contents=b"\x7fELF-native", encoding=0, loader=10),
    ]


@pytest.fixture
def sample_container(sample_modules) -> BuiltContainer:
    return build_container(sample_modules, argv=b"--smol", suffix=struct.pack("<Q", 0))


@pytest.fixture
def sample_exe(tmp_path, sample_container) -> Path:
    path = tmp_path / "app"
    sample_container.write(path)
    path.chmod(0o755)
    return path
