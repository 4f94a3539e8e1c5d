"""
Standalone executable container structure definitions.

Layout at the end of a compiled executable:

    [native code ...][blob (byte_count)][header (32)][trailer][...]

Every StringPointer in the header and in the module table is relative to the
start of the blob.
"""

from dataclasses import dataclass, field
from enum import IntEnum

from ..io.version_aware import layout_field, wire, LAYOUT_CURRENT
from ..errors import PointerOutOfRange


# Magic trailer appended by the bundler
TRAILER = b"\n---- Bun! ----\n"

HEADER_SIZE = 32
RECORD_SIZE = 52
LEGACY_RECORD_SIZE = 36
CHUNK_SIZE = 4096


class Encoding(IntEnum):
    """How a module's contents are encoded."""
    BINARY = 0
    LATIN1 = 1
    UTF8 = 2


class Loader(IntEnum):
    """How a module's contents are interpreted."""
    JSX = 0
    JS = 1
    TS = 2
    TSX = 3
    CSS = 4
    FILE = 5
    JSON = 6
    JSONC = 7
    TOML = 8
    WASM = 9
    NAPI = 10
    BASE64 = 11
    DATAURL = 12
    TEXT = 13
    BUNSH = 14
    SQLITE = 15
    SQLITE_EMBEDDED = 16
    HTML = 17
    YAML = 18
    JSON5 = 19
    MD = 20


LOADER_EXTENSIONS = {
    Loader.JSX: '.jsx',
    Loader.JS: '.js',
    Loader.TS: '.ts',
    Loader.TSX: '.tsx',
    Loader.CSS: '.css',
    Loader.FILE: '.bin',
    Loader.JSON: '.json',
    Loader.JSONC: '.jsonc',
    Loader.TOML: '.toml',
    Loader.WASM: '.wasm',
    Loader.NAPI: '.node',
    Loader.BASE64: '.b64',
    Loader.DATAURL: '.txt',
    Loader.TEXT: '.txt',
    Loader.BUNSH: '.sh',
    Loader.SQLITE: '.sqlite',
    Loader.SQLITE_EMBEDDED: '.sqlite',
    Loader.HTML: '.html',
    Loader.YAML: '.yaml',
    Loader.JSON5: '.json5',
    Loader.MD: '.md',
}

# Loaders whose content is JavaScript-family source
SCRIPT_LOADERS = frozenset({Loader.JSX, Loader.JS, Loader.TS, Loader.TSX})


def loader_extension(loader: int) -> str:
    """Canonical file extension for a loader value; unknown values are binary."""
    return LOADER_EXTENSIONS.get(loader, '.bin')


def encoding_name(encoding: int) -> str:
    """Lower-case encoding name, or the raw number for unknown values."""
    try:
        return Encoding(encoding).name.lower()
    except ValueError:
        return str(encoding)


@dataclass
class StringPointer:
    """A relative span into the blob."""
    offset: int = wire(4)
    length: int = wire(4)

    @property
    def end(self) -> int:
        return self.offset + self.length

    def read(self, blob: bytes) -> bytes:
        """
        Resolve the span against ``blob``.

        A zero-length span is always empty, whatever its offset.

        Raises:
            PointerOutOfRange: If the span reaches past the end of the blob
        """
        if self.length == 0:
            return b''
        if self.end > len(blob):
            raise PointerOutOfRange(
                f"span offset={self.offset} length={self.length} exceeds "
                f"blob of {len(blob)} bytes")
        return bytes(blob[self.offset:self.end])

    def __str__(self) -> str:
        return f"offset={self.offset}, length={self.length}"


@dataclass
class ContainerHeader:
    """The 32-byte record immediately before the trailer."""
    byte_count: int = wire(8)
    modules_ptr: StringPointer = field(default_factory=StringPointer)
    entry_point_id: int = wire(4)
    argv_ptr: StringPointer = field(default_factory=StringPointer)
    flags: int = wire(4)


@dataclass
class ModuleRecord:
    """One entry of the module table."""
    name: StringPointer = field(default_factory=StringPointer)
    contents: StringPointer = field(default_factory=StringPointer)
    source_map: StringPointer = field(default_factory=StringPointer)
    bytecode: StringPointer = field(default_factory=StringPointer)
    # Added by the 52-byte layout
    module_info: StringPointer = layout_field(min_rev=LAYOUT_CURRENT, default_factory=StringPointer)
    bytecode_origin_path: StringPointer = layout_field(min_rev=LAYOUT_CURRENT, default_factory=StringPointer)
    encoding: int = wire(1)
    loader: int = wire(1)
    module_format: int = wire(1)
    side: int = wire(1)

    @property
    def extension(self) -> str:
        return loader_extension(self.loader)

    @property
    def is_script(self) -> bool:
        return self.loader in SCRIPT_LOADERS
