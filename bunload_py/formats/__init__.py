"""
Container format decoding.

Layout of a compiled standalone executable:
- native code (opaque)
- blob: module names, contents, source maps, bytecode and the module table
- 32-byte header describing the blob
- magic trailer
"""

from .structures import (
    TRAILER, HEADER_SIZE, RECORD_SIZE, LEGACY_RECORD_SIZE, CHUNK_SIZE,
    Encoding, Loader, StringPointer, ContainerHeader, ModuleRecord,
    loader_extension, encoding_name
)
from .container import (
    Container, find_trailer, decode_header, encode_header, encode_record,
    load_blob, module_table, decode_record
)

__all__ = [
    'TRAILER', 'HEADER_SIZE', 'RECORD_SIZE', 'LEGACY_RECORD_SIZE', 'CHUNK_SIZE',
    'Encoding', 'Loader', 'StringPointer', 'ContainerHeader', 'ModuleRecord',
    'loader_extension', 'encoding_name',
    'Container', 'find_trailer', 'decode_header', 'encode_header', 'encode_record',
    'load_blob', 'module_table', 'decode_record',
]
