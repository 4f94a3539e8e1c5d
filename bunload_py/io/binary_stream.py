"""
Binary stream reader with layout-aware struct parsing.

This module provides a BinaryStream class that reads and writes fixed-layout
little-endian records described by dataclasses. Integer fields declare their
wire size through field metadata; nested dataclass fields are decoded in
declaration order.
"""

import struct
from io import BytesIO
from typing import (
    TypeVar, Type, List, Optional, Any, Dict, Union, Tuple, BinaryIO,
    get_type_hints
)
from dataclasses import fields, is_dataclass

from .version_aware import should_read_field, STRUCT_FORMAT, LAYOUT_CURRENT
from ..errors import TruncatedInput

T = TypeVar('T')

# Cache for compiled struct reading strategies
# Key: (dataclass_type, layout) -> (struct_format, field_names, struct_size, nested_fields)
_STRUCT_CACHE: Dict[Tuple[type, int], Tuple[str, List[str], int, Dict[str, type]]] = {}

# Cache for struct sizes
# Key: (dataclass_type, layout) -> size
_SIZE_CACHE: Dict[Tuple[type, int], int] = {}


class BinaryStream:
    """
    Binary stream reader/writer for fixed-layout records.

    Attributes:
        layout: The module record layout revision being decoded
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview, BinaryIO],
                 layout: int = LAYOUT_CURRENT):
        """
        Initialize a BinaryStream.

        Args:
            data: Raw bytes, or any seekable binary stream (BytesIO, open file)
            layout: Record layout revision used to select optional fields
        """
        if isinstance(data, (bytes, bytearray, memoryview)):
            self._stream = BytesIO(bytes(data))
        else:
            self._stream = data

        self.layout: int = layout

    def _get_struct_format(self, cls: Type[T]) -> Tuple[str, List[str], int, Dict[str, type]]:
        """
        Get or compute the struct format for a dataclass at the current layout.

        Returns:
            Tuple of (struct_format, field_names, struct_size, nested_field_types)

        The format only describes the primitive fields; it is used as-is for
        flat records and to validate wire sizes for nested ones.
        """
        cache_key = (cls, self.layout)
        if cache_key in _STRUCT_CACHE:
            return _STRUCT_CACHE[cache_key]

        format_parts = ['<']  # Little endian
        field_names = []
        nested_fields: Dict[str, type] = {}

        hints = get_type_hints(cls)

        for field_info in fields(cls):
            if not should_read_field(field_info, self.layout):
                continue

            field_type = hints.get(field_info.name, field_info.type)

            binary_size = field_info.metadata.get('binary_size') if field_info.metadata else None
            if binary_size is not None:
                unsigned = field_info.metadata.get('unsigned', True)
                format_parts.append(STRUCT_FORMAT[(binary_size, unsigned)])
                field_names.append(field_info.name)
            elif is_dataclass(field_type):
                # Nested dataclass - will be read separately
                nested_fields[field_info.name] = field_type
            else:
                raise TypeError(
                    f"{cls.__name__}.{field_info.name} has no wire size")

        format_str = ''.join(format_parts)
        struct_size = struct.calcsize(format_str) if len(format_parts) > 1 else 0

        result = (format_str, field_names, struct_size, nested_fields)
        _STRUCT_CACHE[cache_key] = result
        return result

    def _field_order(self, cls: type) -> List[Tuple[str, Any]]:
        """Fields present at the current layout, in wire order."""
        hints = get_type_hints(cls)
        return [
            (f.name, hints.get(f.name, f.type))
            for f in fields(cls)
            if should_read_field(f, self.layout)
        ]

    def read_class(self, cls: Type[T], addr: Optional[int] = None) -> T:
        """
        Read a dataclass instance from the stream.

        Fields are decoded strictly in declaration order, so nested records may
        appear anywhere in the layout.

        Args:
            cls: The dataclass type to read
            addr: Optional address to seek to before reading

        Returns:
            An instance of the dataclass with fields populated from the stream
        """
        if addr is not None:
            self.position = addr

        instance = cls()
        format_str, field_names, struct_size, nested_fields = self._get_struct_format(cls)

        if not nested_fields:
            values = struct.unpack(format_str, self.read_bytes(struct_size))
            for name, value in zip(field_names, values):
                setattr(instance, name, value)
            return instance

        for name, field_type in self._field_order(cls):
            if name in nested_fields:
                setattr(instance, name, self.read_class(field_type))
            else:
                setattr(instance, name, self._read_sized(cls, name))
        return instance

    def _read_sized(self, cls: type, name: str) -> int:
        for f in fields(cls):
            if f.name == name:
                size = f.metadata['binary_size']
                unsigned = f.metadata.get('unsigned', True)
                return struct.unpack('<' + STRUCT_FORMAT[(size, unsigned)],
                                     self.read_bytes(size))[0]
        raise KeyError(name)

    def write_class(self, instance: Any) -> None:
        """Write a dataclass instance using the same layout read_class expects."""
        cls = type(instance)
        for name, field_type in self._field_order(cls):
            value = getattr(instance, name)
            if is_dataclass(field_type):
                self.write_class(value)
                continue
            for f in fields(cls):
                if f.name == name:
                    size = f.metadata['binary_size']
                    unsigned = f.metadata.get('unsigned', True)
                    self.write_bytes(struct.pack('<' + STRUCT_FORMAT[(size, unsigned)], value))
                    break

    # ========== Position ==========

    @property
    def position(self) -> int:
        """Get current stream position."""
        return self._stream.tell()

    @position.setter
    def position(self, value: int) -> None:
        """Set stream position."""
        self._stream.seek(value)

    # ========== Primitive Readers ==========

    def read_bytes(self, count: int) -> bytes:
        """Read exactly ``count`` raw bytes."""
        start = self.position
        data = self._stream.read(count)
        if len(data) != count:
            raise TruncatedInput(
                f"expected {count} bytes at offset {start}, got {len(data)}")
        return data

    # ========== Write Methods ==========

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes."""
        self._stream.write(data)

    # ========== Utility Methods ==========

    def size_of(self, cls: Type) -> int:
        """
        Calculate the wire size of a dataclass for the current layout.

        Args:
            cls: The dataclass type

        Returns:
            Size in bytes
        """
        cache_key = (cls, self.layout)
        if cache_key in _SIZE_CACHE:
            return _SIZE_CACHE[cache_key]

        size = 0
        for field_info in fields(cls):
            if not should_read_field(field_info, self.layout):
                continue
            binary_size = field_info.metadata.get('binary_size') if field_info.metadata else None
            if binary_size is not None:
                size += binary_size
            else:
                field_type = get_type_hints(cls).get(field_info.name, field_info.type)
                size += self.size_of(field_type)

        _SIZE_CACHE[cache_key] = size
        return size

