"""
Layout-aware field decorators and utilities.

The module record grew over time: the first layout carried four string
pointers, the current one carries six. Fields introduced by a later layout
revision are declared with layout_field() so a single dataclass can decode
every revision.
"""

from dataclasses import field
from typing import Any, Optional, Dict


# Known module record layout revisions
LAYOUT_LEGACY = 1    # 36-byte record: name, contents, sourcemap, bytecode
LAYOUT_CURRENT = 2   # 52-byte record: adds module_info, bytecode_origin_path


class LayoutRange:
    """Represents a range of layout revisions in which a field exists."""

    def __init__(self, min_rev: int = 0, max_rev: int = 99):
        self.min = min_rev
        self.max = max_rev

    def contains(self, revision: int) -> bool:
        """Check if revision is within this range."""
        return self.min <= revision <= self.max

    def __repr__(self) -> str:
        return f"LayoutRange({self.min}, {self.max})"


def layout_field(
    min_rev: int = 0,
    max_rev: int = 99,
    default: Any = None,
    default_factory: Any = None,
    binary_size: Optional[int] = None,
    unsigned: bool = True
):
    """
    Create a dataclass field with layout metadata.

    Args:
        min_rev: First layout revision containing the field (inclusive)
        max_rev: Last layout revision containing the field (inclusive)
        default: Default value for the field
        default_factory: Factory function for default value
        binary_size: Explicit size in bytes (1, 2, 4, or 8)
        unsigned: Whether to read as unsigned (default True)

    Example:
        @dataclass
        class ModuleRecord:
            name: StringPointer = field(default_factory=StringPointer)
            # Only present from revision 2 on
            module_info: StringPointer = layout_field(
                min_rev=2, default_factory=StringPointer)
    """
    metadata: Dict[str, Any] = {
        'layout': LayoutRange(min_rev, max_rev),
    }

    if binary_size is not None:
        metadata['binary_size'] = binary_size
        metadata['unsigned'] = unsigned

    if default_factory is not None:
        return field(default_factory=default_factory, metadata=metadata)
    return field(default=default if default is not None else 0, metadata=metadata)


def wire(binary_size: int, unsigned: bool = True, default: int = 0):
    """Declare a plain integer field with a fixed wire size."""
    return field(default=default, metadata={'binary_size': binary_size, 'unsigned': unsigned})


def get_layout_range(field_info) -> Optional[LayoutRange]:
    """Get the layout range from a field's metadata."""
    if field_info.metadata:
        return field_info.metadata.get('layout')
    return None


def should_read_field(field_info, revision: int) -> bool:
    """
    Determine if a field is present in the given layout revision.

    Args:
        field_info: The dataclass field info
        revision: The record layout revision

    Returns:
        True if the field should be read, False otherwise
    """
    layout_range = get_layout_range(field_info)
    if layout_range is None:
        return True  # No layout constraint, always present
    return layout_range.contains(revision)


# Little-endian struct format characters keyed by (size, unsigned)
STRUCT_FORMAT: Dict[tuple, str] = {
    (1, True): 'B',
    (1, False): 'b',
    (2, True): 'H',
    (2, False): 'h',
    (4, True): 'I',
    (4, False): 'i',
    (8, True): 'Q',
    (8, False): 'q',
}
