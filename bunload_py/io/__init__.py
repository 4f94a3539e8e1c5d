"""
IO module for binary stream handling.
"""

from .binary_stream import BinaryStream
from .version_aware import layout_field, wire, LayoutRange, LAYOUT_LEGACY, LAYOUT_CURRENT

__all__ = ['BinaryStream', 'layout_field', 'wire', 'LayoutRange', 'LAYOUT_LEGACY', 'LAYOUT_CURRENT']
