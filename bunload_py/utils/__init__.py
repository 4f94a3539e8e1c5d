"""
Utility functions and classes.
"""

from .pattern_search import rfind_in_file, search_bytes, count_occurrences
from .string_utils import escape_string, decode_name, sanitize_path_component

__all__ = [
    'rfind_in_file', 'search_bytes', 'count_occurrences',
    'escape_string', 'decode_name', 'sanitize_path_component',
]
