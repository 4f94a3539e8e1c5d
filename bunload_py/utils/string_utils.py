"""
String utility functions.
"""

import unicodedata

# Characters that are never valid inside an extracted path component
RESERVED_PATH_CHARS = '\\/:*?"<>|'
MAX_COMPONENT_LENGTH = 200


def decode_name(raw: bytes) -> str:
    """Decode a module name as UTF-8, replacing invalid bytes."""
    return raw.decode('utf-8', errors='replace')


def escape_string(s: str) -> str:
    """
    Escape a string for single-line diagnostic output.

    Args:
        s: Input string

    Returns:
        Escaped string with control and non-ASCII characters made visible
    """
    result = []
    for char in s:
        if char == '\\':
            result.append('\\\\')
        elif char == '\n':
            result.append('\\n')
        elif char == '\r':
            result.append('\\r')
        elif char == '\t':
            result.append('\\t')
        elif char == '\0':
            result.append('\\0')
        elif ord(char) < 32 or ord(char) == 127:
            result.append(f'\\x{ord(char):02x}')
        else:
            result.append(char)
    return ''.join(result)


def _is_printable(char: str) -> bool:
    # Letters, marks, numbers, punctuation, symbols and the ASCII space
    if char == ' ':
        return True
    return unicodedata.category(char)[0] in 'LMNPS'


def sanitize_path_component(part: str) -> str:
    """
    Make one path component safe to create on any filesystem.

    Control, non-printable and reserved characters become ``_``; surrounding
    whitespace is trimmed and the result is capped at 200 characters.
    Components consisting only of dots are dropped (returned empty).
    """
    cleaned = ''.join(
        '_' if (not _is_printable(c) or c in RESERVED_PATH_CHARS) else c
        for c in part
    ).strip()
    cleaned = cleaned[:MAX_COMPONENT_LENGTH]
    if cleaned.strip('.') == '':
        return ''
    return cleaned


def to_camel_case(snake_str: str) -> str:
    """
    Convert snake_case to camelCase.

    Args:
        snake_str: String in snake_case

    Returns:
        String in camelCase
    """
    components = snake_str.split('_')
    return components[0] + ''.join(x.title() for x in components[1:])


def to_snake_case(camel_str: str) -> str:
    """
    Convert camelCase or PascalCase to snake_case.

    Args:
        camel_str: String in camelCase or PascalCase

    Returns:
        String in snake_case
    """
    result = []
    for i, char in enumerate(camel_str):
        if char.isupper() and i > 0:
            result.append('_')
        result.append(char.lower())
    return ''.join(result)
