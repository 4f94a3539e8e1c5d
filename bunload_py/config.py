"""
Configuration handling for bunload.
"""

from dataclasses import dataclass, asdict, fields as dataclass_fields
from typing import Optional
import json
from pathlib import Path

from .utils.string_utils import to_camel_case, to_snake_case

DEFAULT_MARKER = (
    "// (c) Anthropic PBC. All rights reserved. Use is subject to the Legal "
    "Agreements outlined here: https://code.claude.com/docs/en/legal-and-compliance."
)

DEFAULT_REPLACEMENT = (
    "eval(require('fs').readFileSync(require('path').join(require('path')"
    ".dirname(process.execPath),'payload.js'),'utf8'))"
)


@dataclass
class Config:
    """Configuration options for bunload."""

    # Decode options
    chunk_size: int = 4096

    # Extraction options
    beautify: bool = False
    beautifier: str = "js-beautify"
    beautify_timeout: float = 30.0
    write_source_maps: bool = True
    write_bytecode: bool = True
    write_manifest: bool = True

    # Install options
    executable_name: str = "claude"
    backup_suffix: str = ".original"
    payload_file_name: str = "payload.js"
    plugin_dir_name: str = "bunload-plugins"
    marker_text: str = DEFAULT_MARKER
    replacement_text: str = DEFAULT_REPLACEMENT

    # Code signing (None = only on macOS)
    sign_after_patch: Optional[bool] = None
    codesign_attempts: int = 3

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'Config':
        """Load configuration from a JSON file."""
        if path is None:
            path = Path(__file__).parent / 'config.json'

        if not path.exists():
            return cls()

        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        # Convert camelCase to snake_case
        converted = {to_snake_case(key): value for key, value in data.items()}

        # Filter to only include valid fields
        valid_fields = {f.name for f in dataclass_fields(cls)}
        filtered = {k: v for k, v in converted.items() if k in valid_fields}

        return cls(**filtered)

    def save(self, path: Path) -> None:
        """Save configuration to a JSON file."""
        # Convert snake_case to camelCase for compatibility
        data = {to_camel_case(key): value for key, value in asdict(self).items()}

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
