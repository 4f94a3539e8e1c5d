"""
Output generators for extracted module content.
"""

from .extractor import (
    ContentExtractor, ExtractionReport, ModuleError,
    extract_all, derive_output_path, derive_relative_path
)
from .manifest import Manifest, ManifestModule
from .beautifier import beautify_js

__all__ = [
    'ContentExtractor', 'ExtractionReport', 'ModuleError',
    'extract_all', 'derive_output_path', 'derive_relative_path',
    'Manifest', 'ManifestModule', 'beautify_js',
]
