"""
bunload - inspect, extract and patch standalone executables

Decodes the module graph that a JavaScript bundler appends to compiled
standalone executables, extracts the bundled modules, and patches a
module's content in place without moving any other byte.
"""

__version__ = "1.0.0"
__author__ = "bunload contributors"

from .config import Config
from .formats.container import Container
from .output.extractor import extract_all
from .patch.patcher import patch_module

__all__ = ['Config', 'Container', 'extract_all', 'patch_module', '__version__']
