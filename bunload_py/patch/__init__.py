"""
Patching of module content and installation into executables.
"""

from .patcher import Patcher, PatchedFile, patch_content, patch_module
from .installer import Installer, InstallResult, UninstallResult, find_executable, normalize_path
from .signing import resign_binary, signing_required

__all__ = [
    'Patcher', 'PatchedFile', 'patch_content', 'patch_module',
    'Installer', 'InstallResult', 'UninstallResult', 'find_executable', 'normalize_path',
    'resign_binary', 'signing_required',
]
