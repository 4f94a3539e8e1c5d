"""
Plugin directory management.

Plugins are loose ``.js`` files in a directory beside the patched
executable; the installed payload evaluates them in sorted order.
"""

import os
import shutil
from typing import List

from .errors import ContainerIOError, wrap_os_error

PLUGIN_SUFFIX = '.js'


class PluginDirectory:
    """A plugin directory on disk."""

    def __init__(self, path: str):
        self.path = path

    def exists(self) -> bool:
        return os.path.isdir(self.path)

    def list(self) -> List[str]:
        """Sorted plugin file names; empty when the directory is missing."""
        if not self.exists():
            return []
        try:
            entries = os.listdir(self.path)
        except OSError as exc:
            raise wrap_os_error(exc, "failed to read plugin directory", self.path) from exc
        return sorted(
            name for name in entries
            if name.endswith(PLUGIN_SUFFIX) and os.path.isfile(os.path.join(self.path, name))
        )

    def add(self, source: str) -> str:
        """
        Copy a plugin file into the directory.

        Returns:
            The installed path

        Raises:
            ValueError: If the file is not a .js file
        """
        if not source.endswith(PLUGIN_SUFFIX):
            raise ValueError("Plugin file must have a .js extension.")
        try:
            os.makedirs(self.path, exist_ok=True)
            target = os.path.join(self.path, os.path.basename(source))
            shutil.copyfile(source, target)
        except OSError as exc:
            raise wrap_os_error(exc, "failed to install plugin", source) from exc
        return target

    def remove(self, name: str) -> str:
        """
        Delete a plugin by file name (the .js suffix is optional).

        Returns:
            The normalized plugin name
        """
        name = os.path.basename(name)
        if not name.endswith(PLUGIN_SUFFIX):
            name += PLUGIN_SUFFIX
        target = os.path.join(self.path, name)
        try:
            os.remove(target)
        except FileNotFoundError as exc:
            raise ContainerIOError(f"Plugin not found: {name}", target) from exc
        except OSError as exc:
            raise wrap_os_error(exc, "failed to remove plugin", target) from exc
        return name
