"""
Install and uninstall a payload loader into a standalone executable.

Installing patches the entry module in place, after first writing a full
backup of the executable to stable storage. The backup is the only way back
to the original bytes, so it is always completed (and fsynced) before the
executable itself is touched. Re-installing restores from an existing
backup first, so repeated installs always patch the pristine file.
"""

import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config import Config
from ..errors import (
    ContainerIOError, BackupWriteError, OverwriteError, wrap_os_error
)
from ..formats.container import Container
from ..utils.log import LogFn, null_log
from .patcher import Patcher, PatchedFile
from .signing import signing_required, resign_binary

PAYLOAD_TEMPLATE = Path(__file__).resolve().parent.parent / 'payload.js'
PLUGIN_DIR_PLACEHOLDER = '__PLUGIN_DIR__'


def normalize_path(path) -> str:
    """Absolute path with symlinks resolved."""
    return os.path.realpath(os.path.abspath(os.fspath(path)))


def find_executable(name: str) -> str:
    """
    Locate an executable on PATH.

    Raises:
        ContainerIOError: If it is not found
    """
    found = shutil.which(name)
    if found is None:
        raise ContainerIOError(f"'{name}' not found in PATH", name)
    return normalize_path(found)


def durable_write(path: str, data: bytes, mode: Optional[int] = None) -> None:
    """Write ``data`` to ``path`` and flush it to stable storage."""
    with open(path, 'wb') as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    if mode is not None:
        os.chmod(path, stat.S_IMODE(mode))


def payload_source(config: Config) -> bytes:
    """The loader script written next to the patched executable."""
    text = PAYLOAD_TEMPLATE.read_text(encoding='utf-8')
    return text.replace(PLUGIN_DIR_PLACEHOLDER, config.plugin_dir_name).encode('utf-8')


@dataclass
class InstallResult:
    """What install() changed on disk."""
    executable: str
    backup_path: str
    payload_path: str
    plugin_dir: str
    patched: PatchedFile
    restored_from_backup: bool = False
    signed: bool = False


@dataclass
class UninstallResult:
    """What uninstall() changed on disk."""
    executable: str
    removed: List[str] = field(default_factory=list)
    plugin_dir_kept: bool = False


class Installer:
    """
    Patches or restores one executable.

    Args:
        executable: Path to the target executable
        config: Marker, replacement, file names and signing settings
        log: Progress callback
    """

    def __init__(self, executable, config: Optional[Config] = None, log: LogFn = null_log):
        self.executable = normalize_path(executable)
        self.config = config or Config()
        self.log = log

    @property
    def directory(self) -> str:
        return os.path.dirname(self.executable)

    @property
    def backup_path(self) -> str:
        return self.executable + self.config.backup_suffix

    @property
    def payload_path(self) -> str:
        return os.path.join(self.directory, self.config.payload_file_name)

    @property
    def plugin_dir(self) -> str:
        return os.path.join(self.directory, self.config.plugin_dir_name)

    def _mode(self, path: str) -> int:
        try:
            return os.stat(path).st_mode
        except OSError as exc:
            raise wrap_os_error(exc, f"stat {path}", path) from exc

    def restore_existing_backup(self) -> bool:
        """
        Copy an existing backup over the executable.

        Returns:
            True if a backup existed and was restored
        """
        if not os.path.exists(self.backup_path):
            return False
        self.log('debug', "[*] Existing backup found; restoring original before patching")
        try:
            with open(self.backup_path, 'rb') as f:
                data = f.read()
            durable_write(self.executable, data, self._mode(self.executable))
        except OSError as exc:
            raise wrap_os_error(exc, "failed to restore from backup", self.executable) from exc
        return True

    def install(self, module_index: int = 0, marker: Optional[bytes] = None,
                replacement: Optional[bytes] = None) -> InstallResult:
        """
        Patch the executable, then place the payload and plugin directory.

        Raises:
            FormatError: If the executable cannot be decoded or patched
            BackupWriteError: If the backup could not be written (nothing changed)
            OverwriteError: If the backup was written but the executable was not
            SigningError: If re-signing failed
        """
        config = self.config
        if marker is None:
            marker = config.marker_text.encode('utf-8')
        if replacement is None:
            replacement = config.replacement_text.encode('utf-8')

        mode = self._mode(self.executable)
        restored = self.restore_existing_backup()

        container = Container.open(self.executable, log=self.log, chunk_size=config.chunk_size)
        patched = Patcher(container, self.log).patch_module(module_index, marker, replacement)

        try:
            durable_write(self.backup_path, patched.original, mode)
        except OSError as exc:
            raise wrap_os_error(exc, "failed to write backup", self.backup_path,
                                cls=BackupWriteError) from exc

        try:
            durable_write(self.executable, patched.data, mode)
        except OSError as exc:
            raise OverwriteError(
                f"failed to write patched executable: {exc}",
                self.executable, backup_path=self.backup_path) from exc

        try:
            durable_write(self.payload_path, payload_source(config))
            self.log('debug', f"[*] Wrote {config.payload_file_name} to {self.payload_path}")
            os.makedirs(self.plugin_dir, exist_ok=True)
        except OSError as exc:
            raise wrap_os_error(exc, "failed to place payload files", self.directory) from exc

        self.log('info', f"[*] Installed {self.executable}")
        self.log('info', f"[*] Plugin directory: {self.plugin_dir}")

        signed = False
        if signing_required(config.sign_after_patch):
            resign_binary(self.executable, config.codesign_attempts, self.log)
            signed = True

        return InstallResult(
            executable=self.executable,
            backup_path=self.backup_path,
            payload_path=self.payload_path,
            plugin_dir=self.plugin_dir,
            patched=patched,
            restored_from_backup=restored,
            signed=signed,
        )

    def uninstall(self) -> UninstallResult:
        """
        Restore the original executable from its backup.

        The plugin directory is removed only when empty.

        Raises:
            ContainerIOError: If there is no backup or a file operation fails
        """
        if not os.path.exists(self.backup_path):
            raise ContainerIOError(f"No backup file found: {self.backup_path}", self.backup_path)

        result = UninstallResult(executable=self.executable)
        try:
            with open(self.backup_path, 'rb') as f:
                data = f.read()
        except OSError as exc:
            raise wrap_os_error(exc, "failed to read backup", self.backup_path) from exc

        try:
            durable_write(self.executable, data, self._mode(self.backup_path))
        except OSError as exc:
            raise wrap_os_error(exc, "failed to restore executable", self.executable) from exc

        try:
            os.remove(self.backup_path)
        except OSError as exc:
            raise wrap_os_error(exc, "restored but failed to delete backup", self.backup_path) from exc
        result.removed.append(self.backup_path)

        try:
            os.remove(self.payload_path)
            result.removed.append(self.payload_path)
            self.log('debug', f"[*] Removed {self.config.payload_file_name}")
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise wrap_os_error(exc, "failed to remove payload", self.payload_path) from exc

        if os.path.isdir(self.plugin_dir) and os.listdir(self.plugin_dir):
            result.plugin_dir_kept = True
            self.log('debug', "[*] Plugin directory kept (contains user files)")
        else:
            try:
                os.rmdir(self.plugin_dir)
                result.removed.append(self.plugin_dir)
                self.log('debug', "[*] Removed empty plugin directory")
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise wrap_os_error(exc, "failed to remove plugin directory", self.plugin_dir) from exc

        self.log('info', f"[*] Uninstalled {self.executable}")
        return result
