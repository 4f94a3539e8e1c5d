"""
Module content extraction.

Writes every module with embedded content below an output root, using a
sanitized form of the module's virtual path, plus its source map and
bytecode when the container carries them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional

from ..config import Config
from ..errors import BunloadError, BeautifierError, wrap_os_error
from ..formats.container import Container
from ..formats.structures import ModuleRecord, loader_extension
from ..utils.log import LogFn, null_log
from ..utils.string_utils import sanitize_path_component
from .beautifier import beautify_js
from .manifest import Manifest

# Virtual filesystem roots used by the bundler on POSIX and Windows
VIRTUAL_PREFIXES = ("/$bunfs/", "B:\\~BUN\\")

MANIFEST_NAME = "modules.json"


def derive_relative_path(virtual_name: str, loader: int, index: int) -> PurePosixPath:
    """
    Map a module's virtual name to a safe path relative to the output root.

    The loader's extension is always appended, never substituted, so
    ``index.ts`` bundled with the JS loader becomes ``index.ts.js``. Names
    that sanitize to nothing fall back to ``module_<index><ext>``.
    """
    clean = virtual_name
    for prefix in VIRTUAL_PREFIXES:
        if clean.startswith(prefix):
            clean = clean[len(prefix):]
            break

    clean = clean.lstrip("/\\")
    colon = clean.find(":")
    if colon >= 0:
        clean = clean[colon + 1:].lstrip("/\\")

    parts = []
    for part in clean.replace("\\", "/").split("/"):
        part = sanitize_path_component(part)
        if part:
            parts.append(part)

    ext = loader_extension(loader)
    if not parts:
        return PurePosixPath(f"module_{index}{ext}")

    parts[-1] += ext
    return PurePosixPath(*parts)


def derive_output_path(output_root, virtual_name: str, loader: int, index: int) -> Path:
    """Absolute-or-relative path under ``output_root`` for a module."""
    return Path(output_root).joinpath(*derive_relative_path(virtual_name, loader, index).parts)


@dataclass
class ModuleError:
    """A failure confined to one module during bulk extraction."""
    index: int
    name: str
    error: Exception

    def __str__(self) -> str:
        return f"module [{self.index}] {self.name or '<empty>'}: {self.error}"


@dataclass
class ExtractionReport:
    """Outcome of extract_all."""
    output_root: Path
    written: List[Path] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    errors: List[ModuleError] = field(default_factory=list)
    manifest_path: Optional[Path] = None

    @property
    def count(self) -> int:
        """Number of modules whose content was written."""
        return len(self.written)

    @property
    def ok(self) -> bool:
        return not self.errors


class ContentExtractor:
    """
    Writes module content, source maps and bytecode to disk.

    Args:
        container: Decoded container
        config: Extraction settings
        log: Progress callback
    """

    def __init__(self, container: Container, config: Optional[Config] = None,
                 log: LogFn = null_log):
        self.container = container
        self.config = config or Config()
        self.log = log

    def resolve(self, record: ModuleRecord, field_name: str = 'contents') -> bytes:
        """Resolve one of a record's pointers (``contents``, ``source_map`` ...)."""
        return getattr(record, field_name).read(self.container.blob)

    def extract_module(self, index: int, record: ModuleRecord, output_root: Path,
                       report: ExtractionReport) -> Optional[Path]:
        """
        Write one module. Returns the content path, or None when the module
        has no embedded content.
        """
        container = self.container
        name = container.module_name(record)
        container.describe_module(index, record, self.log)

        content = self.resolve(record)
        if not content:
            self.log('debug', "  -> skipped (0 bytes)")
            report.skipped.append(index)
            return None

        save_path = derive_output_path(output_root, name, record.loader, index)
        _write_file(save_path, content)
        report.written.append(save_path)
        self.log('debug', f"  -> saved {len(content)} bytes to {save_path}")

        if self.config.beautify and record.is_script:
            self._beautify(save_path, content)

        if self.config.write_source_maps and record.source_map.length > 0:
            self._write_companion(index, name, record, 'source_map', save_path, '.map', report)

        if self.config.write_bytecode and record.bytecode.length > 0:
            self._write_companion(index, name, record, 'bytecode', save_path, '.bytecode', report)

        return save_path

    def extract_all(self, output_root) -> ExtractionReport:
        """
        Extract every module below ``output_root``.

        Failures are recorded per module and never stop the remaining
        modules from being processed.
        """
        output_root = Path(output_root)
        try:
            output_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise wrap_os_error(exc, "creating output directory", str(output_root)) from exc

        report = ExtractionReport(output_root=output_root)
        output_paths = {}

        for index in range(self.container.module_count):
            name = ''
            try:
                record = self.container.get_module(index)
                name = self.container.module_name(record)
                path = self.extract_module(index, record, output_root, report)
                if path is not None:
                    output_paths[index] = path
            except (BunloadError, OSError) as exc:
                error = ModuleError(index, name, exc)
                report.errors.append(error)
                self.log('error', f"[!] {error}")

        if self.config.write_manifest:
            report.manifest_path = self._write_manifest(output_root, output_paths)

        self.log('info', f"[*] Extracted {report.count} files.")
        return report

    def _beautify(self, save_path: Path, content: bytes) -> None:
        self.log('debug', f"  -> beautifying {save_path.name}...")
        try:
            beautified = beautify_js(content, self.config.beautifier, self.config.beautify_timeout)
        except BeautifierError as exc:
            self.log('warning', f"  -> beautify skipped: {exc}")
            return

        out_path = save_path.with_name(save_path.name + '.beautified.js')
        try:
            _write_file(out_path, beautified)
        except OSError as exc:
            self.log('warning', f"[!] failed to write beautified output: {exc}")
            return
        self.log('debug', f"  -> beautified output: {out_path}")

    def _write_companion(self, index: int, name: str, record: ModuleRecord, field_name: str,
                         save_path: Path, suffix: str, report: ExtractionReport) -> None:
        target = save_path.with_name(save_path.name + suffix)
        try:
            _write_file(target, self.resolve(record, field_name))
        except (BunloadError, OSError) as exc:
            error = ModuleError(index, name, exc)
            report.errors.append(error)
            self.log('error', f"[!] failed to write {suffix[1:]} for {save_path.name}: {exc}")
            return
        self.log('debug', f"  -> {suffix[1:]}: {target}")

    def _write_manifest(self, output_root: Path, output_paths: dict) -> Path:
        manifest = Manifest.from_container(self.container)
        for module in manifest.Modules:
            path = output_paths.get(module.Index)
            if path is not None:
                module.OutputPath = os.path.relpath(path, output_root)
        target = output_root / MANIFEST_NAME
        try:
            manifest.save(str(target))
        except OSError as exc:
            raise wrap_os_error(exc, "writing manifest", str(target)) from exc
        return target


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def extract_all(container: Container, output_root, config: Optional[Config] = None,
                log: LogFn = null_log) -> ExtractionReport:
    """Extract every module of ``container`` below ``output_root``."""
    return ContentExtractor(container, config, log).extract_all(output_root)
