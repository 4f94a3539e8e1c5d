#!/usr/bin/env python3
"""
bunload

Command-line interface for inspecting, extracting and patching standalone
executables produced by a JavaScript bundler's compile mode.

Usage:
    bunload [-v] inspect [--json] <path>
    bunload [-v] extract [--beautify] [-o DIR] <path>
    bunload [-v] install [<path>]
    bunload [-v] uninstall [<path>]
    bunload plugin list | add <file.js> | remove <name.js>
    bunload --version

Plugins:
    On install, a plugin directory is created next to the executable. Drop
    any .js file there and it will be loaded at runtime. On uninstall, the
    directory is removed only if empty; your plugins are left in place.
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import Config
from .errors import BunloadError
from .formats.container import Container
from .formats.structures import encoding_name
from .io.version_aware import LAYOUT_LEGACY, LAYOUT_CURRENT
from .output.extractor import ContentExtractor
from .output.manifest import Manifest
from .patch.installer import Installer, find_executable, normalize_path
from .plugins import PluginDirectory
from .utils.log import LogFn
from .utils.pattern_search import hex_to_bytes
from .utils.string_utils import escape_string

PLUGIN_HELP = """\
plugins:
  install creates a plugin directory next to the executable; every .js file
  in it is loaded at runtime. uninstall removes the directory only if empty.
"""


def console_log(verbose: bool = False) -> LogFn:
    """
    Build a log callback that prints to the console.

    Debug lines are only shown in verbose mode; warnings and errors go to
    stderr.
    """
    def log(level: str, message: str) -> None:
        if level == 'debug' and not verbose:
            return
        stream = sys.stderr if level in ('warning', 'error') else sys.stdout
        print(message, file=stream)
    return log


def resolve_executable(path: Optional[str], config: Config, log: LogFn) -> str:
    """Use the explicit path, or find the configured executable on PATH."""
    if path:
        return normalize_path(path)
    exe_path = find_executable(config.executable_name)
    log('debug', f"[*] No path provided; using {exe_path}")
    return exe_path


def cmd_inspect(args, config: Config, log: LogFn) -> int:
    layout = LAYOUT_LEGACY if args.legacy else LAYOUT_CURRENT
    container = Container.open(normalize_path(args.path), log=log,
                               chunk_size=config.chunk_size, layout=layout)

    if args.json:
        print(Manifest.from_container(container).to_json())
        return 0

    header = container.header
    print(f"Trailer offset:  {container.trailer_pos}")
    print(f"Blob:            {container.blob_start}..{container.header_offset} "
          f"({header.byte_count} bytes)")
    print(f"Entry point:     {header.entry_point_id}")
    print(f"Flags:           {header.flags:#x}")
    if container.exec_argv:
        print(f"Exec argv:       {escape_string(container.exec_argv)}")
    print(f"Modules:         {container.module_count}")
    for index, record in container.iter_modules():
        name = escape_string(container.module_name(record)) or '<empty>'
        print(f"  [{index}] {name}  {record.contents.length} bytes  "
              f"loader={record.extension} encoding={encoding_name(record.encoding)}")
    return 0


def cmd_extract(args, config: Config, log: LogFn) -> int:
    exe_path = normalize_path(args.path)
    if args.beautify:
        config.beautify = True
    output_dir = Path(args.output) if args.output else Path('.') / (Path(exe_path).name + '_extracted')

    layout = LAYOUT_LEGACY if args.legacy else LAYOUT_CURRENT
    container = Container.open(exe_path, log=log, chunk_size=config.chunk_size, layout=layout)

    log('info', f"[*] Extracting to: {output_dir}")
    report = ContentExtractor(container, config, log).extract_all(output_dir)

    if report.errors:
        log('error', f"[!] {len(report.errors)} module(s) failed")
        return 1
    return 0


def _patch_bytes(value: Optional[str], as_hex: bool) -> Optional[bytes]:
    if value is None:
        return None
    return hex_to_bytes(value) if as_hex else value.encode('utf-8')


def cmd_install(args, config: Config, log: LogFn) -> int:
    exe_path = resolve_executable(args.path, config, log)
    installer = Installer(exe_path, config, log)
    installer.install(
        module_index=args.module,
        marker=_patch_bytes(args.marker, args.hex),
        replacement=_patch_bytes(args.replacement, args.hex),
    )
    return 0


def cmd_uninstall(args, config: Config, log: LogFn) -> int:
    exe_path = resolve_executable(args.path, config, log)
    Installer(exe_path, config, log).uninstall()
    return 0


def cmd_plugin(args, config: Config, log: LogFn) -> int:
    exe_path = resolve_executable(args.path, config, log)
    plugins = PluginDirectory(Installer(exe_path, config, log).plugin_dir)

    if args.plugin_command == 'list':
        if not plugins.exists():
            print(f"[*] Plugin directory does not exist: {plugins.path}")
            print("[*] Run bunload install first.")
            return 0
        names = plugins.list()
        if not names:
            print(f"[*] No plugins installed in {plugins.path}")
            return 0
        print(f"[*] Plugins in {plugins.path}:")
        for name in names:
            print(f"    {name}")
    elif args.plugin_command == 'add':
        print(f"[*] Installed plugin: {plugins.add(args.file)}")
    elif args.plugin_command == 'remove':
        print(f"[*] Removed plugin: {plugins.remove(args.name)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='bunload',
        description="Inspect, extract and patch compiled standalone executables",
        epilog=PLUGIN_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('--version', action='version', version=f'bunload {__version__}')
    parser.add_argument('-v', '--verbose', action='store_true', help='verbose output')
    parser.add_argument('--config', type=str, help='Path to config.json')

    sub = parser.add_subparsers(dest='command')

    p = sub.add_parser('inspect', help='print the header and module table')
    p.add_argument('path', help='compiled executable')
    p.add_argument('--json', action='store_true', help='print the full manifest as JSON')
    p.add_argument('--legacy', action='store_true', help='decode 36-byte module records')
    p.set_defaults(func=cmd_inspect)

    p = sub.add_parser('extract', help='extract embedded modules')
    p.add_argument('path', help='compiled executable')
    p.add_argument('-o', '--output', help='output directory (default: <name>_extracted)')
    p.add_argument('--beautify', action='store_true',
                   help='beautify JS/TS output (requires js-beautify in PATH)')
    p.add_argument('--legacy', action='store_true', help='decode 36-byte module records')
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser('install', help='install the payload loader into the executable')
    p.add_argument('path', nargs='?', help='executable (default: search PATH)')
    p.add_argument('--module', type=int, default=0, help='index of the module to patch')
    p.add_argument('--marker', help='literal text to replace (default from config)')
    p.add_argument('--replacement', help='text written in its place (default from config)')
    p.add_argument('--hex', action='store_true', help='marker and replacement are hex strings')
    p.set_defaults(func=cmd_install)

    p = sub.add_parser('uninstall', help='restore the original executable')
    p.add_argument('path', nargs='?', help='executable (default: search PATH)')
    p.set_defaults(func=cmd_uninstall)

    p = sub.add_parser('plugin', help='manage plugins')
    p.add_argument('--path', help='executable whose plugin directory to use (default: search PATH)')
    plugin_sub = p.add_subparsers(dest='plugin_command', required=True)
    plugin_sub.add_parser('list', help='list installed plugins')
    add = plugin_sub.add_parser('add', help='install a plugin')
    add.add_argument('file', help='plugin .js file')
    remove = plugin_sub.add_parser('remove', help='remove a plugin')
    remove.add_argument('name', help='plugin file name')
    p.set_defaults(func=cmd_plugin)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, 'func', None):
        parser.print_help()
        return 0

    config_path = Path(args.config) if args.config else None
    config = Config.load(config_path)
    log = console_log(args.verbose)

    try:
        return args.func(args, config, log)
    except (BunloadError, ValueError) as e:
        print(f"[!] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
