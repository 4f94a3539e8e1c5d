"""
External pretty-printer invocation.
"""

import shutil
import subprocess

from ..errors import BeautifierError

DEFAULT_BEAUTIFIER = "js-beautify"
DEFAULT_TIMEOUT = 30.0


def beautify_js(source: bytes, executable: str = DEFAULT_BEAUTIFIER,
                timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """
    Pipe JavaScript source through an external pretty-printer.

    The tool is invoked as ``<executable> -`` and must write the formatted
    source to stdout.

    Raises:
        BeautifierError: If the tool is missing, times out or exits non-zero
    """
    path = shutil.which(executable)
    if path is None:
        raise BeautifierError(f"{executable} not found in PATH")

    try:
        result = subprocess.run(
            [path, "-"],
            input=source,
            capture_output=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise BeautifierError(f"{executable} timed out after {timeout:g}s") from exc
    except OSError as exc:
        raise BeautifierError(f"{executable}: {exc}") from exc

    if result.returncode != 0:
        stderr = result.stderr.decode('utf-8', errors='replace').strip()
        raise BeautifierError(f"{executable}: {stderr or f'exit status {result.returncode}'}")

    return result.stdout
