"""
Ad-hoc code signing of a patched executable.
"""

import subprocess
import sys
from typing import Optional

from ..errors import SigningError
from ..utils.log import LogFn, null_log

CODESIGN = "codesign"


def signing_required(setting: Optional[bool] = None) -> bool:
    """Whether a patched executable must be re-signed on this platform."""
    if setting is not None:
        return setting
    return sys.platform == "darwin"


def resign_binary(path: str, attempts: int = 3, log: LogFn = null_log) -> None:
    """
    Re-sign ``path`` with an ad-hoc signature.

    Each attempt runs ``codesign --sign - --force <path>``; attempts follow
    each other immediately.

    Raises:
        SigningError: If every attempt failed
    """
    log('debug', "[*] Re-signing binary")
    last_error = "no attempts made"
    for attempt in range(1, attempts + 1):
        try:
            result = subprocess.run(
                [CODESIGN, "--sign", "-", "--force", path],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as exc:
            last_error = str(exc)
        else:
            if result.returncode == 0:
                log('debug', "[*] Code signing completed successfully")
                return
            output = result.stdout.decode('utf-8', errors='replace').strip()
            last_error = f"exit status {result.returncode}\n{output}"
        log('debug', f"[*] codesign attempt {attempt}/{attempts} failed, retrying...")

    raise SigningError(f"codesign failed: {last_error}")
