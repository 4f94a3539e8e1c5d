"""
Exception hierarchy for container decoding, extraction and patching.
"""

from typing import Optional


class BunloadError(Exception):
    """Base class for every error raised by bunload."""


# ========== Format errors ==========

class FormatError(BunloadError):
    """The file is not a well-formed standalone executable container."""


class TrailerNotFound(FormatError):
    """The magic trailer does not occur anywhere in the file."""


class TruncatedInput(FormatError):
    """Fewer bytes were available than a fixed-size structure requires."""


class PointerOutOfRange(FormatError):
    """A (offset, length) span reaches past the end of the blob."""


class CorruptContainer(FormatError):
    """The decoded header describes an impossible layout."""


class IndexOutOfRange(FormatError, IndexError):
    """A module index or name does not address a record in the table."""


class MarkerNotFound(FormatError):
    """The literal marker is absent from the target module's content."""


# ========== Constraint violations ==========

class ConstraintViolation(BunloadError):
    """The input is well-formed but the requested operation is not allowed."""


class RecordTableMisaligned(ConstraintViolation):
    """The module table length is not a multiple of the record size."""


class ReplacementTooLarge(ConstraintViolation):
    """The replacement payload does not fit inside the marker's footprint."""


# ========== I/O errors ==========

class ContainerIOError(BunloadError, OSError):
    """A read, write or seek failed; ``__cause__`` holds the original error."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        return self.args[0] if self.args else ''


class ContainerPermissionError(ContainerIOError):
    """An I/O error caused by missing permissions."""

    hint = "try re-running with sudo"

    def __str__(self) -> str:
        return f"{super().__str__()}\n  hint: {self.hint}"


class BackupWriteError(ContainerIOError):
    """Writing the backup copy failed; the target file was not touched."""


class OverwriteError(ContainerIOError):
    """
    The backup was written but replacing the target file failed.

    The original bytes are still available at ``backup_path``.
    """

    def __init__(self, message: str, path: Optional[str] = None,
                 backup_path: Optional[str] = None):
        super().__init__(message, path)
        self.backup_path = backup_path

    def __str__(self) -> str:
        text = super().__str__()
        if self.backup_path:
            text += f"\n  the original is preserved at {self.backup_path}"
        return text


# ========== External tools ==========

class ExternalToolError(BunloadError):
    """An external process was missing, timed out or failed."""


class BeautifierError(ExternalToolError):
    """The pretty-printer could not produce output."""


class SigningError(ExternalToolError):
    """Code signing failed after exhausting every attempt."""


def wrap_os_error(exc: OSError, message: str, path: Optional[str] = None,
                  cls: type = ContainerIOError) -> ContainerIOError:
    """
    Convert an OSError into the matching ContainerIOError.

    Permission failures become ContainerPermissionError unless ``cls`` is
    already more specific (backup/overwrite errors keep their own class but
    still carry the hint in the message).
    """
    if isinstance(exc, PermissionError):
        if cls is ContainerIOError:
            cls = ContainerPermissionError
        else:
            message = f"{message}: {exc}\n  hint: {ContainerPermissionError.hint}"
            return cls(message, path)
    return cls(f"{message}: {exc}", path)
