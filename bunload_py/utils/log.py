"""
Progress reporting callbacks.

Operations that produce diagnostics accept ``log(level, message)``; the
caller decides where messages go (console, job event queue, nowhere).
"""

from typing import Callable, List, Tuple

LogFn = Callable[[str, str], None]


def null_log(level: str, message: str) -> None:
    """Discard a message."""


class LogRecorder:
    """Collects messages in memory; handy for tests and job summaries."""

    def __init__(self):
        self.records: List[Tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        self.records.append((level, message))

    def messages(self, level: str) -> List[str]:
        return [m for lvl, m in self.records if lvl == level]
