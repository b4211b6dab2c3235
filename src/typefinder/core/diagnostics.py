"""
Diagnostic sinks.

Recoverable problems (an unreadable file, a project that fails to load)
are reported to an injected sink instead of a global console, so the CLI
can print them, the MCP server can return them and tests can assert on
them.
"""

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class DiagnosticSink:
    """Append-only channel for warnings raised during one search run."""

    def warning(self, message: str) -> None:
        raise NotImplementedError


class CollectingSink(DiagnosticSink):
    """Keeps every warning in memory, in emission order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._messages: List[str] = []

    def warning(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> List[str]:
        with self._lock:
            return list(self._messages)


class LoggingSink(DiagnosticSink):
    """Forwards warnings to the :mod:`logging` tree."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def warning(self, message: str) -> None:
        self._log.warning(message)


class CallbackSink(CollectingSink):
    """Collects warnings and also hands each one to *callback* as it arrives."""

    def __init__(self, callback: Callable[[str], None]):
        super().__init__()
        self._callback = callback

    def warning(self, message: str) -> None:
        super().warning(message)
        self._callback(message)
