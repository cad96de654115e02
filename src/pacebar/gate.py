# -*- coding: utf-8 -*-
"""
Pacebar – Serialised terminal access and optional stdout interception.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

import sys
import threading
import weakref
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Protocol, TextIO

from ._terminal import Terminal, _isatty

__all__ = ['OutputGate', 'StdProxy']

logger = logging.getLogger(__name__)


class _Region(Protocol):
    """Whatever keeps cursor arithmetic for the bar rows (a RowManager)"""

    def _note_output(self, lines: int) -> None:
        ...


class OutputGate:
    """
    The single lock around every write to a terminal.

    All cursor movement and row drawing happens while holding the gate, so
    bars redrawn from different threads never interleave escape sequences.
    Application output relayed through `emit` is written beneath the bar
    region and reported back to the region so it can keep its rows.
    """
    _defaults: Dict[Optional[int], 'OutputGate'] = {}
    _default_lock = threading.Lock()

    def __init__(self, stream: Optional[TextIO] = None, terminal: Optional[Terminal] = None):
        """
        Create an output gate.

        Args:
            stream: Stream bars are drawn on (default: sys.stderr at write time)
            terminal: Terminal query object (default: one for `stream`)
        """
        self._stream = stream
        self.terminal = terminal if terminal is not None else Terminal(stream)
        self._lock = threading.RLock()
        self._users = 0
        self._region_ref: Optional['weakref.ReferenceType[_Region]'] = None
        self._proxy: Optional['StdProxy'] = None
        self._original_stdout: Optional[TextIO] = None
        self._owns_interception = False

    @classmethod
    def default(cls, stream: Optional[TextIO] = None) -> 'OutputGate':
        """
        Process-wide gate for `stream`.

        Without a stream the gate follows sys.stderr at write time. Bars
        drawing on the same stream share one gate and so one lock.
        """
        # The gate keeps the stream alive, so its id is not reused
        key = id(stream) if stream is not None else None
        with cls._default_lock:
            gate = cls._defaults.get(key)
            if gate is None:
                gate = cls._defaults[key] = cls(stream)
            return gate

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    @property
    def stdout(self) -> TextIO:
        """Where application output goes, bypassing our own proxy"""
        if self._proxy is not None and self._original_stdout is not None:
            return self._original_stdout
        stdout = sys.stdout
        if isinstance(stdout, StdProxy):
            return stdout.stream
        return stdout

    @property
    def users(self) -> int:
        return self._users

    @property
    def intercepting(self) -> bool:
        return self._proxy is not None

    @contextmanager
    def hold(self) -> Iterator['OutputGate']:
        """Exclusive terminal access"""
        with self._lock:
            yield self

    def columns(self) -> int:
        return self.terminal.column_count()

    def lines(self) -> int:
        return self.terminal.line_count()

    def is_interactive(self) -> bool:
        return self.terminal.is_interactive()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def acquire(self, region: Optional[_Region] = None):
        """Register a user of the terminal; the region receives output notes"""
        with self._lock:
            self._users += 1
            if region is not None:
                self._region_ref = weakref.ref(region)

    def release(self, region: Optional[_Region] = None):
        """Drop a user; the last one restores stdout if we intercepted it"""
        with self._lock:
            self._users = max(0, self._users - 1)
            if region is not None and self._region() is region:
                self._region_ref = None
            if self._users == 0 and self._owns_interception:
                self.restore_stdout()

    def _region(self) -> Optional[_Region]:
        return self._region_ref() if self._region_ref is not None else None

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write(self, text: str) -> bool:
        """Write raw text to the bar stream; failures are logged and dropped"""
        if not text:
            return True
        with self._lock:
            try:
                stream = self.stream
                stream.write(text)
                stream.flush()
                return True
            except (OSError, ValueError):
                # Broken pipe or closed stream: the display is best effort
                logger.debug('Terminal write failed', exc_info=True)
                return False

    def _counts_for_region(self, stream: TextIO) -> bool:
        return self.is_interactive() and _isatty(stream)

    def emit(self, text: str, stream: Optional[TextIO] = None) -> bool:
        """Write application output beneath the bar region"""
        if not text:
            return True
        target = stream if stream is not None else self.stdout
        with self._lock:
            try:
                self.stream.flush()
                target.write(text)
                target.flush()
            except (OSError, ValueError):
                logger.debug('Application output write failed', exc_info=True)
                return False

            region = self._region()
            if region is not None and self._counts_for_region(target):
                region._note_output(text.count('\n'))
            return True

    def read_line(self, prompt: str = '', stdin: Optional[TextIO] = None) -> str:
        """Prompt beneath the bars and read one line while holding the terminal"""
        with self._lock:
            target = self.stdout
            if prompt:
                target.write(prompt)
                target.flush()
            line = (stdin if stdin is not None else sys.stdin).readline()

            region = self._region()
            if region is not None and self._counts_for_region(target):
                # The terminal echoed the user's newline
                region._note_output(1)
        if not line:
            raise EOFError
        return line.rstrip('\n')

    # ------------------------------------------------------------------
    # Interception
    # ------------------------------------------------------------------

    def intercept_stdout(self, owned: bool = True):
        """
        Route sys.stdout through the gate.

        Args:
            owned: Restore stdout automatically when the last user releases
        """
        with self._lock:
            if self._proxy is not None:
                return
            self._original_stdout = sys.stdout
            self._proxy = StdProxy(self, self._original_stdout)
            self._owns_interception = owned
            sys.stdout = self._proxy

    def restore_stdout(self):
        with self._lock:
            proxy = self._proxy
            if proxy is None:
                return
            proxy._flush_internal()
            if sys.stdout is proxy:
                sys.stdout = self._original_stdout
            else:
                logger.debug('sys.stdout was replaced while intercepted, leaving it alone')
            self._proxy = None
            self._original_stdout = None
            self._owns_interception = False


class StdProxy:
    """Line buffering stand-in for sys.stdout that relays through the gate"""

    def __init__(self, gate: OutputGate, stream: TextIO):
        self.gate = gate
        self.stream = stream
        self.buffer: List[str] = []

    def write(self, data: str) -> int:
        if not data:
            return 0

        with self.gate.hold():
            self.buffer.append(data)

            if '\n' not in data:
                return len(data)

            full_data = ''.join(self.buffer)
            self.buffer = []

            # Keep the trailing partial line for the next write
            last_newline = full_data.rfind('\n')
            complete_part = full_data[:last_newline + 1]
            trailing_part = full_data[last_newline + 1:]
            if trailing_part:
                self.buffer.append(trailing_part)

            self.gate.emit(complete_part, stream=self.stream)
        return len(data)

    def flush(self):
        with self.gate.hold():
            self._flush_internal()

    def _flush_internal(self):
        if self.buffer:
            data = ''.join(self.buffer) + '\n'
            self.buffer = []
            self.gate.emit(data, stream=self.stream)
        else:
            try:
                self.stream.flush()
            except (OSError, ValueError):
                logger.debug('Flush of intercepted stdout failed', exc_info=True)

    def isatty(self) -> bool:
        return _isatty(self.stream)

    def __getattr__(self, name):
        return getattr(self.stream, name)
