# -*- coding: utf-8 -*-
"""
Pacebar – Terminal queries, resize notification and ANSI helpers.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

import os
import re
import sys
import signal
import shutil
import threading
import unicodedata
import logging
from enum import Enum
from typing import Optional, TextIO, Tuple

logger = logging.getLogger(__name__)

DEFAULT_COLUMNS = 80
DEFAULT_LINES = 24

_ANSI_RE = re.compile(r'\x1b\[[0-9;?]*[A-Za-z]')

# Bumped by the SIGWINCH handler, compared by Terminal to refresh its cache
_resize_generation = 0
_resize_lock = threading.Lock()
_resize_handler_installed = False
_prev_sigwinch_handler = None


class TerminalCapability(Enum):
    """Terminal capability levels"""
    MINIMAL = 1  # No ANSI support
    BASIC = 2    # Basic ANSI colors
    ADVANCED = 3 # Full Unicode and colors


class Colors:
    """ANSI color codes and utilities"""
    RESET = '\033[0m'

    BLACK = '\033[30m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    BLUE = '\033[34m'
    MAGENTA = '\033[35m'
    CYAN = '\033[36m'
    WHITE = '\033[37m'

    BRIGHT_BLACK = '\033[90m'
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_MAGENTA = '\033[95m'
    BRIGHT_CYAN = '\033[96m'
    BRIGHT_WHITE = '\033[97m'

    BOLD = '\033[1m'
    DIM = '\033[2m'

    # Cursor control
    CLEAR_LINE = '\033[2K'
    CLEAR_EOL = '\033[K'
    CLEAR_BELOW = '\033[J'
    HIDE_CURSOR = '\033[?25l'
    SHOW_CURSOR = '\033[?25h'

    @staticmethod
    def rgb(r: int, g: int, b: int) -> str:
        """Create 24-bit RGB color"""
        return f'\033[38;2;{r};{g};{b}m'

    @staticmethod
    def up(count: int) -> str:
        return f'\033[{count}A' if count > 0 else ''

    @staticmethod
    def down(count: int) -> str:
        return f'\033[{count}B' if count > 0 else ''


def detect_capability(stream: Optional[TextIO] = None) -> TerminalCapability:
    """Detect terminal capabilities"""
    term = os.environ.get('TERM', '')
    colorterm = os.environ.get('COLORTERM', '')

    if 'NO_COLOR' in os.environ:
        return TerminalCapability.MINIMAL

    # Advanced terminals (kitty, alacritty, etc.)
    if any(x in term.lower() for x in ['kitty', 'alacritty', 'iterm', 'wezterm']):
        return TerminalCapability.ADVANCED
    if 'truecolor' in colorterm or '24bit' in colorterm:
        return TerminalCapability.ADVANCED

    if term and term != 'dumb' and _isatty(stream if stream is not None else sys.stderr):
        return TerminalCapability.BASIC

    return TerminalCapability.MINIMAL


def _isatty(stream) -> bool:
    try:
        return bool(stream.isatty())
    except (AttributeError, ValueError, OSError):
        return False


def _get_terminal_size(stream: Optional[TextIO] = None) -> Tuple[int, int]:
    """Return (columns, lines) of the terminal, with a safe fallback."""
    try:
        fd = (stream if stream is not None else sys.stderr).fileno()
        size = os.get_terminal_size(fd)
        if size.columns > 0:
            return size.columns, size.lines
    except (AttributeError, ValueError, OSError):
        # cron, IDEs, CI, redirected output have no TTY
        pass
    try:
        size = shutil.get_terminal_size(fallback=(DEFAULT_COLUMNS, DEFAULT_LINES))
        return size.columns or DEFAULT_COLUMNS, size.lines or DEFAULT_LINES
    except Exception:
        logger.debug('Terminal size query failed, using defaults', exc_info=True)
    return DEFAULT_COLUMNS, DEFAULT_LINES


def _on_sigwinch(signum, frame):
    global _resize_generation
    _resize_generation += 1

    # Chain the previous SIGWINCH handler (if any)
    try:
        prev = _prev_sigwinch_handler
        if prev and prev not in (signal.SIG_DFL, signal.SIG_IGN) and callable(prev):
            prev(signum, frame)
    except Exception:
        logger.exception('Chained SIGWINCH handler failed')


def install_resize_handler() -> bool:
    """Install the SIGWINCH handler once; only possible from the main thread."""
    global _resize_handler_installed, _prev_sigwinch_handler

    if not hasattr(signal, 'SIGWINCH'):
        return False

    with _resize_lock:
        if _resize_handler_installed:
            return True
        if threading.current_thread() is not threading.main_thread():
            return False
        try:
            _prev_sigwinch_handler = signal.getsignal(signal.SIGWINCH)
            signal.signal(signal.SIGWINCH, _on_sigwinch)
        except (ValueError, OSError):
            logger.debug('Could not install SIGWINCH handler', exc_info=True)
            return False
        _resize_handler_installed = True
        return True


class Terminal:
    """Column count and interactivity of an output stream"""

    def __init__(self,
                 stream: Optional[TextIO] = None,
                 columns: Optional[int] = None,
                 lines: Optional[int] = None,
                 interactive: Optional[bool] = None):
        """
        Create a terminal query object.

        Args:
            stream: Output stream (default: sys.stderr at query time)
            columns: Fixed column count instead of querying the terminal
            lines: Fixed line count instead of querying the terminal
            interactive: Override for isatty() detection
        """
        if columns is not None and columns <= 0:
            raise ValueError("columns must be positive")
        if lines is not None and lines <= 0:
            raise ValueError("lines must be positive")

        self._stream = stream
        self._fixed_columns = columns
        self._fixed_lines = lines
        self._interactive = interactive
        self._size: Optional[Tuple[int, int]] = None
        self._generation = -1

        if columns is None or lines is None:
            install_resize_handler()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def is_interactive(self) -> bool:
        if self._interactive is not None:
            return self._interactive
        return _isatty(self.stream)

    def _query_size(self) -> Tuple[int, int]:
        # Without a resize signal the cache can not be trusted
        if self._size is None or not _resize_handler_installed or self._generation != _resize_generation:
            self._generation = _resize_generation
            self._size = _get_terminal_size(self.stream)
        return self._size

    def column_count(self) -> int:
        if self._fixed_columns is not None:
            return self._fixed_columns
        return self._query_size()[0]

    def line_count(self) -> int:
        if self._fixed_lines is not None:
            return self._fixed_lines
        return self._query_size()[1]

    def set_size(self, columns: Optional[int] = None, lines: Optional[int] = None):
        """Pin the size, e.g. from an external resize notification"""
        if columns is not None:
            self._fixed_columns = columns
        if lines is not None:
            self._fixed_lines = lines


# ============================================================================
# ANSI aware text helpers
# ============================================================================

def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub('', text)


def _char_width(char: str) -> int:
    if unicodedata.combining(char):
        return 0
    if unicodedata.east_asian_width(char) in ('W', 'F'):
        return 2
    return 1


def display_width(text: str) -> int:
    """Number of terminal cells the text occupies, ignoring escape codes"""
    return sum(_char_width(c) for c in strip_ansi(text))


def truncate(text: str, width: int) -> str:
    """Trim text to at most `width` cells, keeping escape codes intact"""
    if width <= 0:
        return ''
    if display_width(text) <= width:
        return text

    out = []
    used = 0
    styled = False
    pos = 0
    for match in _ANSI_RE.finditer(text):
        chunk = text[pos:match.start()]
        for char in chunk:
            w = _char_width(char)
            if used + w > width:
                return ''.join(out) + (Colors.RESET if styled else '')
            out.append(char)
            used += w
        out.append(match.group())
        styled = True
        pos = match.end()

    for char in text[pos:]:
        w = _char_width(char)
        if used + w > width:
            break
        out.append(char)
        used += w
    return ''.join(out) + (Colors.RESET if styled else '')
