# -*- coding: utf-8 -*-
"""
Pacebar – Monitor mode: periodic redraws independent of update calls.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

import atexit
import threading
import weakref
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .bar import Bar

__all__ = ['Monitor']

logger = logging.getLogger(__name__)

_running: 'weakref.WeakSet[Monitor]' = weakref.WeakSet()


class Monitor:
    """Refreshes a bar every `interval` seconds until stopped or the bar closes"""

    max_errors = 10

    def __init__(self, bar: 'Bar', interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._bar_ref = weakref.ref(bar)
        self.interval = interval
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> 'Monitor':
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, name='pacebar-monitor', daemon=True)
        _running.add(self)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None):
        """Signal the thread and wait for it, unless called from it"""
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread() and thread.is_alive():
            thread.join(timeout)
        _running.discard(self)

    def _run(self):
        error_count = 0

        while not self._stopped.wait(self.interval):
            bar = self._bar_ref()
            if bar is None or bar.closed:
                break
            try:
                bar.refresh()
                error_count = 0
            except Exception:
                error_count += 1
                if error_count <= self.max_errors:
                    logger.exception('Monitor refresh failed (error %d/%d)', error_count, self.max_errors)
                elif error_count == self.max_errors + 1:
                    logger.error('Monitor: suppressing further errors')
            del bar

    def __repr__(self):
        return f'{type(self).__name__}(interval={self.interval!r}, running={self.running!r})'


def _stop_all():
    for monitor in list(_running):
        monitor.stop(timeout=1.0)


atexit.register(_stop_all)
