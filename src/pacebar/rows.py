# -*- coding: utf-8 -*-
"""
Pacebar – Row manager: one terminal row per bar, redrawn in place.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

import time
import weakref
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

from ._terminal import Colors, truncate
from .gate import OutputGate

if TYPE_CHECKING:
    from .bar import Bar

__all__ = ['RowManager', 'RowSlot']

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class RowSlot:
    """Arena record binding a bar to its terminal row"""
    id: int
    row: int
    bar_ref: 'weakref.ReferenceType[Bar]' = field(repr=False)
    leave: bool = True
    dirty: bool = True
    active: bool = True
    line: str = field(default='', repr=False)
    finalizer: Optional[Any] = field(default=None, repr=False)

    @property
    def bar(self) -> Optional['Bar']:
        return self.bar_ref()


class RowManager:
    """
    Coordinates several bars sharing one terminal.

    Rows are counted from the top of the bar region. The cursor is parked at
    the start of the line below everything drawn so far (`extent` lines
    below the region top); a row is redrawn by moving up to it, clearing
    it, writing the line and moving back down. Output relayed through the
    gate lands at the parked position and simply grows the extent.
    """

    def __init__(self,
                 gate: Optional[OutputGate] = None,
                 clean: bool = False,
                 max_fps: Optional[float] = None,
                 intercept_stdout: bool = False):
        """
        Create a row manager.

        Args:
            gate: Output gate (default: the process-wide stderr gate)
            clean: Shift later bars up into rows freed by non-leaving bars
            max_fps: Upper bound on redraws per second shared by all rows
            intercept_stdout: Relay print() output beneath the bars while active
        """
        if max_fps is not None and max_fps <= 0:
            raise ValueError("max_fps must be positive")

        self.gate = gate if gate is not None else OutputGate.default()
        self._clean = bool(clean)
        self._max_fps = max_fps
        self._intercept_stdout = intercept_stdout

        self._slots: List[Optional[RowSlot]] = []
        self._extent = 0
        self._output_lines = 0
        self._kept_rows = 0
        self._columns = 0
        self._last_frame: Optional[float] = None
        self._acquired = False

    # Property setters for configuration
    @property
    def clean(self) -> bool:
        return self._clean

    @clean.setter
    def clean(self, value: bool):
        with self.gate.hold():
            self._clean = bool(value)

    @property
    def max_fps(self) -> Optional[float]:
        return self._max_fps

    @max_fps.setter
    def max_fps(self, value: Optional[float]):
        if value is not None and value <= 0:
            raise ValueError("max_fps must be positive")
        with self.gate.hold():
            self._max_fps = value

    @property
    def extent(self) -> int:
        """Lines between the region top and the parked cursor"""
        return self._extent

    @property
    def slots(self) -> List[RowSlot]:
        """Active slots in row order"""
        with self.gate.hold():
            return sorted((s for s in self._slots if s is not None and s.active), key=lambda s: s.row)

    def __len__(self):
        return len(self.slots)

    def slot_of(self, bar: 'Bar') -> Optional[RowSlot]:
        with self.gate.hold():
            for slot in self._slots:
                if slot is not None and slot.active and slot.bar is bar:
                    return slot
        return None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def create_bar(self, **kwargs) -> 'Bar':
        """Create a bar registered with this manager"""
        from .bar import Bar
        kwargs['manager'] = self
        return Bar(**kwargs)

    def register(self, bar: 'Bar') -> RowSlot:
        """Bind a bar to the next free row at the bottom of the region"""
        with self.gate.hold():
            existing = self.slot_of(bar)
            if existing is not None:
                return existing

            if not self._acquired:
                self._begin()

            slot = RowSlot(id=len(self._slots),
                           row=self._extent,
                           bar_ref=weakref.ref(bar),
                           leave=bar.leave)
            self._slots.append(slot)
            slot.finalizer = weakref.finalize(bar, self._forget, slot)

            if self.gate.is_interactive():
                self._columns = self.gate.columns()
                line = self._render(slot, self._columns)
                slot.dirty = False
                self.gate.write('\r' + Colors.CLEAR_LINE + line + '\n')
                self._extent += 1
            else:
                self._extent += 1
            return slot

    def _begin(self):
        self.gate.acquire(self)
        if self._intercept_stdout:
            self.gate.intercept_stdout()
        self._acquired = True
        self._slots = []
        self._extent = 0
        self._output_lines = 0
        self._kept_rows = 0
        self._last_frame = None

    def _end(self):
        if self.gate.is_interactive() and self._extent and not self._kept_rows and not self._output_lines:
            # Nothing left on screen: give the rows back
            self.gate.write(Colors.up(self._extent) + '\r' + Colors.CLEAR_BELOW)
        self._extent = 0
        self._slots = []
        self._acquired = False
        self.gate.release(self)

    def deregister(self, slot: RowSlot, leave: Optional[bool] = None):
        """Finish a row: keep its last line or blank it, then optionally compact"""
        with self.gate.hold():
            if not slot.active or not self._owns(slot):
                return
            slot.active = False
            if slot.finalizer is not None:
                slot.finalizer.detach()
            leave = slot.leave if leave is None else leave

            try:
                if self.gate.is_interactive():
                    self._finish_row(slot, leave)
                elif leave:
                    # No cursor control: one line per bar, at completion
                    line = self._render(slot, self.gate.columns())
                    self.gate.write(line + '\n')
            except Exception:
                logger.exception('Final redraw of row %d failed', slot.row)

            if not any(s is not None and s.active for s in self._slots):
                self._end()

    def _owns(self, slot: RowSlot) -> bool:
        return slot.id < len(self._slots) and self._slots[slot.id] is slot

    def _forget(self, slot: RowSlot):
        """Called when a registered bar is garbage collected"""
        try:
            self.deregister(slot)
        except Exception:
            logger.exception('Deregistering a collected bar failed')

    def _finish_row(self, slot: RowSlot, leave: bool):
        columns = self.gate.columns()
        if leave:
            line = self._render(slot, columns)
            self._draw_rows([(slot.row, line)])
            self._kept_rows += 1
            return

        self._draw_rows([(slot.row, '')])
        slot.line = ''
        if self._clean:
            self._compact(slot.row, columns)

    def _compact(self, freed_row: int, columns: int):
        """Shift later bars up through the rows bars occupy"""
        later = sorted((s for s in self._slots if s is not None and s.active and s.row > freed_row),
                       key=lambda s: s.row)
        if not later:
            last_free = freed_row
        else:
            rows = [freed_row] + [s.row for s in later]
            updates = []
            for slot, row in zip(later, rows):
                slot.row = row
                updates.append((row, self._render(slot, columns)))
                slot.dirty = False
            last_free = rows[-1]
            updates.append((last_free, ''))
            self._draw_rows(updates)

        if last_free == self._extent - 1:
            # The freed row is the bottom line: park the cursor on it
            self.gate.write(Colors.up(1) + '\r')
            self._extent -= 1

    def close(self):
        """Close every bar still registered"""
        for slot in self.slots:
            bar = slot.bar
            if bar is not None:
                bar.close()
            else:
                self.deregister(slot)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _note_output(self, lines: int):
        """The gate wrote application output at the parked cursor"""
        if not self._acquired or lines <= 0:
            return
        self._extent += lines
        self._output_lines += lines

    def write(self, text: str):
        """Print a message beneath the bars"""
        self.gate.emit(text if text.endswith('\n') else text + '\n')

    def blank(self, slot: RowSlot):
        """Erase a row until its next redraw"""
        with self.gate.hold():
            if not slot.active or not self._owns(slot) or not self.gate.is_interactive():
                return
            slot.dirty = True
            self._draw_rows([(slot.row, '')])

    def request_redraw(self, slot: RowSlot, force: bool = False) -> bool:
        """Mark a row dirty and draw dirty rows unless throttled"""
        with self.gate.hold():
            if not slot.active or not self._owns(slot):
                return False
            slot.dirty = True

            now = time.monotonic()
            if not force and self._max_fps and self._last_frame is not None:
                if now - self._last_frame < 1.0 / self._max_fps:
                    return False

            try:
                return self._flush(now)
            except Exception:
                logger.exception('Display progress failed')
                return False

    def refresh(self):
        """Redraw every row now"""
        with self.gate.hold():
            for slot in self._slots:
                if slot is not None and slot.active:
                    slot.dirty = True
            try:
                self._flush(time.monotonic())
            except Exception:
                logger.exception('Display progress failed')

    def _flush(self, now: float) -> bool:
        if not self.gate.is_interactive():
            return False
        self._last_frame = now

        columns = self.gate.columns()
        if columns != self._columns:
            self._columns = columns
            for slot in self._slots:
                if slot is not None:
                    slot.dirty = True

        active = [s for s in self._slots if s is not None and s.active]
        if self._extent >= self.gate.lines() and len(active) < self.gate.lines():
            self._reanchor(active, columns)
            return True

        updates = []
        for slot in sorted(active, key=lambda s: s.row):
            if slot.dirty:
                updates.append((slot.row, self._render(slot, columns)))
                slot.dirty = False
        self._draw_rows(updates)
        return bool(updates)

    def _reanchor(self, active: List[RowSlot], columns: int):
        """
        The region top scrolled out of reach of cursor movement.

        Start a fresh region at the parked cursor holding only live bars.
        """
        logger.debug('Bar region taller than the terminal, starting a new one')
        output = []
        for row, slot in enumerate(sorted(active, key=lambda s: s.row)):
            slot.row = row
            output.append('\r' + Colors.CLEAR_LINE + self._render(slot, columns) + '\n')
            slot.dirty = False
        self.gate.write(''.join(output))
        self._extent = len(active)
        self._output_lines = 0
        self._kept_rows = 0

    def _draw_rows(self, updates: List[Any]):
        if not updates:
            return
        reach = self.gate.lines() if self.gate.is_interactive() else 0
        output = [Colors.HIDE_CURSOR]
        for row, line in updates:
            distance = self._extent - row
            if reach and distance >= reach:
                # Scrolled off the top of the screen
                continue
            output.append(Colors.up(distance) + '\r' + Colors.CLEAR_LINE + line + '\r' + Colors.down(distance))
        output.append(Colors.SHOW_CURSOR)
        self.gate.write(''.join(output))

    def _render(self, slot: RowSlot, columns: int) -> str:
        bar = slot.bar
        if bar is None:
            return slot.line
        width = max(1, columns - 1)
        try:
            slot.line = truncate(bar.render(width), width)
        except Exception:
            logger.exception('Rendering bar for row %d failed', slot.row)
        return slot.line
