# -*- coding: utf-8 -*-
"""
Pacebar – The progress bar: counter, timing, rate and line rendering.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

import time
import threading
import logging
from contextlib import contextmanager
from functools import partial
from enum import Enum
from numbers import Number
from typing import (
        Any,
        Callable,
        Dict,
        Iterable,
        Iterator,
        List,
        Mapping,
        Optional,
        Sequence,
        Tuple,
        Union,
)

from ._terminal import Colors, TerminalCapability, detect_capability, display_width, truncate
from .animation import Animation, ColourSampler, Spinner, colourise, parse_colour, render_meter
from .errors import BarClosedError, BarStateError, CounterUnderflowError
from .formatting import Field, Template, format_interval, format_num, format_sizeof
from .gate import OutputGate
from .monitor import Monitor
from .rate import RateEstimator
from .rows import RowManager, RowSlot

__all__ = ['Bar', 'BarState', 'progress']

logger = logging.getLogger(__name__)

_UNDERFLOW_POLICIES = ('saturate', 'error')

_INDETERMINATE_TEMPLATE = Template('{label}{n_fmt}{unit} [{elapsed}, {rate_fmt}{postfix}]')
_SPINNER_TEMPLATE = Template('{spinner} {label}{n_fmt}{unit} [{elapsed}, {rate_fmt}{postfix}]')
_determinate_templates: Dict[Animation, Template] = {}


def _determinate_template(animation: Animation) -> Template:
    template = _determinate_templates.get(animation)
    if template is None:
        left, right = animation.brackets
        template = Template('{label}{percentage:5.1f}%' + left + '{bar}' + right +
                            ' {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}{postfix}]')
        _determinate_templates[animation] = template
    return template


class BarState(Enum):
    CREATED = 'created'
    ACTIVE = 'active'
    CLOSED = 'closed'


def _validate_total(total: Optional[int]) -> Optional[int]:
    if total is None:
        return None
    if total <= 0:
        raise ValueError("total must be positive; use None for an indeterminate bar")
    return total


def _validate_charset(charset: Optional[Sequence[str]]) -> Optional[List[str]]:
    if charset is None:
        return None
    glyphs = list(charset)
    if not glyphs or any(not isinstance(g, str) or display_width(g) != 1 for g in glyphs):
        raise ValueError("charset must be a non-empty sequence of single-cell glyphs")
    return glyphs


def _postfix_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Number) and not isinstance(value, bool):
        return format_num(value)  # type: ignore[arg-type]
    return str(value)


class Bar:
    """Individual progress bar with its own counter and timing state"""

    def __init__(self,
                 total: Optional[int] = None,
                 desc: str = '',
                 *,
                 iterable: Optional[Iterable] = None,
                 leave: bool = True,
                 unit: str = 'it',
                 unit_scale: bool = False,
                 unit_divisor: int = 1000,
                 ncols: Optional[int] = None,
                 mininterval: float = 0.1,
                 miniters: int = 1,
                 dynamic_miniters: bool = False,
                 force_refresh: bool = False,
                 delay: float = 0.0,
                 smoothing: float = 0.3,
                 initial: int = 0,
                 postfix: Optional[Mapping[str, Any]] = None,
                 colour: Optional[str] = None,
                 gradient: Optional[ColourSampler] = None,
                 animation: Union[Animation, str] = Animation.TQDM,
                 fill: Optional[str] = None,
                 charset: Optional[Sequence[str]] = None,
                 spinner: Optional[Spinner] = None,
                 template: Union[str, Template, None] = None,
                 clamp_fill: bool = True,
                 underflow: str = 'saturate',
                 use_unicode: Optional[bool] = None,
                 use_colour: Optional[bool] = None,
                 disable: bool = False,
                 manager: Optional[RowManager] = None,
                 gate: Optional[OutputGate] = None,
                 monitor_interval: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Create a progress bar.

        Args:
            total: Expected number of units (None for indeterminate)
            desc: Description shown before the bar
            iterable: Iterable to wrap when iterating over the bar
            leave: Keep the last rendered line once the bar is closed
            unit: Unit name used in the counter and rate
            unit_scale: Scale counts with SI prefixes (k, M, G, ...)
            unit_divisor: Divisor for unit_scale (1000 or 1024)
            ncols: Fixed meter width in cells (None: fill the terminal, 0: no meter)
            mininterval: Minimum seconds between redraws caused by update()
            miniters: Minimum counter change between redraws caused by update()
            dynamic_miniters: Retune miniters after each redraw so redraws come
                about every mininterval seconds
            force_refresh: Redraw on every update, ignoring every throttle
            delay: Seconds to wait before the first redraw
            smoothing: Weight of the newest sample in the rate average
            initial: Starting counter value
            postfix: Extra key/value fields appended to the line
            colour: Meter colour, a name ("green") or "#rrggbb"
            gradient: Colour sampler applied to the filled part by progress
            animation: Meter style
            fill: Glyph for the unfilled part of the meter
            charset: Meter glyphs from the smallest partial cell to a full cell
            spinner: Spinner frames; the bar then renders as an animation
            template: Line template (strict unless a lenient Template is given)
            clamp_fill: Stop the meter at 100% when the counter overshoots
            underflow: 'saturate' clamps at zero, 'error' raises
            use_unicode: Unicode meter glyphs (default: detected)
            use_colour: Emit colour codes (default: detected)
            disable: Count without drawing
            manager: Row manager to draw through
            gate: Output gate for standalone bars
            monitor_interval: Refresh from a background thread at this period
            clock: Monotonic time source
        """
        total = _validate_total(total)
        if total is None and iterable is not None:
            try:
                total = len(iterable) or None  # type: ignore[arg-type]
            except TypeError:
                pass

        if initial < 0:
            raise ValueError("initial must be non-negative")
        if ncols is not None and ncols < 0:
            raise ValueError("ncols must be non-negative")
        if mininterval < 0:
            raise ValueError("mininterval must be non-negative")
        if miniters < 0:
            raise ValueError("miniters must be non-negative")
        if delay < 0:
            raise ValueError("delay must be non-negative")
        if unit_divisor <= 0:
            raise ValueError("unit_divisor must be positive")
        if underflow not in _UNDERFLOW_POLICIES:
            raise ValueError(f"underflow must be one of {_UNDERFLOW_POLICIES}")
        if monitor_interval is not None and monitor_interval <= 0:
            raise ValueError("monitor_interval must be positive")
        charset = _validate_charset(charset)
        if gradient is not None and not isinstance(gradient, ColourSampler):
            raise ValueError("gradient must provide sample(t) -> (r, g, b)")
        if manager is not None and gate is not None and manager.gate is not gate:
            raise ValueError("gate must be the manager's gate")

        if isinstance(template, str):
            template = Template(template, strict=True)

        if gate is None:
            gate = manager.gate if manager is not None else OutputGate.default()
        self.gate = gate

        capability = detect_capability(gate.stream)
        if use_unicode is None:
            use_unicode = capability != TerminalCapability.MINIMAL
        if use_colour is None:
            use_colour = capability != TerminalCapability.MINIMAL

        animation = Animation(animation)
        if not use_unicode and animation in (Animation.TQDM, Animation.FILLUP):
            animation = Animation.ASCII

        self.iterable = iterable
        self.total = total
        self.desc = str(desc)
        self.leave = leave
        self.unit = unit
        self.unit_scale = unit_scale
        self.unit_divisor = unit_divisor
        self.ncols = ncols
        self._mininterval = mininterval
        self.miniters = miniters
        self.dynamic_miniters = dynamic_miniters
        self.force_refresh = force_refresh
        self.delay = delay
        self.animation = animation
        self.fill = fill if fill is not None else animation.default_fill
        self.charset: Optional[List[str]] = charset
        self.spinner = spinner
        self.template: Optional[Template] = template
        self.clamp_fill = clamp_fill
        self.underflow = underflow
        self.use_colour = use_colour
        self.gradient = gradient
        self._colour_code = parse_colour(colour)
        self.disable = disable

        self._clock = clock
        self._lock = threading.RLock()
        self._batch_owner: Optional[int] = None
        self._batch_depth = 0
        self._deferred: List[Callable[[], Any]] = []
        self._draw_deferred = False
        self._state = BarState.CREATED
        self._rate = RateEstimator(smoothing)

        self.n = initial
        self._postfix: Dict[str, str] = {}
        if postfix:
            self._postfix = {str(k): _postfix_value(v) for k, v in postfix.items()}

        self.start_time = clock()
        self.last_update_time = self.start_time
        self._end_time: Optional[float] = None
        self._pending = 0
        self._last_print_time: Optional[float] = None
        self._last_print_n = initial
        self._drawn = False

        self._manager: Optional[RowManager] = None
        self._slot: Optional[RowSlot] = None
        if manager is not None and not disable:
            self._manager = manager
            self._slot = manager.register(self)

        if monitor_interval is None and spinner is not None and not disable and gate.is_interactive():
            monitor_interval = spinner.interval
        self._monitor: Optional[Monitor] = None
        if monitor_interval is not None and not disable:
            self._monitor = Monitor(self, monitor_interval).start()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __iter__(self) -> Iterator:
        if self.iterable is None:
            raise TypeError("Bar was created without an iterable")
        try:
            for item in self.iterable:
                yield item
                self.update(1)
        finally:
            self.close()

    def __repr__(self):
        return (f'{type(self).__name__}(desc={self.desc!r}, n={self.n!r}, '
                f'total={self.total!r}, state={self._state.value})')

    @contextmanager
    def lock(self):
        """
        Context manager for thread-safe batches of operations.

        Redraws, messages and the terminal side of close() requested inside
        the batch run once the outermost batch releases the lock, so the bar
        lock is never held while waiting for the output gate.
        """
        deferred: List[Callable[[], Any]] = []
        try:
            with self._lock:
                self._batch_owner = threading.get_ident()
                self._batch_depth += 1
                try:
                    yield self._lock
                finally:
                    self._batch_depth -= 1
                    if self._batch_depth == 0:
                        self._batch_owner = None
                        deferred, self._deferred = self._deferred, []
        finally:
            for action in deferred:
                action()

    def _in_batch(self) -> bool:
        return self._batch_owner == threading.get_ident()

    def _run_unlocked(self, action: Callable[[], Any]) -> bool:
        """Run now, or queue until the current thread's batch ends"""
        if self._in_batch():
            self._deferred.append(action)
            return False
        action()
        return True

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> BarState:
        return self._state

    @property
    def current(self) -> int:
        return self.n

    @property
    def closed(self) -> bool:
        return self._state is BarState.CLOSED

    @property
    def slot(self) -> Optional[RowSlot]:
        return self._slot

    @property
    def mininterval(self) -> float:
        return self._mininterval

    @mininterval.setter
    def mininterval(self, value: float):
        if value < 0:
            raise ValueError("mininterval must be non-negative")
        self._mininterval = value

    @property
    def postfix(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._postfix)

    @property
    def rate(self) -> Optional[float]:
        """Smoothed units per second, None until measurable"""
        with self._lock:
            return self._rate.rate if self._rate.seeded else None

    @property
    def percentage(self) -> Optional[float]:
        with self._lock:
            if self.total is None:
                return None
            return self.n / self.total * 100.0

    def elapsed(self) -> float:
        with self._lock:
            end = self._end_time if self._end_time is not None else self._clock()
            return max(0.0, end - self.start_time)

    def completed(self) -> bool:
        return self.total is not None and self.n >= self.total

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update(self, n: int = 1) -> bool:
        """
        Add a signed delta to the counter.

        Thread-safe. Returns whether a redraw was requested; updates on a
        closed bar are ignored.
        """
        with self._lock:
            if self._state is BarState.CLOSED:
                return False

            now = self._clock()
            value = self.n + n
            if value < 0:
                if self.underflow == 'error':
                    raise CounterUnderflowError(f"update({n}) would move the counter below zero (n={self.n})")
                n = -self.n
                value = 0
            self.n = value
            self._state = BarState.ACTIVE

            if n < 0:
                self._rate.observe(n, now - self.last_update_time)
                self._pending = 0
                self.last_update_time = now
            else:
                self._pending += n
                delta_time = now - self.last_update_time
                if delta_time > 0:
                    self._rate.observe(self._pending, delta_time)
                    self._pending = 0
                    self.last_update_time = now

            completing = self.total is not None and self.n >= self.total > self._last_print_n
            should_draw = not self.disable and self._should_draw(now)
            if should_draw:
                if self.dynamic_miniters:
                    self._retune_miniters(now)
                self._last_print_time = now
                self._last_print_n = self.n

        # Never call into the manager or the gate while holding our lock
        if should_draw:
            self._draw(force=completing or self.force_refresh)
        return should_draw

    def _retune_miniters(self, now: float):
        if self._last_print_time is None:
            return
        delta_n = abs(self.n - self._last_print_n)
        delta_time = now - self._last_print_time
        if self._mininterval and delta_time > 0:
            self.miniters = max(1, round(delta_n * self._mininterval / delta_time))
        else:
            self.miniters = max(self.miniters, delta_n)

    def _should_draw(self, now: float) -> bool:
        if self.force_refresh:
            return True
        if self.total is not None and self.n >= self.total > self._last_print_n:
            return True
        if now - self.start_time < self.delay:
            return False
        if self.miniters > 1 and abs(self.n - self._last_print_n) < self.miniters:
            return False
        return self._last_print_time is None or now - self._last_print_time >= self._mininterval

    def refresh(self) -> bool:
        """Redraw now, bypassing every throttle"""
        with self._lock:
            if self._state is BarState.CLOSED or self.disable:
                return False
            self._state = BarState.ACTIVE
            self._last_print_time = self._clock()
            self._last_print_n = self.n
        return self._draw(force=True)

    def set_description(self, desc: str, refresh: bool = True):
        with self._lock:
            if self._state is BarState.CLOSED:
                return
            self.desc = str(desc)
            self._state = BarState.ACTIVE
        if refresh:
            self.refresh()

    def set_postfix(self, ordered_dict: Optional[Mapping[str, Any]] = None, refresh: bool = True, **kwargs):
        """Replace the postfix fields; numbers are shown compactly"""
        postfix: Dict[str, str] = {}
        for key, value in list((ordered_dict or {}).items()) + list(kwargs.items()):
            postfix[str(key)] = _postfix_value(value)

        with self._lock:
            if self._state is BarState.CLOSED:
                return
            self._postfix = postfix
            self._state = BarState.ACTIVE
        if refresh:
            self.refresh()

    def set_colour(self, colour: Optional[str]):
        code = parse_colour(colour)
        with self._lock:
            self._colour_code = code

    def set_charset(self, charset: Optional[Sequence[str]], refresh: bool = True):
        """Swap the meter glyphs; None restores the style's own"""
        glyphs = _validate_charset(charset)
        with self._lock:
            self.charset = glyphs
        if refresh and self._state is BarState.ACTIVE:
            self.refresh()

    def reset(self, total: Optional[int] = None):
        """Zero the counter and restart timing; a new total replaces the old one"""
        total = _validate_total(total)
        with self._lock:
            if self._state is BarState.CLOSED:
                raise BarClosedError("cannot reset a closed bar")
            if self._state is BarState.CREATED:
                raise BarStateError("reset requires an active bar")
            if total is not None:
                self.total = total
            now = self._clock()
            self.n = 0
            self.start_time = now
            self.last_update_time = now
            self._pending = 0
            self._rate.reset()
            self._last_print_time = None
            self._last_print_n = 0
            self._state = BarState.ACTIVE
        self.refresh()

    def close(self, leave: Optional[bool] = None):
        """Finish the bar; later updates are ignored"""
        with self._lock:
            if self._state is BarState.CLOSED:
                return
            self._state = BarState.CLOSED
            self._end_time = self._clock()
            leave = self.leave if leave is None else leave
            monitor, self._monitor = self._monitor, None
            manager, slot = self._manager, self._slot
            self._manager = None

        def finish():
            if monitor is not None:
                monitor.stop()
            if self.disable:
                return
            if manager is not None and slot is not None:
                manager.deregister(slot, leave=leave)
            else:
                self._final_display(leave)

        # Inside a batch the monitor may be waiting on our lock
        self._run_unlocked(finish)

    def _final_display(self, leave: bool):
        gate = self.gate
        with gate.hold():
            try:
                if gate.is_interactive():
                    if leave:
                        self._draw_standalone()
                        gate.write('\n')
                    elif self._drawn:
                        gate.write('\r' + Colors.CLEAR_LINE + '\r')
                elif leave:
                    gate.write(self.render(max(1, gate.columns() - 1)) + '\n')
            except Exception:
                logger.exception('Final display of bar failed')

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def clear(self):
        """Erase the bar's line until the next redraw"""
        self._run_unlocked(self._clear_now)

    def _clear_now(self):
        if self._manager is not None and self._slot is not None:
            self._manager.blank(self._slot)
            return
        with self.gate.hold():
            if self.gate.is_interactive() and self._drawn:
                self.gate.write('\r' + Colors.CLEAR_LINE + '\r')

    def write(self, text: str):
        """Print a message without corrupting the bar"""
        self._run_unlocked(partial(self._write_now, text))

    def _write_now(self, text: str):
        if self._manager is not None:
            self._manager.write(text)
            return
        with self.gate.hold():
            self._clear_now()
            self.gate.emit(text + '\n')
            if not self.closed and self._drawn:
                self._draw_standalone()

    def input(self, prompt: str = '') -> str:
        """Read a line from stdin with the prompt placed clear of the bar"""
        if self._in_batch():
            raise BarStateError("cannot read input while holding the bar lock")
        if self._manager is not None:
            return self.gate.read_line(prompt)
        with self.gate.hold():
            self._clear_now()
            try:
                return self.gate.read_line(prompt)
            finally:
                if not self.closed and self._drawn:
                    self._draw_standalone()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _snapshot(self) -> Tuple[Dict[str, Any], Dict[str, str], Optional[float]]:
        with self._lock:
            n, total = self.n, self.total
            end = self._end_time if self._end_time is not None else self._clock()
            elapsed = max(0.0, end - self.start_time)
            rate = self._rate.rate if self._rate.seeded else None
            postfix = dict(self._postfix)
            desc = self.desc

        ratio = n / total if total is not None else None

        if self.unit_scale:
            n_fmt = format_sizeof(n, self.unit_divisor)
            total_fmt = format_sizeof(total, self.unit_divisor) if total is not None else '?'
            rate_text = format_sizeof(rate, self.unit_divisor) if rate is not None else '?'
        else:
            n_fmt = str(n)
            total_fmt = str(total) if total is not None else '?'
            rate_text = f'{rate:.2f}' if rate is not None else '?'

        remaining = None
        if total is not None and rate:
            remaining = max(0, total - n) / rate

        values = {
            Field.DESC.value: desc,
            Field.LABEL.value: f'{desc}: ' if desc else '',
            Field.N.value: n,
            Field.N_FMT.value: n_fmt,
            Field.TOTAL.value: total,
            Field.TOTAL_FMT.value: total_fmt,
            Field.PERCENTAGE.value: ratio * 100.0 if ratio is not None else None,
            Field.BAR.value: '',
            Field.SPINNER.value: self.spinner.frame_at(elapsed) if self.spinner is not None else '',
            Field.ELAPSED.value: format_interval(elapsed),
            Field.ELAPSED_S.value: elapsed,
            Field.REMAINING.value: format_interval(remaining),
            Field.REMAINING_S.value: remaining,
            Field.RATE.value: rate,
            Field.RATE_FMT.value: f'{rate_text}{self.unit}/s',
            Field.RATE_INV.value: 1.0 / rate if rate else None,
            Field.UNIT.value: self.unit,
            Field.POSTFIX.value: (', ' + ', '.join(f'{k}={v}' for k, v in postfix.items())) if postfix else '',
        }
        return values, postfix, ratio

    @property
    def format_dict(self) -> Dict[str, Any]:
        return self._snapshot()[0]

    def _active_template(self) -> Template:
        if self.template is not None:
            return self.template
        if self.spinner is not None:
            return _SPINNER_TEMPLATE
        if self.total is None:
            return _INDETERMINATE_TEMPLATE
        return _determinate_template(self.animation)

    def _meter(self, ratio: Optional[float], width: int) -> str:
        if ratio is None:
            return self.fill * width
        filled, empty = render_meter(ratio, width, self.animation, self.fill,
                                     clamp=self.clamp_fill, charset=self.charset)
        code = ''
        if self.use_colour:
            if self.gradient is not None:
                code = Colors.rgb(*self.gradient.sample(ratio))
            else:
                code = self._colour_code
        return colourise(filled, code) + empty

    def render(self, width: Optional[int] = None) -> str:
        """Render the line; the meter takes whatever `width` leaves over"""
        if width is None:
            width = max(1, self.gate.columns() - 1)

        values, postfix, ratio = self._snapshot()
        template = self._active_template()

        if template.uses(Field.BAR):
            if self.ncols is not None:
                meter_width = self.ncols
            else:
                meter_width = max(0, width - display_width(template.format(values, postfix)))
            values[Field.BAR.value] = self._meter(ratio, meter_width)

        return template.format(values, postfix)

    def _draw(self, force: bool) -> bool:
        if self._in_batch():
            # One redraw after the batch covers every change made inside it
            if not self._draw_deferred:
                self._draw_deferred = True
                self._deferred.append(self._deferred_draw)
            return False
        manager, slot = self._manager, self._slot
        if manager is not None and slot is not None:
            return manager.request_redraw(slot, force=force)
        with self.gate.hold():
            return self._draw_standalone()

    def _deferred_draw(self):
        self._draw_deferred = False
        if not self.closed:
            self._draw(force=True)

    def _draw_standalone(self) -> bool:
        gate = self.gate
        if not gate.is_interactive():
            return False
        try:
            width = max(1, gate.columns() - 1)
            line = truncate(self.render(width), width)
        except Exception:
            logger.exception('Display progress failed')
            return False
        self._drawn = True
        return gate.write('\r' + line + Colors.CLEAR_EOL)


def progress(iterable: Iterable,
             total: Optional[int] = None,
             desc: str = '',
             **kwargs) -> Iterator:
    """
    Wrap an iterable to display progress automatically.

    Example:
        for item in progress([1, 2, 3, 4, 5], desc="Processing"):
            process(item)

    Args:
        iterable: The iterable to wrap
        total: Total items (auto-detected if possible)
        desc: Progress bar description
        **kwargs: Additional arguments for Bar
    """
    with Bar(total=total, desc=desc, iterable=iterable, **kwargs) as bar:
        yield from bar
