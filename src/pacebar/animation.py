# -*- coding: utf-8 -*-
"""
Pacebar – Spinner frames, meter glyph runs and colour gradients.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

from enum import Enum
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from ._terminal import Colors, TerminalCapability, detect_capability

__all__ = [
    'Animation',
    'Spinner',
    'ColourSampler',
    'LinearGradient',
    'render_meter',
    'parse_colour',
    'colourise',
]

RGB = Tuple[int, int, int]


class Animation(Enum):
    """Meter styles"""
    TQDM = 'tqdm'
    ASCII = 'ascii'
    FILLUP = 'fillup'
    CLASSIC = 'classic'
    ARROW = 'arrow'

    @property
    def charset(self) -> str:
        """Glyphs from empty to full; index i covers i/(len-1) of a cell"""
        return _CHARSETS.get(self, '')

    @property
    def default_fill(self) -> str:
        return '.' if self is Animation.CLASSIC else ' '

    @property
    def brackets(self) -> Tuple[str, str]:
        if self in (Animation.CLASSIC, Animation.ARROW):
            return '[', ']'
        return '|', '|'


_CHARSETS = {
    Animation.TQDM: ' ▏▎▍▌▋▊▉█',
    Animation.ASCII: ' 123456789#',
    Animation.FILLUP: ' ▁▂▃▄▅▆▇█',
}

# Guards int() against 0.29 * 100 == 28.999999999999996
_EPSILON = 1e-9


def render_meter(progress: float,
                 width: int,
                 animation: Animation = Animation.TQDM,
                 fill: Optional[str] = None,
                 clamp: bool = True,
                 charset: Optional[Sequence[str]] = None) -> Tuple[str, str]:
    """
    Build the glyph run for a progress ratio.

    Returns the filled and the unfilled part separately so a colour can be
    applied to the filled portion only. Charset styles use sub-cell
    resolution (eighths of a cell for TQDM). With clamp=False an overshoot
    extends the filled run past `width`.

    A custom `charset` lists partial glyphs in increasing order and ends
    with the full cell; it replaces the style's own glyphs.
    """
    if width <= 0:
        return '', ''
    if fill is None:
        fill = animation.default_fill

    progress = max(0.0, progress)
    if clamp:
        progress = min(1.0, progress)

    glyphs = list(charset) if charset is not None else list(animation.charset[1:])
    if glyphs:
        steps = len(glyphs)
        units = int(progress * width * steps + _EPSILON)
        full, part = divmod(units, steps)
        filled = glyphs[-1] * full
        used = full
        if full < width and part:
            filled += glyphs[part - 1]
            used += 1
        return filled, fill * max(0, width - used)

    blocks = int(progress * width + _EPSILON)
    if animation is Animation.ARROW:
        if blocks < width:
            return '=' * blocks + '>', fill * (width - blocks - 1)
        return '=' * blocks, ''

    return '#' * blocks, fill * max(0, width - blocks)


class Spinner:
    """Animated glyph keyed by elapsed time"""

    FRAMES_SNAKE = ['⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏']
    FRAMES_DOTS = ['⣷', '⣯', '⣟', '⡿', '⢿', '⣻', '⣽', '⣾']
    FRAMES_ARROWS = ['←', '↖', '↑', '↗', '→', '↘', '↓', '↙']
    FRAMES_BOUNCING = ['⠁', '⠈', '⠐', '⠠', '⢀', '⡀', '⠄', '⠂']
    FRAMES_SPINNER = ['|', '/', '-', '\\']

    def __init__(self,
                 style: str = 'dots',
                 interval: float = 0.1,
                 frames: Optional[Sequence[str]] = None,
                 use_unicode: Optional[bool] = None):
        if interval <= 0:
            raise ValueError("interval must be positive")

        if frames is None:
            if use_unicode is None:
                use_unicode = detect_capability() != TerminalCapability.MINIMAL

            if style == 'spinner' or not use_unicode:
                frames = self.FRAMES_SPINNER
            elif style == 'dots':
                frames = self.FRAMES_DOTS
            elif style == 'arrows':
                frames = self.FRAMES_ARROWS
            elif style == 'bouncing':
                frames = self.FRAMES_BOUNCING
            elif style == 'snake':
                frames = self.FRAMES_SNAKE
            else:
                raise ValueError(f"Unknown spinner style '{style}'")

        if not frames:
            raise ValueError("frames must not be empty")

        self.frames: List[str] = list(frames)
        self.interval = interval

    def frame_at(self, elapsed: float) -> str:
        if elapsed < 0:
            elapsed = 0.0
        return self.frames[int(elapsed / self.interval) % len(self.frames)]

    def __repr__(self):
        return f'{type(self).__name__}(frames={self.frames!r}, interval={self.interval!r})'


# ============================================================================
# Colours
# ============================================================================

@runtime_checkable
class ColourSampler(Protocol):
    """Maps a position in [0, 1] to an RGB colour"""

    def sample(self, t: float) -> RGB:
        ...


class LinearGradient:
    """Piecewise linear interpolation between evenly spaced colour stops"""

    def __init__(self, *stops: RGB):
        if not stops:
            raise ValueError("at least one colour stop is required")
        for stop in stops:
            if len(stop) != 3 or any(not 0 <= c <= 255 for c in stop):
                raise ValueError(f"Invalid colour stop {stop!r}")
        self.stops: List[RGB] = [tuple(s) for s in stops]  # type: ignore[misc]

    @classmethod
    def from_hex(cls, *stops: str) -> 'LinearGradient':
        return cls(*(_hex_to_rgb(s) for s in stops))

    def sample(self, t: float) -> RGB:
        t = min(1.0, max(0.0, t))
        if len(self.stops) == 1:
            return self.stops[0]

        position = t * (len(self.stops) - 1)
        index = min(int(position), len(self.stops) - 2)
        frac = position - index
        start, end = self.stops[index], self.stops[index + 1]
        return tuple(int(round(a + (b - a) * frac)) for a, b in zip(start, end))  # type: ignore[return-value]


_NAMED_COLOURS = {
    name.lower(): value
    for name, value in vars(Colors).items()
    if name.isupper() and isinstance(value, str) and value.endswith('m') and name not in ('RESET', 'BOLD', 'DIM')
}


def _hex_to_rgb(value: str) -> RGB:
    digits = value.lstrip('#')
    if len(digits) != 6:
        raise ValueError(f"Invalid hex colour '{value}'")
    try:
        return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)
    except ValueError:
        raise ValueError(f"Invalid hex colour '{value}'") from None


def parse_colour(colour: Optional[str]) -> str:
    """Named colour ("green", "bright_red") or "#rrggbb" to an escape code"""
    if colour is None or colour in ('', 'default'):
        return ''
    if colour.startswith('#'):
        return Colors.rgb(*_hex_to_rgb(colour))
    code = _NAMED_COLOURS.get(colour.lower().replace(' ', '_'))
    if code is None:
        raise ValueError(f"Unknown colour '{colour}'")
    return code


def colourise(text: str, code: str) -> str:
    if not code or not text:
        return text
    return f'{code}{text}{Colors.RESET}'
