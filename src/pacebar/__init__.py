# -*- coding: utf-8 -*-
"""
Pacebar – Live progress bars and spinners for the terminal.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

import logging

from ._terminal import Colors, Terminal, TerminalCapability
from .animation import Animation, ColourSampler, LinearGradient, Spinner
from .bar import Bar, BarState, progress
from .errors import BarClosedError, BarStateError, CounterUnderflowError, PacebarError, TemplateError
from .formatting import Field, Template, format_interval, format_num, format_sizeof, format_time
from .gate import OutputGate, StdProxy
from .monitor import Monitor
from .rate import RateEstimator
from .rows import RowManager, RowSlot

__all__ = [
    'progress',
    'Bar',
    'BarState',
    'RowManager',
    'RowSlot',
    'OutputGate',
    'StdProxy',
    'Terminal',
    'TerminalCapability',
    'Monitor',
    'RateEstimator',
    'Template',
    'Field',
    'Spinner',
    'Animation',
    'LinearGradient',
    'ColourSampler',
    'Colors',
    'format_sizeof',
    'format_interval',
    'format_time',
    'format_num',
    'PacebarError',
    'TemplateError',
    'BarStateError',
    'BarClosedError',
    'CounterUnderflowError',
]

__version__ = '0.1.0'

logging.getLogger(__name__).addHandler(logging.NullHandler())
