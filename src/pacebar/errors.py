# -*- coding: utf-8 -*-
"""
Pacebar – Exceptions raised to callers.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

__all__ = [
    'PacebarError',
    'TemplateError',
    'BarStateError',
    'BarClosedError',
    'CounterUnderflowError',
]


class PacebarError(Exception):
    """Base class for all pacebar errors"""


class TemplateError(PacebarError, ValueError):
    """Malformed template, unknown field or invalid format qualifier"""


class BarStateError(PacebarError, RuntimeError):
    """Operation is not valid in the bar's current lifecycle state"""


class BarClosedError(BarStateError):
    """Operation is not valid once a bar has been closed"""


class CounterUnderflowError(PacebarError, ValueError):
    """Update would move the counter below zero"""
