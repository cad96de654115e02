# -*- coding: utf-8 -*-
"""
Pacebar – Value formatting and the line template mini-language.
Copyright (c) 2025 The pacebar authors
Licensed under the MIT License.
"""

import math
import string
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import TemplateError

__all__ = [
    'Field',
    'PostfixRef',
    'Template',
    'resolve',
    'parse_field_name',
    'format_sizeof',
    'format_interval',
    'format_time',
    'format_num',
]

_SI_PREFIXES = ['', 'k', 'M', 'G', 'T', 'P', 'E', 'Z']


def format_sizeof(num: float, divisor: float = 1000, suffix: str = '') -> str:
    """Format a number with SI prefixes, three significant digits"""
    for prefix in _SI_PREFIXES:
        if abs(num) < 999.5:
            if abs(num) < 99.95:
                if abs(num) < 9.995:
                    return f'{num:1.2f}{prefix}{suffix}'
                return f'{num:2.1f}{prefix}{suffix}'
            return f'{num:3.0f}{prefix}{suffix}'
        num /= divisor
    return f'{num:3.1f}Y{suffix}'


def format_interval(seconds: Optional[float]) -> str:
    """Format seconds as MM:SS, or H:MM:SS once an hour is reached"""
    if seconds is None or seconds < 0 or math.isinf(seconds) or math.isnan(seconds):
        return '?'
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f'{hours:d}:{minutes:02d}:{secs:02d}'
    return f'{minutes:02d}:{secs:02d}'


def format_time(seconds: float) -> str:
    """Human readable duration: 1.50s, 2.00min, 1.00hr, 1.00days"""
    value = seconds
    for divisor, unit in ((60.0, 's'), (60.0, 'min'), (24.0, 'hr')):
        if abs(value) < divisor - 0.005:
            return f'{value:1.2f}{unit}'
        value /= divisor
    return f'{value:1.2f}days'


def format_num(n: Union[int, float]) -> str:
    """Compact scientific notation when it is shorter than the plain form"""
    compact = f'{n:.3g}'.replace('e+0', 'e+').replace('e-0', 'e-')
    plain = str(n)
    return compact if len(compact) < len(plain) else plain


# ============================================================================
# Template fields
# ============================================================================

class Field(Enum):
    """Placeholders a bar knows how to fill"""
    DESC = 'desc'
    LABEL = 'label'
    N = 'n'
    N_FMT = 'n_fmt'
    TOTAL = 'total'
    TOTAL_FMT = 'total_fmt'
    PERCENTAGE = 'percentage'
    BAR = 'bar'
    SPINNER = 'spinner'
    ELAPSED = 'elapsed'
    ELAPSED_S = 'elapsed_s'
    REMAINING = 'remaining'
    REMAINING_S = 'remaining_s'
    RATE = 'rate'
    RATE_FMT = 'rate_fmt'
    RATE_INV = 'rate_inv'
    UNIT = 'unit'
    POSTFIX = 'postfix'

    @property
    def sample(self) -> Any:
        """Representative value used to validate format qualifiers"""
        if self in (Field.N, Field.TOTAL):
            return 1
        if self in (Field.PERCENTAGE, Field.ELAPSED_S, Field.REMAINING_S, Field.RATE, Field.RATE_INV):
            return 1.0
        return ''


@dataclass(frozen=True)
class PostfixRef:
    """Caller supplied postfix key, written as {postfix.<key>}"""
    key: str


FieldRef = Union[Field, PostfixRef]

_FIELDS_BY_NAME: Dict[str, Field] = {f.value: f for f in Field}
_POSTFIX_PREFIX = 'postfix.'


def parse_field_name(name: str) -> Optional[FieldRef]:
    """Map a placeholder name to a field, None when unknown"""
    field = _FIELDS_BY_NAME.get(name)
    if field is not None:
        return field
    if name.startswith(_POSTFIX_PREFIX) and len(name) > len(_POSTFIX_PREFIX):
        return PostfixRef(name[len(_POSTFIX_PREFIX):])
    return None


def resolve(ref: FieldRef, values: Mapping[str, Any], postfix: Optional[Mapping[str, str]] = None) -> Any:
    """Single lookup for every placeholder kind"""
    if isinstance(ref, PostfixRef):
        return (postfix or {}).get(ref.key, '')
    try:
        return values[ref.value]
    except KeyError:
        raise TemplateError(f"No value for field '{ref.value}'") from None


@dataclass(frozen=True)
class _Placeholder:
    ref: Optional[FieldRef]
    conversion: Optional[str]
    spec: str
    source: str


def _convert(value: Any, conversion: Optional[str]) -> Any:
    if conversion == 'r':
        return repr(value)
    if conversion == 's':
        return str(value)
    if conversion == 'a':
        return ascii(value)
    return value


class Template:
    """
    A line template such as "{desc}: {percentage:5.1f}%|{bar}|".

    Placeholders follow str.format field syntax. In strict mode unknown
    field names are rejected when the template is built; in lenient mode
    they are copied to the output untouched.
    """

    _formatter = string.Formatter()

    def __init__(self, source: str, strict: bool = True):
        if not isinstance(source, str):
            raise TemplateError("template must be a string")
        self.source = source
        self.strict = strict
        self._segments: List[Union[str, _Placeholder]] = self._compile(source)

    def _compile(self, source: str) -> List[Union[str, _Placeholder]]:
        try:
            parsed = list(self._formatter.parse(source))
        except ValueError as e:
            raise TemplateError(f"Malformed template {source!r}: {e}") from None

        segments: List[Union[str, _Placeholder]] = []
        for literal, name, spec, conversion in parsed:
            if literal:
                segments.append(literal)
            if name is None:
                continue

            if name == '' or name.isdigit():
                raise TemplateError(f"Positional placeholders are not supported in {source!r}")
            if spec and '{' in spec:
                raise TemplateError(f"Nested placeholders are not supported in {source!r}")

            text = '{' + name + (f'!{conversion}' if conversion else '') + (f':{spec}' if spec else '') + '}'
            ref = parse_field_name(name)
            if ref is None:
                if self.strict:
                    raise TemplateError(f"Unknown field '{name}' in template {source!r}")
                segments.append(_Placeholder(None, conversion, spec or '', text))
                continue

            sample = ref.sample if isinstance(ref, Field) else ''
            try:
                format(_convert(sample, conversion), spec or '')
            except (ValueError, TypeError) as e:
                raise TemplateError(f"Invalid format for field '{name}': {e}") from None

            segments.append(_Placeholder(ref, conversion, spec or '', text))
        return segments

    @property
    def fields(self) -> List[FieldRef]:
        return [s.ref for s in self._segments if isinstance(s, _Placeholder) and s.ref is not None]

    def uses(self, field: Field) -> bool:
        return field in self.fields

    def format(self, values: Mapping[str, Any], postfix: Optional[Mapping[str, str]] = None) -> str:
        parts = []
        for segment in self._segments:
            if isinstance(segment, str):
                parts.append(segment)
                continue
            if segment.ref is None:
                parts.append(segment.source)
                continue

            value = resolve(segment.ref, values, postfix)
            if value is None:
                # Unavailable, e.g. percentage of an indeterminate bar
                continue
            value = _convert(value, segment.conversion)
            try:
                parts.append(format(value, segment.spec))
            except (ValueError, TypeError) as e:
                raise TemplateError(f"Cannot format {segment.source} with {value!r}: {e}") from None
        return ''.join(parts)

    def __eq__(self, other):
        if not isinstance(other, Template):
            return NotImplemented
        return self.source == other.source and self.strict == other.strict

    def __hash__(self):
        return hash((self.source, self.strict))

    def __repr__(self):
        return f'{type(self).__name__}({self.source!r}, strict={self.strict!r})'
