"""
Per-field decoders built from named processing steps.

A spec such as ``["optional", "integer"]`` compiles into one function of
the raw cell value. Steps run in listed order; each receives the value and
the rest of the chain, and decides whether to hand the value on.
"""

from __future__ import annotations

import re
from functools import reduce
from typing import Any, Callable, Dict, Hashable, Iterable, Mapping, Optional, Sequence

from .errors import NullValueError, ProcessorError, UnknownProcessorError
from .rules import DECIMAL_PATTERN, SIGNED_INTEGER_PATTERN

Decoder = Callable[[Optional[str]], Any]
Step = Callable[[Any, Decoder], Any]

_SIGNED_INTEGER = re.compile(SIGNED_INTEGER_PATTERN, re.ASCII)
_DECIMAL = re.compile(DECIMAL_PATTERN, re.ASCII)


def _identity(value: Any) -> Any:
    return value


def optional(value: Any, rest: Decoder) -> Any:
    if value is None:
        return None
    return rest(value)


def not_null(value: Any, rest: Decoder) -> Any:
    if value is None:
        raise NullValueError("null value is not allowed", value)
    return rest(value)


def parse_integer(value: Any, rest: Decoder) -> Any:
    if value is None:
        raise NullValueError("cannot parse null as integer", value)
    if isinstance(value, int):
        return rest(value)
    if not isinstance(value, str) or not _SIGNED_INTEGER.fullmatch(value):
        raise ProcessorError(f"{value!r} is not a valid integer", value)
    return rest(int(value))


def parse_decimal(value: Any, rest: Decoder) -> Any:
    if value is None:
        raise NullValueError("cannot parse null as decimal", value)
    if isinstance(value, (int, float)):
        return rest(float(value))
    if not isinstance(value, str) or not _DECIMAL.fullmatch(value):
        raise ProcessorError(f"{value!r} is not a valid decimal", value)
    return rest(float(value.replace(",", ".")))


STEPS: Dict[str, Step] = {
    "optional": optional,
    "not-null": not_null,
    "integer": parse_integer,
    "long": parse_integer,
    "decimal": parse_decimal,
    "double": parse_decimal,
}


def _bind(step: Step, rest: Decoder) -> Decoder:
    return lambda value: step(value, rest)


def compile_chain(steps: Sequence[str], field: Hashable = None) -> Decoder:
    resolved = []
    for name in steps:
        try:
            resolved.append(STEPS[name])
        except KeyError:
            raise UnknownProcessorError(name, field) from None
    return reduce(lambda rest, step: _bind(step, rest), reversed(resolved), _identity)


DEFAULT_DECODER = compile_chain(["optional"])


def spec_key(name: Hashable) -> Hashable:
    return name.strip() if isinstance(name, str) else name


def compile_processor_specs(
    specs: Mapping[Hashable, Iterable[str]]
) -> Dict[Hashable, Decoder]:
    """Compile every spec up front so unknown steps surface before reading."""
    return {
        spec_key(name): compile_chain(list(steps), name)
        for name, steps in specs.items()
    }


def decoders_for(
    field_names: Sequence[Hashable], compiled: Mapping[Hashable, Decoder]
) -> list:
    """One decoder per field, falling back to the null-tolerant pass-through."""
    decoders = []
    for name in field_names:
        decoder = compiled.get(name)
        if decoder is None and not isinstance(name, str):
            decoder = compiled.get(str(name))
        decoders.append(decoder or DEFAULT_DECODER)
    return decoders
