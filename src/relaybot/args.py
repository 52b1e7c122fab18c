"""Helpers for module ``parse`` steps.

A ``parse`` callable receives the context and the raw arguments (argument
text for text events, options for everything else) and returns either the
parsed value or ``ParseFailure(payload)``; it may also raise
``ArgumentParseFailure``. Either way the payload is sent as the reply and
``execute`` is skipped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_YES = re.compile(r"^(yes|y|true|on|\N{THUMBS UP SIGN})$", re.IGNORECASE)
_NO = re.compile(r"^(no|n|false|off|\N{THUMBS DOWN SIGN})$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ParseFailure:
    payload: Any


def parse_int(arg: str, on_failure: Any) -> int | ParseFailure:
    try:
        return int(arg.strip())
    except (AttributeError, ValueError):
        return ParseFailure(on_failure)


def parse_bool(
    arg: str,
    on_failure: Any = None,
    *,
    yes: re.Pattern[str] = _YES,
    no: re.Pattern[str] = _NO,
) -> bool | ParseFailure:
    value = arg.strip()
    if yes.search(value):
        return True
    if no.search(value):
        return False
    if on_failure is None:
        on_failure = f"Cannot parse {arg!r} as a boolean"
    return ParseFailure(on_failure)


def to_list(arg: str, sep: str | None = None) -> list[str]:
    if sep is None:
        return arg.split()
    return arg.split(sep)


def to_positive_int(arg: str, on_failure: Any) -> int | ParseFailure:
    value = parse_int(arg, on_failure)
    if isinstance(value, ParseFailure):
        return value
    return abs(value)


def to_negative_int(arg: str, on_failure: Any) -> int | ParseFailure:
    value = parse_int(arg, on_failure)
    if isinstance(value, ParseFailure):
        return value
    return -abs(value)
