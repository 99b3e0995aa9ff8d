"""Parsing for the ``key=value`` feature flag string."""

from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType

_SEPARATORS = re.compile(r"[;,]")
_TRUTHY = {"true", "1", "yes"}

ENABLE_DISTANCE_MATRIX = "enableDistanceMatrix"


def parse_feature_flags(text: str | None) -> Mapping[str, bool]:
    """Parse ``"enableDistanceMatrix=true,foo=false"`` style flag strings.

    Pairs are separated by commas or semicolons. A bare key is enabled; a value
    is enabled only when it reads ``true``, ``1`` or ``yes``.
    """
    flags: dict[str, bool] = {}
    if not text:
        return MappingProxyType(flags)

    for pair in (chunk.strip() for chunk in _SEPARATORS.split(text)):
        if not pair:
            continue
        key, _, value = (part.strip() for part in pair.partition("="))
        if not key:
            continue
        flags[key] = True if not value else value.lower() in _TRUTHY

    return MappingProxyType(flags)
