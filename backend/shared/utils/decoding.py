"""
Tolerant decoding for provider payloads.

Several upstream fields arrive either as JSON numbers or as numeric strings
("3.5", "-7", "") depending on the endpoint. These helpers normalize both
shapes at the model boundary so individual models never special-case them.
"""
from __future__ import annotations

import math
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator


def coerce_float(value: Any) -> Optional[float]:
    """Return ``value`` as a float, or None when it is missing or unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip().rstrip("%")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def coerce_int(value: Any) -> Optional[int]:
    """Return ``value`` as an int, truncating numeric strings like "12.0"."""
    number = coerce_float(value)
    return int(number) if number is not None else None


def coerce_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


FlexibleFloat = Annotated[Optional[float], BeforeValidator(coerce_float)]
FlexibleInt = Annotated[Optional[int], BeforeValidator(coerce_int)]
FlexibleStr = Annotated[Optional[str], BeforeValidator(coerce_str)]
