"""
GPS Coordinate Normalization
============================

Metadata tools report GPS positions in one of two shapes:

* already decimal, e.g. ``-73.983333`` (numeric tag value)
* degrees/minutes/seconds text with a hemisphere letter, e.g.
  ``40 deg 26' 46.00" N`` or ``40° 26' 46" N``

This module turns either shape into a signed decimal-degree float.

How DMS maps to decimal degrees:
-------------------------------
```
decimal = degrees + minutes / 60 + seconds / 3600
```
South latitudes and West longitudes are negative:

- 40° 26' 46" N = 40.446111
- 73° 59' 0" W  = -73.983333

Separators between the numeric tokens are not standardized (``°``,
``deg``, ``'``, ``"``, spaces, locale-specific glyphs), so any run of
characters that are neither digits nor ``.`` counts as a separator.
Hemisphere letters are matched case-insensitively. Text whose first
number is not the degrees value (decimal commas such as ``46,5``) is
rejected rather than parsed from a later position.

Unparseable input never raises: it yields ``None`` so callers can treat
"absent" and "unparseable" the same way. No range clamping is done here;
range validity is the caller's concern.
"""

import math
import numbers
import re
from typing import Any, Optional

_NUMBER = r"(\d+(?:\.\d+)?|\.\d+)"
_SEPARATOR = r"[^\d.]+"

DMS_PATTERN = re.compile(
    _NUMBER + _SEPARATOR + _NUMBER + _SEPARATOR + _NUMBER + r"[^\d.]*?([NSEW])",
    re.IGNORECASE,
)

# "40.4461 N", "73.98W"
DECIMAL_HEMISPHERE_PATTERN = re.compile(
    r"^\s*" + _NUMBER + r"\s*°?\s*([NSEW])\s*$",
    re.IGNORECASE,
)

NEGATIVE_HEMISPHERES = frozenset({"S", "W"})


def _apply_hemisphere(magnitude: float, hemisphere: str) -> Optional[float]:
    """Sign a magnitude by hemisphere, mapping non-finite results to None."""
    if not math.isfinite(magnitude):
        return None
    if hemisphere.upper() in NEGATIVE_HEMISPHERES:
        return -magnitude
    return magnitude


def parse_dms_coordinate(value: str) -> Optional[float]:
    """
    Convert a degrees/minutes/seconds string to signed decimal degrees.

    Degrees, minutes and seconds are all parsed as floats so fractional
    components (``40.5° 26.25' 46.512" N``) are never truncated.

    Args:
        value: Coordinate text such as ``40° 26' 46" N``.

    Returns:
        Signed decimal degrees, or None when the text is not in DMS form.

    Example:
        >>> round(parse_dms_coordinate("73° 59' 0\\" W"), 6)
        -73.983333
        >>> parse_dms_coordinate("not a coordinate") is None
        True
    """
    if not isinstance(value, str) or not value:
        return None

    match = DMS_PATTERN.search(value)
    # A digit before the match means the degrees token was skipped
    # (e.g. a decimal comma in "46,5"), so the match is not the coordinate.
    if not match or any(ch.isdigit() for ch in value[:match.start()]):
        return None

    degrees, minutes, seconds, hemisphere = match.groups()
    try:
        magnitude = float(degrees) + float(minutes) / 60 + float(seconds) / 3600
    except (ValueError, OverflowError):
        return None

    return _apply_hemisphere(magnitude, hemisphere)


def resolve_coordinate(value: Any) -> Optional[float]:
    """
    Resolve a raw GPS tag value to decimal degrees.

    Numeric values are already decimal and are returned as-is; only text
    goes through :func:`parse_dms_coordinate`. Text that is not DMS may
    still be a plain decimal (``"-73.98"``) or a decimal with a
    hemisphere letter (``"40.4461 N"``).

    Args:
        value: Raw ``GPSLatitude``/``GPSLongitude`` tag value.

    Returns:
        Signed decimal degrees, or None if the value is missing or unusable.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, numbers.Real):
        decimal = float(value)
        return decimal if math.isfinite(decimal) else None

    if not isinstance(value, str):
        return None

    decimal = parse_dms_coordinate(value)
    if decimal is not None:
        return decimal

    match = DECIMAL_HEMISPHERE_PATTERN.match(value)
    if match:
        return _apply_hemisphere(float(match.group(1)), match.group(2))

    try:
        decimal = float(value.strip())
    except ValueError:
        return None
    return decimal if math.isfinite(decimal) else None


def has_location(latitude: Optional[float], longitude: Optional[float]) -> bool:
    """True when both coordinates resolved to non-null, non-zero values."""
    return bool(latitude) and bool(longitude)
