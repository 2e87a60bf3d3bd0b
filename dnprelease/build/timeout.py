# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Human-friendly build timeouts.

Accepted forms:
  "5000"        plain number, milliseconds
  "15h"         one unit
  "20min 15s"   several units, summed
  "1h30m"       units may be glued together

Units: ms, s/sec/secs/second(s), m/min/mins/minute(s), h/hr/hrs/hour(s), d/day(s).
"""

import re

from dnprelease.errors import ConfigurationError

DEFAULT_TIMEOUT = "60min"

_UNIT_SECONDS: dict[str, float] = {
    "ms": 0.001,
    "s": 1.0, "sec": 1.0, "secs": 1.0, "second": 1.0, "seconds": 1.0,
    "m": 60.0, "min": 60.0, "mins": 60.0, "minute": 60.0, "minutes": 60.0,
    "h": 3600.0, "hr": 3600.0, "hrs": 3600.0, "hour": 3600.0, "hours": 3600.0,
    "d": 86400.0, "day": 86400.0, "days": 86400.0,
}

_TOKEN_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([a-zA-Z]+)")


def parse_timeout(text: str) -> float:
    """
    Convert a timeout string into seconds.

    Raises:
        ConfigurationError: Unparseable text, unknown units, or a non-positive total.
    """
    value = text.strip()
    if not value:
        raise ConfigurationError("Build timeout must not be empty")

    if re.fullmatch(r"\d+(\.\d+)?", value):
        seconds = float(value) / 1000.0
    else:
        seconds = 0.0
        consumed = 0
        for match in _TOKEN_RE.finditer(value):
            if value[consumed:match.start()].strip():
                raise ConfigurationError(f"Invalid build timeout '{text}'")
            unit = match.group(2).lower()
            if unit not in _UNIT_SECONDS:
                raise ConfigurationError(f"Unknown time unit '{unit}' in build timeout '{text}'")
            seconds += float(match.group(1)) * _UNIT_SECONDS[unit]
            consumed = match.end()
        if consumed == 0 or value[consumed:].strip():
            raise ConfigurationError(f"Invalid build timeout '{text}'")

    if seconds <= 0:
        raise ConfigurationError(f"Build timeout must be positive, got '{text}'")
    return seconds
