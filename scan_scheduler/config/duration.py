"""Duration strings used by the configuration ("1m", "1h30m", "PT15M")."""

import re

_ISO_PATTERN = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$")
_HUMAN_TOKEN = re.compile(r"(\d+)([smhd])")

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed or is out of range."""

    pass


def parse_duration(duration_str: str) -> int:
    """
    Parse a duration string to whole seconds.

    Accepts unit-suffixed values ("30s", "1m", "1h30m", "2d") and ISO-8601
    durations ("PT1M", "P1DT2H").

    Raises:
        DurationParseError: If the string is empty, malformed, or zero

    Examples:
        >>> parse_duration("1m")
        60
        >>> parse_duration("1h30m")
        5400
        >>> parse_duration("PT15M")
        900
    """
    text = re.sub(r"\s+", "", duration_str or "").lower()
    if not text:
        raise DurationParseError("Duration string cannot be empty")

    if text.startswith("p"):
        match = _ISO_PATTERN.match(text.upper())
        if not match:
            raise DurationParseError(
                f"Invalid ISO-8601 duration: '{duration_str}'. Expected e.g. 'PT1M' or 'P1DT2H'"
            )
        days, hours, minutes, seconds = (int(group or 0) for group in match.groups())
        total = days * 86400 + hours * 3600 + minutes * 60 + seconds
    else:
        tokens = _HUMAN_TOKEN.findall(text)
        if not tokens or "".join(num + unit for num, unit in tokens) != text:
            raise DurationParseError(
                f"Invalid duration: '{duration_str}'. "
                "Use digits with s, m, h, or d units, e.g. '1m' or '1h30m'"
            )
        total = sum(int(num) * _UNIT_SECONDS[unit] for num, unit in tokens)

    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = 60,
    max_seconds: int = 3600,
    label: str = "check_interval",
) -> None:
    """
    Raises:
        DurationParseError: If the duration falls outside [min_seconds, max_seconds]
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {seconds_to_human(duration_seconds)}. "
            f"Minimum is {seconds_to_human(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {seconds_to_human(duration_seconds)}. "
            f"Maximum is {seconds_to_human(max_seconds)}."
        )


def seconds_to_human(seconds: int) -> str:
    """E.g. ``"1 minute"``, ``"90 seconds"``, ``"2 hours"`` (largest exact unit)."""
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size and seconds % size == 0:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
