from __future__ import annotations

# 100ns ticks between 1601-01-01 and 1970-01-01.
_EPOCH_DELTA_TICKS = 0x19DB1DED53E8000


def chrome_time_to_double(value: int) -> float:
    """Convert a Chrome timestamp (microseconds since 1601) to Unix seconds.

    The value is scaled to 100ns ticks, shifted to the Unix epoch, then
    truncated twice (to milliseconds, then to whole seconds), so
    sub-second precision is lost. Both divisions truncate toward zero:
    pre-1970 values do not round down.
    """
    ticks = int(value) * 10 - _EPOCH_DELTA_TICKS
    return float(_trunc_div(_trunc_div(ticks, 10000), 1000))


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q
