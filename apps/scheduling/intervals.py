"""
Time interval arithmetic for shifts.

Shifts are half-open intervals [start, end): a shift ending at 14:00 and one
starting at 14:00 do not overlap. Comparisons are exact to the second, with
no rounding or grace period.
"""

from datetime import datetime


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """
    Return True if [a_start, a_end) and [b_start, b_end) share any instant.

    Args:
        a_start: Start of the first interval (UTC).
        a_end: End of the first interval (UTC), exclusive.
        b_start: Start of the second interval (UTC).
        b_end: End of the second interval (UTC), exclusive.
    """
    return a_start < b_end and b_start < a_end
