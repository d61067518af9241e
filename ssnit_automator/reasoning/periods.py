"""Contribution period arithmetic and display labels

Periods are YYYYMM tokens. The report table labels periods as upper-case
short month names ("DEC 2025"); the import dialog uses several formats.
"""

from collections import namedtuple

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

PeriodSequence = namedtuple("PeriodSequence", ["target_label", "p1_label", "p2_label"])


class InvalidPeriod(ValueError):
    pass


def parse_period(yyyymm):
    """Split a YYYYMM token into (year, month), validating its range"""
    if not yyyymm or len(yyyymm) != 6 or not yyyymm.isdigit():
        raise InvalidPeriod(f"Enter a valid period in YYYYMM format (got {yyyymm!r})")
    year = int(yyyymm[:4])
    month = int(yyyymm[4:])
    if month < 1 or month > 12 or year < 2000 or year > 2100:
        raise InvalidPeriod(f"Invalid period values: {yyyymm}")
    return year, month


def shift_month(year, month, delta):
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def short_label(year, month):
    return f"{MONTH_NAMES[month - 1][:3].upper()} {year}"


def long_label(year, month):
    return f"{MONTH_NAMES[month - 1]} {year}"


def get_sequence(yyyymm):
    """Labels for the target period and the two periods before it"""
    year, month = parse_period(yyyymm)
    return PeriodSequence(
        target_label=short_label(year, month),
        p1_label=short_label(*shift_month(year, month, -1)),
        p2_label=short_label(*shift_month(year, month, -2)),
    )


def previous_month_labels(yyyymm):
    """Every format the import dialog may use for the month before the target

    202601 -> ["December 2025", "DEC 2025", "2025-12"]
    """
    year, month = parse_period(yyyymm)
    prev_year, prev_month = shift_month(year, month, -1)
    return [
        long_label(prev_year, prev_month),
        short_label(prev_year, prev_month),
        f"{prev_year}-{prev_month:02d}",
    ]


def format_period(yyyymm):
    """YYYYMM -> "January 2026"; anything unparseable is returned unchanged"""
    try:
        return long_label(*parse_period(yyyymm))
    except InvalidPeriod:
        return yyyymm
