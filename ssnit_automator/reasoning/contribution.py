"""Contribution data rules: record flags, capture eligibility, minimum CTB"""

import re

import ssnit_automator.config as config
from ssnit_automator.state.model import SubRecordIssue

_NON_NUMERIC = re.compile(r"[^\d.]")


def parse_count(text):
    """Report-table integer cell -> int (0 when unreadable)"""
    try:
        return int(str(text).strip().replace(",", ""))
    except (TypeError, ValueError):
        return 0


def parse_amount(text):
    """Currency cell such as "GHS 1,234.50" -> 1234.5 (0.0 when unreadable)"""
    try:
        return float(_NON_NUMERIC.sub("", str(text)))
    except ValueError:
        return 0.0


def compute_flags(record):
    """Set the data-quality flags that depend only on the scraped p1 rows"""
    record.continuity_error = len(record.p1) == 0
    normal = record.normal_p1()
    record.zero_value_error = bool(normal and (normal.count == 0 or normal.amount == 0))
    return record


def is_capture_eligible(record):
    """A record may be captured only with clean flags and positive values"""
    if record.already_captured:
        return False
    if record.continuity_error or record.zero_value_error or record.self_capture:
        return False
    return record.unit_count() > 0 and record.amount() > 0


def find_ctb_issues(employees, threshold=None):
    """Employees whose contribution is positive but below the threshold

    employees: iterable of dicts with ss_number, name and value
    """
    if threshold is None:
        threshold = config.MIN_CTB
    issues = []
    for employee in employees:
        value = employee["value"]
        # Zero means an empty row, not an underpaid employee
        if 0 < value < threshold:
            issues.append(
                SubRecordIssue(
                    ss_number=employee.get("ss_number", ""),
                    name=employee.get("name", ""),
                    current_value=value,
                    required_adjustment=round(threshold - value, 2),
                )
            )
    return issues


def adjusted_total(values, threshold=None):
    """(current total, total after raising every value to the threshold)"""
    if threshold is None:
        threshold = config.MIN_CTB
    current = 0.0
    adjusted = 0.0
    for value in values:
        if value > 0:
            current += value
            adjusted += max(value, threshold)
    return round(current, 2), round(adjusted, 2)
