"""Timing utilities"""

import time
import random


def human_delay(min_ms=300, max_ms=800):
    """Random human-like delay"""
    delay = random.uniform(min_ms, max_ms) / 1000
    time.sleep(delay)


def now_ms():
    """Wall clock in epoch milliseconds (the unit every persisted timestamp uses)"""
    return int(time.time() * 1000)


def format_elapsed_time(seconds):
    """Format elapsed time in human-readable format"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        mins = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{mins}m {secs}s"
    else:
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        return f"{hours}h {mins}m"
