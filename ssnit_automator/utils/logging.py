"""Logging utilities"""

import json
from datetime import datetime
from zoneinfo import ZoneInfo

import ssnit_automator.config as config


def local_timestamp(epoch_ms=None):
    """ISO timestamp in the portal's timezone (now, or from epoch ms)"""
    tz = ZoneInfo(config.TIMEZONE)
    if epoch_ms is None:
        return datetime.now(tz).isoformat()
    return datetime.fromtimestamp(epoch_ms / 1000, tz).isoformat()


def log_result(er, phase, status, reason="", **extra):
    """Log one item outcome to the JSONL run log"""
    result = {
        "timestamp": local_timestamp(),
        "er": er,
        "phase": phase,
        "status": status,
    }
    if reason:
        result["reason"] = reason
    result.update(extra)

    with open(config.LOG_FILE, "a", encoding="utf-8") as f:
        f.write(json.dumps(result, ensure_ascii=False) + "\n")

    print(f"[{phase}:{status}] {er}")
    if reason:
        print(f"  Reason: {reason[:120]}")
