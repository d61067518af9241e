"""
Debug-only unknown dialog collector

Read-only observability into dialogs the classifier could not recognize.
It does NOT change behavior and does NOT dismiss anything.

Usage:
    1. Call record_unknown_dialog() when a loop meets an unknown dialog
    2. Call flush_unknown_dialogs() when an intervention is raised

Output:
    debug_dialogs.jsonl - one JSON object per unknown dialog
"""

import json
from typing import Dict, List, Optional

import ssnit_automator.config as config
from ssnit_automator.utils.logging import local_timestamp

_dialog_buffer: List[Dict] = []


def record_unknown_dialog(
    *,
    er: Optional[str],
    phase: str,
    page: Optional[str],
    title: str,
    header: str,
    message: str,
    text: str,
):
    """
    Record an unknown dialog to the in-memory buffer.

    Args:
        er: Employer number being processed, if any
        phase: Active phase when the dialog appeared
        page: Detected page kind or None
        title/header/message/text: What the dialog showed
    """
    _dialog_buffer.append(
        {
            "timestamp": local_timestamp(),
            "er": er,
            "phase": phase,
            "page": page,
            "title": title,
            "header": header,
            "message": message,
            "text": (text or "")[:500],
        }
    )


def flush_unknown_dialogs():
    """
    Flush all buffered dialogs to config.DEBUG_DIALOG_FILE.

    Append-only. One JSON object per line.
    """
    if not _dialog_buffer:
        return

    with open(config.DEBUG_DIALOG_FILE, "a", encoding="utf-8") as f:
        for record in _dialog_buffer:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

    _dialog_buffer.clear()
