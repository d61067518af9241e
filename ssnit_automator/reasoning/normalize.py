"""Period label normalization for the import dialog"""

import re

from ssnit_automator.reasoning.periods import MONTH_NAMES

_MONTH_ALIASES = {name.lower(): name.lower() for name in MONTH_NAMES}
_MONTH_ALIASES.update({name[:3].lower(): name.lower() for name in MONTH_NAMES})
_MONTH_ALIASES["sept"] = "september"

_ISO_MONTH = re.compile(r"^(\d{4})-(\d{2})(?:-\d{2})?$")
_MONTH_WORD = re.compile(r"\b(" + "|".join(sorted(_MONTH_ALIASES, key=len, reverse=True)) + r")\b\.?")


def normalize_month_text(text):
    """Normalize a period label so differently formatted months compare equal

    "December 2025" -> "december 2025"
    "DEC 2025"      -> "december 2025"
    "2025-12"       -> "december 2025"
    "2025-12-01"    -> "december 2025"
    """
    if not text:
        return ""

    normalized = " ".join(text.lower().split())

    iso = _ISO_MONTH.match(normalized)
    if iso:
        month = int(iso.group(2))
        if 1 <= month <= 12:
            return f"{MONTH_NAMES[month - 1].lower()} {iso.group(1)}"
        return normalized

    return _MONTH_WORD.sub(lambda m: _MONTH_ALIASES[m.group(1)], normalized)


def month_matches(cell_text, candidates):
    """True if the cell names the same month as any candidate label"""
    cell = normalize_month_text(cell_text)
    if not cell:
        return False
    return any(cell == normalize_month_text(label) for label in candidates)
