"""Response dialog classification

The portal answers every submit with a custom alert whose meaning has to be
read from icons, buttons and text. The adapter gathers the raw signals; this
module reduces them to a closed set of outcomes.

Classification order matters (first match wins):
Consent → Receipt → Error icon → Success icon → Button fallback → Text
fallback → Unknown → None

An unknown dialog always halts the active loop for a human.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional


class DialogKind(str, Enum):
    CONSENT = "consent"
    RECEIPT = "receipt"
    SUCCESS = "success"
    KNOWN_ERROR = "error"
    UNKNOWN = "unknown"
    NONE = "none"


@dataclass
class DialogSignals:
    """Everything visible about the topmost alert, with no interpretation

    handle is the adapter's reference to the alert container; the core only
    passes it back to the adapter.
    """

    visible: bool = False
    has_warning_icon: bool = False
    title: str = ""
    header: str = ""
    has_error_icon: bool = False
    has_success_icon: bool = False
    has_error_button: bool = False
    has_success_button: bool = False
    text: str = ""
    message: str = ""
    handle: Any = None


@dataclass
class ResponseDialog:
    kind: DialogKind
    message: str = ""
    handle: Any = None


NO_DIALOG = ResponseDialog(DialogKind.NONE)

RECEIPT_HEADERS = ["SSNIT PENSION SYSTEM", "ACKNOWLEDGEMENT"]
CONSENT_TITLE_WORDS = ["submit", "validation"]
SUCCESS_PHRASES = ["data successfully saved", "contribution report received"]
ERROR_PHRASES = ["errors occured", "errors occurred", "already exists"]
DUPLICATE_PHRASES = ["already exists", "duplicate"]


def _contains_any(text, phrases: List[str]):
    return any(phrase in text for phrase in phrases)


def classify_response(signals: Optional[DialogSignals]) -> ResponseDialog:
    """Reduce raw dialog signals to one DialogKind"""
    if signals is None or not signals.visible:
        return NO_DIALOG

    handle = signals.handle
    title = (signals.title or "").lower()

    # RULE 1: Consent prompt - warning icon and a submit/validation title
    if signals.has_warning_icon and _contains_any(title, CONSENT_TITLE_WORDS):
        return ResponseDialog(DialogKind.CONSENT, "Submit for Validation confirmation", handle)

    # RULE 2: Receipt (acknowledgement letter) - distinguishing header
    header = (signals.header or "").upper()
    if _contains_any(header, RECEIPT_HEADERS):
        return ResponseDialog(DialogKind.RECEIPT, "Acknowledgement Letter", handle)

    # RULE 3: Structural markers - X icon before green check
    if signals.has_error_icon:
        return ResponseDialog(DialogKind.KNOWN_ERROR, signals.message or "", handle)
    if signals.has_success_icon:
        return ResponseDialog(DialogKind.SUCCESS, "Success", handle)

    # RULE 4: Control-based fallback - error/success styled buttons
    if signals.has_error_button:
        return ResponseDialog(DialogKind.KNOWN_ERROR, signals.message or "", handle)
    if signals.has_success_button:
        return ResponseDialog(DialogKind.SUCCESS, "Data Successfully Saved", handle)

    # RULE 5: Text-based fallback
    text = (signals.text or "").lower()
    if _contains_any(text, SUCCESS_PHRASES):
        return ResponseDialog(DialogKind.SUCCESS, "Data Successfully Saved", handle)
    if _contains_any(text, ERROR_PHRASES):
        return ResponseDialog(DialogKind.KNOWN_ERROR, signals.message or "", handle)

    # RULE 6: Anything else visible is unknown
    message = signals.message or signals.title or "Unknown modal"
    return ResponseDialog(DialogKind.UNKNOWN, message, handle)


def is_duplicate_message(message):
    return _contains_any((message or "").lower(), DUPLICATE_PHRASES)
