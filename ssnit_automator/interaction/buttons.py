"""Button interactions"""

import ssnit_automator.config as config
from ssnit_automator.utils.timing import human_delay


def find_button(page, matcher, scope=None, enabled_only=True):
    """First button whose text contains matcher["text"] (and matcher["contains"])

    Case-insensitive. Disabled buttons are skipped unless enabled_only is False.
    Returns a Playwright locator or None.
    """
    if not matcher:
        return None
    root = scope if scope is not None else page
    text = (matcher.get("text") or "").lower()
    contains = (matcher.get("contains") or "").lower()
    try:
        buttons = root.locator("button")
        for i in range(buttons.count()):
            btn = buttons.nth(i)
            label = (btn.text_content() or "").lower()
            if text and text not in label:
                continue
            if contains and contains not in label:
                continue
            if enabled_only and btn.is_disabled():
                continue
            return btn
    except Exception as e:
        print(f"  ⚠️ Error looking for '{text}' button: {e}")
    return None


def first_visible(page, selector, scope=None):
    """First visible element matching selector, or None"""
    root = scope if scope is not None else page
    try:
        matches = root.locator(selector)
        for i in range(matches.count()):
            element = matches.nth(i)
            if element.is_visible():
                return element
    except Exception as e:
        print(f"  ⚠️ Error looking for '{selector}': {e}")
    return None


def click_control(page, control, label="control"):
    """Click a located control and give the portal time to react"""
    try:
        if control.is_disabled():
            print(f"  ⚠️ '{label}' found but DISABLED")
            return False
        control.click()
        human_delay(*config.delay_range("click_settle"))
        return True
    except Exception as e:
        print(f"  ⚠️ Error clicking '{label}': {e}")
        return False
