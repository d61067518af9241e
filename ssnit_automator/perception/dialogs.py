"""Custom alert detection

Collects raw signals from the portal's .custom-alert / .custom-alert-container
elements. Interpretation happens in reasoning.classify.
"""

from ssnit_automator.reasoning.classify import DialogSignals

ALERT_SELECTOR = ".custom-alert-container, .custom-alert"
IMPORT_DIALOG_TITLE = "Import Contribution Transactions"


def _text(locator):
    try:
        if locator.count() == 0:
            return ""
        return (locator.first.inner_text() or "").strip()
    except Exception:
        return ""


def _visible(locator):
    try:
        for i in range(locator.count()):
            if locator.nth(i).is_visible():
                return locator.nth(i)
    except Exception:
        pass
    return None


def _response_container(page):
    """First visible alert that is not the import dialog"""
    containers = page.locator(ALERT_SELECTOR)
    for i in range(containers.count()):
        container = containers.nth(i)
        if not container.is_visible():
            continue
        if IMPORT_DIALOG_TITLE in _text(container.locator(".custom-alert-title")):
            continue
        return container
    return None


def collect_dialog_signals(page):
    """Signals from the first visible alert, or an empty DialogSignals"""
    signals = DialogSignals()
    try:
        # Consent prompt: a bare .custom-alert with a warning icon
        consent = page.locator(".custom-alert")
        for i in range(consent.count()):
            alert = consent.nth(i)
            if not alert.is_visible():
                continue
            if alert.locator(".icon.warning").count() > 0:
                signals.visible = True
                signals.has_warning_icon = True
                signals.title = _text(alert.locator(".custom-alert-title"))
                signals.message = _text(alert.locator(".custom-alert-message"))
                signals.handle = alert
                if signals.title:
                    return signals

        header = _visible(page.locator(".custom-alert-container-header"))
        if header is not None:
            signals.visible = True
            signals.header = _text(header)
            signals.handle = header.locator("xpath=ancestor::*[contains(@class, 'custom-alert-container')][1]")

        container = _response_container(page)
        if container is None:
            return signals

        signals.visible = True
        if signals.handle is None:
            signals.handle = container
        signals.has_error_icon = _visible(container.locator(".icon.error")) is not None
        signals.has_success_icon = _visible(container.locator(".icon.success")) is not None
        signals.has_error_button = _visible(container.locator(".btn-error")) is not None
        signals.has_success_button = _visible(container.locator(".btn-success")) is not None
        signals.title = signals.title or _text(container.locator(".custom-alert-title"))
        signals.message = signals.message or _text(container.locator(".custom-alert-message"))
        signals.text = _text(container)
    except Exception as e:
        print(f"  ⚠️ Dialog detection error: {e}")
    return signals


def click_dialog_button(dialog, selectors, label):
    """Click the first matching button inside a dialog container"""
    if dialog is None:
        return False
    try:
        for selector in selectors:
            buttons = dialog.locator(selector)
            if buttons.count() > 0:
                print(f"  Clicking {label}...")
                buttons.first.click()
                return True
    except Exception as e:
        print(f"  ⚠️ Error clicking {label}: {e}")
    return False


def find_import_dialog(page):
    """The open "Import Contribution Transactions" dialog, or None"""
    try:
        containers = page.locator(".custom-alert-container")
        for i in range(containers.count()):
            container = containers.nth(i)
            if not container.is_visible():
                continue
            if IMPORT_DIALOG_TITLE in _text(container.locator(".custom-alert-title h3")):
                return container
    except Exception as e:
        print(f"  ⚠️ Import dialog detection error: {e}")
    return None


def read_import_rows(dialog):
    """[{"period": text, "handle": row}] for each row of the import table"""
    rows = []
    try:
        table_rows = dialog.locator("table tbody tr")
        for i in range(table_rows.count()):
            row = table_rows.nth(i)
            period_cell = row.locator("td:nth-child(2)")
            rows.append({"period": _text(period_cell), "handle": row})
    except Exception as e:
        print(f"  ⚠️ Error reading import table: {e}")
    return rows
