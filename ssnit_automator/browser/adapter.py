"""Page adapter: the only code that knows the portal's markup

The phase loops talk to a PageAdapter. PlaywrightPageAdapter implements it on
top of a live Playwright page using the perception and interaction helpers.
Handles returned by the adapter are opaque to the loops and only ever passed
back to the adapter.
"""

import ssnit_automator.config as config
from ssnit_automator.interaction.buttons import click_control, find_button, first_visible
from ssnit_automator.interaction.fields import (
    check_custom_radio,
    select_custom_option,
    set_reactive_input,
)
from ssnit_automator.perception.dialogs import (
    click_dialog_button,
    collect_dialog_signals,
    find_import_dialog,
    read_import_rows,
)
from ssnit_automator.perception.pages import (
    PAGE_DESCRIPTORS,
    PAGE_URLS,
    PageKind,
    detect_page,
    is_login_page,
)
from ssnit_automator.perception.tables import (
    find_row_by_exact_column_match,
    read_employee_rows,
    read_report_rows,
    read_unprocessed_rows,
)
from ssnit_automator.perception.text_fields import find_input_by_label, input_value
from ssnit_automator.reasoning.classify import DialogKind
from ssnit_automator.utils.timing import human_delay

# Named controls the loops may ask for
REPORT_ER_INPUT = "report.er_input"
REPORT_SEARCH = "report.search"
EMPLOYER_ER_INPUT = "employer.er_input"
EMPLOYER_CONTINUE = "employer.continue"
CAPTURE_PERIOD_INPUTS = "capture.period_inputs"
CAPTURE_MEDIA_RADIO = "capture.media_radio"
CAPTURE_MODE_RADIO = "capture.mode_radio"
CAPTURE_LF_INPUT = "capture.lf_input"
CAPTURE_AMOUNT_INPUT = "capture.amount_input"
CAPTURE_SUBMIT = "capture.submit"
LIST_SEARCH_INPUT = "unprocessed.search_input"
LIST_SEARCH = "unprocessed.search"
DATA_ENTRY_IMPORT = "data_entry.import"
DATA_ENTRY_SUBMIT = "data_entry.submit"
DATA_ENTRY_AUTO_POST = "data_entry.auto_post"
EDIT_AMOUNT_INPUT = "edit.amount_input"
EDIT_UPDATE = "edit.update"

# Named tables
REPORT_TABLE = "report"
UNPROCESSED_TABLE = "unprocessed"
EMPLOYEE_TABLE = "employees"

# Row links on the unprocessed list
DATA_ENTRY_LINK = "data_entry"
EDIT_LINK = "edit"

_DIALOG_BUTTONS = {
    DialogKind.CONSENT: [".btn-success", 'button:has-text("Yes")'],
    DialogKind.RECEIPT: ["button.close", ".btn-grey", ".custom-alert-footer button"],
    DialogKind.SUCCESS: [".btn-success", ".custom-alert-footer button"],
    DialogKind.KNOWN_ERROR: [".btn-error", ".custom-alert-footer button"],
}


class PageAdapter:
    """Capability set the engine relies on.

    detect_current_page() -> PageKind | None
    is_login_page() -> bool
    navigate(kind)
    find_control(name, **params) -> handle | None      (visible controls only)
    find_controls(name) -> [handle]
    is_enabled(handle) / is_checked(handle) / get_value(handle)
    click(handle) -> bool
    set_field_value(handle, value) -> bool              (focus -> set -> blur, with events)
    check_radio(handle) -> bool
    select_option(label_hint, text) -> bool
    press_enter(handle)
    read_table(name) -> [dict]
    find_row_by_exact_column_match(value, table, column=None) -> handle | None
    open_row_link(row, link) -> bool
    read_header() -> str
    detect_response_dialog() -> DialogSignals
    acknowledge_dialog(dialog) -> bool
    find_import_dialog() -> handle | None
    read_import_rows(dialog) -> [{"period": str, "handle": handle}]
    select_import_row(row) -> bool
    confirm_import(dialog) -> bool                      (False while Import is disabled)
    """

    def detect_current_page(self):
        raise NotImplementedError

    def is_login_page(self):
        raise NotImplementedError

    def navigate(self, kind):
        raise NotImplementedError

    def find_control(self, name, **params):
        raise NotImplementedError

    def find_controls(self, name):
        raise NotImplementedError

    def is_enabled(self, handle):
        raise NotImplementedError

    def is_checked(self, handle):
        raise NotImplementedError

    def get_value(self, handle):
        raise NotImplementedError

    def click(self, handle):
        raise NotImplementedError

    def set_field_value(self, handle, value):
        raise NotImplementedError

    def check_radio(self, handle):
        raise NotImplementedError

    def select_option(self, label_hint, text):
        raise NotImplementedError

    def press_enter(self, handle):
        raise NotImplementedError

    def read_table(self, name):
        raise NotImplementedError

    def find_row_by_exact_column_match(self, value, table, column=None):
        raise NotImplementedError

    def open_row_link(self, row, link):
        raise NotImplementedError

    def read_header(self):
        raise NotImplementedError

    def detect_response_dialog(self):
        raise NotImplementedError

    def acknowledge_dialog(self, dialog):
        raise NotImplementedError

    def find_import_dialog(self):
        raise NotImplementedError

    def read_import_rows(self, dialog):
        raise NotImplementedError

    def select_import_row(self, row):
        raise NotImplementedError

    def confirm_import(self, dialog):
        raise NotImplementedError


class PlaywrightPageAdapter(PageAdapter):
    def __init__(self, page):
        self.page = page

    # ---------- pages ----------

    def detect_current_page(self):
        return detect_page(self.page)

    def is_login_page(self):
        return is_login_page(self.page)

    def navigate(self, kind):
        url = PAGE_URLS.get(kind)
        if not url:
            print(f"  ⚠️ No direct URL for {kind}")
            return
        print(f"  Navigating to {url}...")
        self.page.goto(url, wait_until="domcontentloaded", timeout=30000)

    # ---------- controls ----------

    def find_control(self, name, **params):
        page = self.page
        if name == REPORT_ER_INPUT:
            return first_visible(page, PAGE_DESCRIPTORS[PageKind.REPORT]["er_input"])
        if name == REPORT_SEARCH:
            return find_button(page, PAGE_DESCRIPTORS[PageKind.REPORT]["search_button"])
        if name == EMPLOYER_ER_INPUT:
            return first_visible(page, PAGE_DESCRIPTORS[PageKind.EMPLOYER]["er_input"])
        if name == EMPLOYER_CONTINUE:
            return first_visible(page, PAGE_DESCRIPTORS[PageKind.EMPLOYER]["continue_button"])

        capture = PAGE_DESCRIPTORS[PageKind.CAPTURE_FORM]
        if name == CAPTURE_MEDIA_RADIO:
            return self._first(capture["media_radio"].format(value=params["value"]))
        if name == CAPTURE_MODE_RADIO:
            return self._first(capture["mode_radio"].format(value=params["value"]))
        if name == CAPTURE_LF_INPUT:
            return self._first(capture["lf_input"])
        if name == CAPTURE_AMOUNT_INPUT:
            return find_input_by_label(page, capture["amount_label"])
        if name == CAPTURE_SUBMIT:
            return self._first(capture["submit_button"])

        unprocessed = PAGE_DESCRIPTORS[PageKind.UNPROCESSED]
        if name == LIST_SEARCH_INPUT:
            return first_visible(page, unprocessed["search_input"])
        if name == LIST_SEARCH:
            for matcher in unprocessed["search_buttons"]:
                button = find_button(page, matcher)
                if button is not None:
                    return button
            return first_visible(page, unprocessed["search_fallback"])

        data_entry = PAGE_DESCRIPTORS[PageKind.DATA_ENTRY]
        if name == DATA_ENTRY_IMPORT:
            return find_button(page, data_entry["import_button"])
        if name == DATA_ENTRY_SUBMIT:
            # Disabled buttons are returned too; the loop checks is_enabled
            return find_button(page, data_entry["submit_button"], enabled_only=False)
        if name == DATA_ENTRY_AUTO_POST:
            return self._first(data_entry["auto_post_checkbox"])

        edit = PAGE_DESCRIPTORS[PageKind.EDIT_PRIVATE]
        if name == EDIT_AMOUNT_INPUT:
            return find_input_by_label(page, edit["amount_label"])
        if name == EDIT_UPDATE:
            return find_button(page, edit["update_button"])

        raise KeyError(f"Unknown control: {name}")

    def find_controls(self, name):
        if name == CAPTURE_PERIOD_INPUTS:
            inputs = self.page.locator(PAGE_DESCRIPTORS[PageKind.CAPTURE_FORM]["period_inputs"])
            return [inputs.nth(i) for i in range(inputs.count())]
        control = self.find_control(name)
        return [control] if control is not None else []

    def _first(self, selector):
        matches = self.page.locator(selector)
        return matches.first if matches.count() > 0 else None

    def is_enabled(self, handle):
        try:
            return handle.is_enabled()
        except Exception:
            return False

    def is_checked(self, handle):
        try:
            return handle.is_checked()
        except Exception:
            return False

    def get_value(self, handle):
        return input_value(handle)

    def click(self, handle):
        return click_control(self.page, handle)

    def set_field_value(self, handle, value):
        return set_reactive_input(handle, value)

    def check_radio(self, handle):
        return check_custom_radio(handle)

    def select_option(self, label_hint, text):
        return select_custom_option(self.page, label_hint, text)

    def press_enter(self, handle):
        try:
            handle.press("Enter")
        except Exception as e:
            print(f"  ⚠️ Error pressing Enter: {e}")

    # ---------- tables ----------

    def read_table(self, name):
        if name == REPORT_TABLE:
            return read_report_rows(self.page)
        if name == UNPROCESSED_TABLE:
            return read_unprocessed_rows(self.page)
        if name == EMPLOYEE_TABLE:
            return read_employee_rows(self.page)
        raise KeyError(f"Unknown table: {name}")

    def find_row_by_exact_column_match(self, value, table, column=None):
        if table == UNPROCESSED_TABLE:
            selector = PAGE_DESCRIPTORS[PageKind.UNPROCESSED]["table"]
        elif table == REPORT_TABLE:
            selector = PAGE_DESCRIPTORS[PageKind.REPORT]["table"]
        else:
            raise KeyError(f"Unknown table: {table}")
        return find_row_by_exact_column_match(self.page, value, selector, column)

    def open_row_link(self, row, link):
        selector = PAGE_DESCRIPTORS[PageKind.UNPROCESSED]["links"][link]
        try:
            links = row.locator(selector)
            if links.count() == 0:
                print(f"  ⚠️ '{link}' link not found in row")
                return False
            links.first.click()
            human_delay(*config.delay_range("click_settle"))
            return True
        except Exception as e:
            print(f"  ⚠️ Error opening '{link}' link: {e}")
            return False

    def read_header(self):
        kind = self.detect_current_page()
        selector = PAGE_DESCRIPTORS.get(kind, {}).get("header")
        if not selector:
            return ""
        try:
            headers = self.page.locator(selector)
            if headers.count() == 0:
                return ""
            return (headers.first.inner_text() or "").strip()
        except Exception:
            return ""

    # ---------- dialogs ----------

    def detect_response_dialog(self):
        return collect_dialog_signals(self.page)

    def acknowledge_dialog(self, dialog):
        selectors = _DIALOG_BUTTONS.get(dialog.kind)
        if not selectors:
            return False
        clicked = click_dialog_button(dialog.handle, selectors, f"{dialog.kind.value} dialog button")
        if clicked:
            human_delay(*config.delay_range("click_settle"))
        return clicked

    def find_import_dialog(self):
        return find_import_dialog(self.page)

    def read_import_rows(self, dialog):
        return read_import_rows(dialog)

    def select_import_row(self, row):
        radio = row.locator('input[type="radio"][name="import_cr"]')
        if radio.count() == 0:
            try:
                row.click()
                return True
            except Exception as e:
                print(f"  ⚠️ Error selecting import row: {e}")
                return False
        if check_custom_radio(radio.first):
            return True
        # Fallback: clicking the row itself
        try:
            row.click()
            human_delay(*config.delay_range("field_gap"))
            return radio.first.is_checked()
        except Exception as e:
            print(f"  ⚠️ Error selecting import row: {e}")
            return False

    def confirm_import(self, dialog):
        button = find_button(self.page, {"text": "import"}, scope=dialog)
        if button is None:
            return False
        return click_control(self.page, button, "Import")
