"""Portal page descriptors and current-page detection"""

from enum import Enum

import ssnit_automator.config as config


class PageKind(str, Enum):
    REPORT = "report"
    EMPLOYER = "employer"
    CAPTURE_FORM = "capture"
    UNPROCESSED = "unprocessed"
    DATA_ENTRY = "data_entry"
    EDIT_PRIVATE = "edit_private"


# Selectors and column positions for each portal page.
# Column indexes are 0-based over the row's <td> cells.
PAGE_DESCRIPTORS = {
    PageKind.REPORT: {
        "url_pattern": "/view_crs/report",
        "table": "#mytable",
        "columns": {"er": 2, "name": 3, "type": 5, "count": 6, "period": 8, "amount": 10},
        "min_cells": 11,
        "self_capture_icon": "i.fa-globe",
        "er_input": 'input[placeholder="ER Number"], input[data-v-6d729868]',
        "search_button": {"text": "search"},
    },
    PageKind.EMPLOYER: {
        "url_pattern": "/receive/employer",
        "er_input": 'input[maxlength="9"].form-control:not(#changeER)',
        "continue_button": "#addToTable",
    },
    PageKind.CAPTURE_FORM: {
        "url_pattern": "/receive/capture",
        "period_inputs": 'input[placeholder*="YYYYMM"]',
        "media_radio": 'input[name="sub_media"][value="{value}"]',
        "mode_radio": 'input[name="sub_mod"][value="{value}"]',
        "lf_input": "#no_employees",
        "amount_label": "total contribution",
        "submit_button": "#addToTable2",
        "header": "h4.text-info",
    },
    PageKind.UNPROCESSED: {
        "url_pattern": "/view_crs/unprocessed",
        "table": "table.table",
        "search_input": 'input[placeholder*="ER"], input[placeholder*="Search"], input.form-control[type="text"]',
        "search_buttons": [{"text": "search"}, {"text": "filter"}],
        "search_fallback": 'button[type="submit"]',
        "links": {
            "data_entry": 'a[href*="data-entry"], a.text-success',
            "edit": 'a[href*="edit-private"]',
        },
    },
    PageKind.DATA_ENTRY: {
        "url_pattern": "/data-entry",
        "employee_table": "table.table-striped",
        "employee_header": "Contribution",
        "employee_columns": {"ss_number": 1, "surname": 3, "first_name": 4, "other_names": 5, "value": 7},
        "import_button": {"text": "import"},
        "submit_button": {"text": "submit", "contains": "validation"},
        "auto_post_checkbox": 'input[type="checkbox"]#checkbox2, input[type="checkbox"][name="checkboxInline"]',
    },
    PageKind.EDIT_PRIVATE: {
        "url_pattern": "/receive/edit-private",
        "amount_label": "total contribution",
        "update_button": {"text": "update"},
        "header": "h3.text-info, h4.text-info",
    },
}

# Where each page kind lives; the data-entry and edit pages are only
# reachable from a row link on the unprocessed list
PAGE_URLS = {
    PageKind.REPORT: config.PAGE_URLS["report"],
    PageKind.EMPLOYER: config.PAGE_URLS["employer"],
    PageKind.CAPTURE_FORM: config.PAGE_URLS["capture"],
    PageKind.UNPROCESSED: config.PAGE_URLS["unprocessed"],
}


def page_kind_for_url(url):
    """Match a URL against the descriptors (capture before employer)"""
    if not url:
        return None
    # "/receive/capture" must win over "/receive/employer" prefixes
    for kind in (PageKind.CAPTURE_FORM, PageKind.EDIT_PRIVATE, PageKind.EMPLOYER,
                 PageKind.REPORT, PageKind.UNPROCESSED, PageKind.DATA_ENTRY):
        if PAGE_DESCRIPTORS[kind]["url_pattern"] in url:
            return kind
    return None


def detect_page(page):
    """Current PageKind for a Playwright page, or None"""
    try:
        return page_kind_for_url(page.url)
    except Exception as e:
        print(f"  ⚠️ Page detection error: {e}")
        return None


def is_login_page(page):
    """Login interstitial: the login panel, or email + password + LOG IN button"""
    try:
        if page.locator("div.login").count() > 0:
            return True
        has_email = page.locator('#email[type="email"]').count() > 0
        has_password = page.locator('#password[type="password"]').count() > 0
        if not (has_email and has_password):
            return False
        buttons = page.locator("button")
        for i in range(buttons.count()):
            if buttons.nth(i).inner_text().strip().upper() == "LOG IN":
                return True
        return False
    except Exception as e:
        print(f"  ⚠️ Login detection error: {e}")
        return False
