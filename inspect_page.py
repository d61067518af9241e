#!/usr/bin/env python3
"""Quick script to inspect what the automator sees on a portal page."""

import sys

from ssnit_automator.browser.adapter import PlaywrightPageAdapter
from ssnit_automator.browser.session import close_browser, launch_browser
from ssnit_automator.perception.pages import PAGE_URLS, PageKind
from ssnit_automator.reasoning.classify import classify_response


def main():
    if len(sys.argv) < 2:
        kinds = ", ".join(kind.value for kind in PAGE_URLS)
        print(f"Usage: python inspect_page.py <url or page kind: {kinds}>")
        sys.exit(1)

    target = sys.argv[1]
    try:
        url = PAGE_URLS[PageKind(target)]
    except (ValueError, KeyError):
        url = target

    p, context, page = launch_browser()
    adapter = PlaywrightPageAdapter(page)
    try:
        print(f"Navigating to {url}...")
        page.goto(url, wait_until="domcontentloaded", timeout=60000)

        print("\nWaiting 5 seconds for page to load...")
        page.wait_for_timeout(5000)

        print("\n" + "=" * 80)
        print(f"Page kind:   {adapter.detect_current_page()}")
        print(f"Login page:  {adapter.is_login_page()}")
        print(f"Header:      {adapter.read_header()!r}")

        signals = adapter.detect_response_dialog()
        dialog = classify_response(signals)
        print(f"Dialog:      {dialog.kind.value} {dialog.message!r}")
        if signals.visible:
            print(f"  title={signals.title!r} header={signals.header!r}")
            print(f"  icons: error={signals.has_error_icon} success={signals.has_success_icon} "
                  f"warning={signals.has_warning_icon}")
        print(f"Import dialog open: {adapter.find_import_dialog() is not None}")

        print("\n" + "=" * 80)
        print("BUTTONS ON PAGE")
        print("=" * 80)
        buttons = page.locator("button").all()
        print(f"\nFound {len(buttons)} buttons total\n")
        for i, btn in enumerate(buttons[:30]):
            try:
                text = (btn.text_content() or "").strip()
                state = "disabled" if btn.is_disabled() else "enabled"
                print(f"  Button {i+1}: '{text[:60]}' ({state}) id={btn.get_attribute('id')!r}")
            except Exception as e:
                print(f"  Button {i+1}: Error - {e}")

        for name in ("report", "unprocessed", "employees"):
            try:
                rows = adapter.read_table(name)
            except Exception as e:
                print(f"\n{name} table: Error - {e}")
                continue
            print(f"\n{name} table: {len(rows)} row(s)")
            for row in rows[:5]:
                print(f"  {row}")

        print("\n" + "=" * 80)
        print("Press Ctrl+C to exit...")
        print("=" * 80)
        try:
            page.wait_for_timeout(300000)
        except KeyboardInterrupt:
            print("\nExiting...")
    finally:
        close_browser(p, context)


if __name__ == "__main__":
    main()
