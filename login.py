#!/usr/bin/env python3
"""
SSNIT Portal Login Helper
Opens the automator's browser profile so you can log in once; the persistent
profile keeps the session for later runs. Press Ctrl+C when done.
"""

import sys

import ssnit_automator.config as config
from ssnit_automator.browser.session import close_browser, launch_browser


def main():
    print("Opening browser for SSNIT portal login...")
    print("=" * 50)
    print("1. Log in with your portal credentials")
    print(f"2. Open {config.PAGE_URLS['report']} and check the search form loads")
    print("3. Press Ctrl+C here to keep the session")
    print("=" * 50)

    p, context, page = launch_browser()
    try:
        page.goto(config.PORTAL_BASE_URL)
        print("\n✓ Browser is open, waiting for Ctrl+C...")
        page.wait_for_timeout(1000000000)
    except KeyboardInterrupt:
        print("\n\n✓ Session saved! Start a run with:")
        print("  python -m ssnit_automator.main scrape --period YYYYMM --ers-file ers.txt\n")
    except Exception as e:
        print(f"\n✗ Error: {e}\n")
        return 1
    finally:
        close_browser(p, context)
    return 0


if __name__ == "__main__":
    sys.exit(main())
