"""Browser session management"""

from playwright.sync_api import sync_playwright

import ssnit_automator.config as config


def launch_browser(headless=False):
    """
    Launch persistent browser context and return (playwright, context, page).
    Reuses the portal login session across runs.
    """
    print("Launching browser...")

    p = sync_playwright().start()

    context = p.chromium.launch_persistent_context(
        user_data_dir=config.BROWSER_DATA_DIR,
        headless=headless,
        args=[
            "--disable-blink-features=AutomationControlled",
        ],
        user_agent=config.USER_AGENT,
    )

    page = context.pages[0] if context.pages else context.new_page()

    return p, context, page


def close_browser(p, context):
    try:
        context.close()
    finally:
        p.stop()
