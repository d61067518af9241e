"""Finding a CR on the unprocessed (review) list

Shared by the validation and wage-edit loops: look for the exact ER in the
visible rows, open it through a row link, or run the portal search once per
item before the caller decides the CR is missing.
"""

from enum import Enum

from ssnit_automator.browser.adapter import LIST_SEARCH, LIST_SEARCH_INPUT, UNPROCESSED_TABLE


class ListOutcome(str, Enum):
    OPENED = "opened"
    SEARCHED = "searched"
    MISSING = "missing"


def open_from_review_list(ctx, item, link):
    """One attempt to open item's CR. Sets item.search_attempted on a search."""
    adapter = ctx.adapter
    row = adapter.find_row_by_exact_column_match(item.er, UNPROCESSED_TABLE)
    if row is not None:
        if adapter.open_row_link(row, link):
            print(f"  ✓ Found {item.er}, opening {link}...")
            item.search_attempted = False
            ctx.stuck.reset()
            return ListOutcome.OPENED
        print(f"  ⚠️ {link} link not found for {item.er}")

    if item.search_attempted:
        return ListOutcome.MISSING

    search_input = adapter.find_control(LIST_SEARCH_INPUT)
    if search_input is None:
        return ListOutcome.MISSING

    print(f"  {item.er} not in visible table, using search...")
    current = adapter.get_value(search_input).strip()
    if current and current != item.er:
        adapter.set_field_value(search_input, "")
    adapter.set_field_value(search_input, item.er)

    search_button = adapter.find_control(LIST_SEARCH)
    if search_button is not None:
        adapter.click(search_button)
    else:
        adapter.press_enter(search_input)

    item.search_attempted = True
    ctx.wait("list_search")
    return ListOutcome.SEARCHED


def clear_review_search(ctx):
    """Empty the search box so the next CR starts from the full list"""
    adapter = ctx.adapter
    search_input = adapter.find_control(LIST_SEARCH_INPUT)
    if search_input is None or not adapter.get_value(search_input):
        return
    adapter.set_field_value(search_input, "")
    search_button = adapter.find_control(LIST_SEARCH)
    if search_button is not None:
        adapter.click(search_button)
