"""Wage-edit loop: raise each parked CR's total contribution to the adjusted total

Multi-page flow per item:
  1. Unprocessed list → find the ER → open its edit link
  2. Edit page → set Total Contribution → click Update
  3. Back to the list for the next item

When the queue is exhausted, every CR in it is appended to the validation
queue, edited or not, and the phase returns to VALIDATION.
"""

import ssnit_automator.config as config
from ssnit_automator.browser.adapter import EDIT_AMOUNT_INPUT, EDIT_LINK, EDIT_UPDATE
from ssnit_automator.data.form_defaults import format_amount
from ssnit_automator.perception.pages import PageKind
from ssnit_automator.phases.review_list import ListOutcome, clear_review_search, open_from_review_list
from ssnit_automator.reasoning.classify import DialogKind, classify_response
from ssnit_automator.state.model import ItemStatus, Phase, ValidationQueueItem
from ssnit_automator.state.phase import transition
from ssnit_automator.state.queue import validation_queue, wage_edit_queue
from ssnit_automator.utils.logging import log_result

SEARCHING = "searching"
EDITING = "editing"


def step(ctx, state):
    q = wage_edit_queue(state)
    try:
        _step(ctx, state, q)
    finally:
        state.wage_edit_index = q.index


def _step(ctx, state, q):
    adapter = ctx.adapter

    # Stray dialogs are dismissed; unknown ones still need a human
    signals = adapter.detect_response_dialog()
    dialog = classify_response(signals)
    if dialog.kind == DialogKind.UNKNOWN:
        current = q.current()
        ctx.require_intervention(
            state,
            f"Unknown modal: {dialog.message}. Please handle manually and click Resume.",
            dialog=signals,
            er=current.er if current else None,
        )
        return
    if dialog.kind != DialogKind.NONE:
        adapter.acknowledge_dialog(dialog)
        return

    item = q.current()
    if item is None:
        _complete(ctx, state)
        return

    page = adapter.detect_current_page()
    if page == PageKind.UNPROCESSED:
        _on_review_list(ctx, state, q, item)
    elif page == PageKind.EDIT_PRIVATE:
        _on_edit_page(ctx, state, q, item)
    else:
        if ctx.stuck.bump():
            print(f"  ❌ Stuck on an unknown page for {item.er}, skipping...")
            _finish(ctx, state, q, ItemStatus.FAILED, "stuck", "Stuck on an unknown page")
            return
        if ctx.stuck.count >= config.UNKNOWN_PAGE_LIMIT:
            print("  On unknown page, navigating back to unprocessed list...")
            adapter.navigate(PageKind.UNPROCESSED)


def _on_review_list(ctx, state, q, item):
    """STATE 1: unprocessed list - open the CR's edit page"""
    print(f"[WAGE EDIT] Looking for ER {item.er} to edit...")
    outcome = open_from_review_list(ctx, item, EDIT_LINK)
    if outcome == ListOutcome.OPENED:
        state.wage_edit_state = EDITING
        return
    if outcome == ListOutcome.SEARCHED:
        state.wage_edit_state = SEARCHING
        return

    if ctx.stuck.bump():
        print(f"  ❌ ER {item.er} not found even after search, skipping...")
        clear_review_search(ctx)
        _finish(ctx, state, q, ItemStatus.FAILED, "not_found", "CR not found in unprocessed list")


def _on_edit_page(ctx, state, q, item):
    """STATE 2: edit page - overwrite Total Contribution and update"""
    adapter = ctx.adapter

    if state.wage_edit_state != EDITING:
        print("  Edit page is not for the current CR, returning to list...")
        adapter.navigate(PageKind.UNPROCESSED)
        return

    header = adapter.read_header()
    if header and item.er not in header:
        print(f"  Wrong ER on edit page. Expected {item.er}, navigating back...")
        state.wage_edit_state = None
        adapter.navigate(PageKind.UNPROCESSED)
        return

    adjusted = format_amount(item.adjusted_total)
    print(f"[WAGE EDIT] Updating Total Contribution to {adjusted}...")

    amount_input = adapter.find_control(EDIT_AMOUNT_INPUT)
    if amount_input is None:
        print("  ⚠️ Total Contribution input not found")
    elif ctx.pause_requested():
        return
    else:
        adapter.set_field_value(amount_input, adjusted)
        update = adapter.find_control(EDIT_UPDATE)
        if update is not None and adapter.click(update):
            _finish(ctx, state, q, ItemStatus.DONE, "updated", f"Total adjusted to {adjusted}")
            return
        print("  ⚠️ Update button not found or disabled")

    if ctx.stuck.bump():
        print(f"  ❌ Stuck on edit page for {item.er}, skipping...")
        _finish(ctx, state, q, ItemStatus.FAILED, "stuck", "Could not complete edit")


def _finish(ctx, state, q, status, result, message):
    item = q.finish(status, result, message, ctx.now())
    state.wage_edit_state = None
    ctx.stuck.reset()
    if item is not None:
        log_result(
            item.er, Phase.WAGE_EDIT.value, result, message,
            current_total=item.current_total, adjusted_total=item.adjusted_total,
        )
    ctx.adapter.navigate(PageKind.UNPROCESSED)


def _complete(ctx, state):
    items = state.wage_edit_queue
    edited = sum(1 for item in items if item.status == ItemStatus.DONE)
    print(f"✅ Wage edit complete! {edited}/{len(items)} edited, all return to validation")

    vq = validation_queue(state)
    for item in items:
        vq.append(ValidationQueueItem(er=item.er, name=item.name, wage_edit_rounds=item.rounds))
    vq.index = 0

    state.validation_index = vq.index
    state.validation_state = None
    state.validation_submit_time = 0
    state.needs_wage_edit = []
    state.wage_edit_state = None
    transition(state, Phase.VALIDATION)
    ctx.adapter.navigate(PageKind.UNPROCESSED)
