"""Capture loop: submit one new contribution report per eligible employer

Per step, in order:
  1. A visible response dialog decides the current item's outcome
  2. An outstanding submit waits, resubmits once, or fails on timeout
  3. Otherwise the page flow advances: employer page → capture form → submit

Results: success, duplicate, error, failed, skipped.
"""

import ssnit_automator.config as config
from ssnit_automator.browser.adapter import (
    CAPTURE_AMOUNT_INPUT,
    CAPTURE_LF_INPUT,
    CAPTURE_MEDIA_RADIO,
    CAPTURE_MODE_RADIO,
    CAPTURE_PERIOD_INPUTS,
    CAPTURE_SUBMIT,
    EMPLOYER_CONTINUE,
    EMPLOYER_ER_INPUT,
)
from ssnit_automator.data.form_defaults import CAPTURE_DROPDOWNS, CAPTURE_FORM_DEFAULTS, format_amount
from ssnit_automator.perception.pages import PageKind
from ssnit_automator.phases.policy import TimeoutDecision
from ssnit_automator.reasoning.classify import DialogKind, classify_response, is_duplicate_message
from ssnit_automator.state.model import ItemStatus, Phase
from ssnit_automator.state.phase import transition
from ssnit_automator.state.queue import capture_queue
from ssnit_automator.utils.logging import log_result

NO_RESPONSE_MESSAGE = "no response after retry"


def step(ctx, state):
    q = capture_queue(state)
    try:
        _step(ctx, state, q)
    finally:
        state.capture_index = q.index


def _step(ctx, state, q):
    adapter = ctx.adapter
    item = q.current()
    if item is None:
        _complete(state)
        return

    # ---------- response dialog ----------
    signals = adapter.detect_response_dialog()
    dialog = classify_response(signals)

    if dialog.kind in (DialogKind.RECEIPT, DialogKind.SUCCESS):
        if adapter.acknowledge_dialog(dialog):
            message = "Acknowledgement received" if dialog.kind == DialogKind.RECEIPT else "Data saved successfully"
            _finish(ctx, state, q, ItemStatus.DONE, "success", message)
        return

    if dialog.kind == DialogKind.KNOWN_ERROR:
        if adapter.acknowledge_dialog(dialog):
            # "already exists" means captured before, not by this run
            if is_duplicate_message(dialog.message):
                _finish(ctx, state, q, ItemStatus.DUPLICATE, "duplicate", dialog.message)
            else:
                _finish(ctx, state, q, ItemStatus.FAILED, "error", dialog.message)
        return

    if dialog.kind in (DialogKind.UNKNOWN, DialogKind.CONSENT):
        ctx.require_intervention(
            state,
            f"Unknown modal: {dialog.message}. Please review and click Skip or Resume.",
            dialog=signals,
            er=item.er,
        )
        return

    # ---------- outstanding submit ----------
    if state.awaiting_response and state.last_submit_time > 0:
        now = ctx.now()
        decision = ctx.policy.evaluate(state.last_submit_time, state.capture_retry_count, now)
        elapsed = ctx.policy.elapsed(state.last_submit_time, now) / 1000
        if decision == TimeoutDecision.WAIT:
            print(f"  Waiting for response... ({elapsed:.0f}s / {ctx.policy.timeout_ms / 1000:.0f}s)")
            return
        if decision == TimeoutDecision.FAIL:
            print("  ❌ Response unreadable after retry")
            _finish(ctx, state, q, ItemStatus.FAILED, "failed", NO_RESPONSE_MESSAGE)
            return
        print(f"  ⚠️ Response timeout after {elapsed:.0f}s, retrying submit...")
        state.capture_retry_count += 1
        state.awaiting_response = False
        state.last_submit_time = 0
        ctx.stuck.reset()

    # ---------- page flow ----------
    # The stuck count runs across page visits and only resets once the
    # capture form for this item is reached
    page = adapter.detect_current_page()
    arrived = page != ctx.last_page
    ctx.last_page = page
    if page == PageKind.EMPLOYER:
        _enter_employer(ctx, state, q, item)
    elif page == PageKind.CAPTURE_FORM:
        _fill_and_submit(ctx, state, q, item, arrived)
    else:
        if ctx.stuck.bump():
            print("  ❌ Max stuck count reached on unknown page, marking as FAILED")
            _finish(ctx, state, q, ItemStatus.FAILED, "failed", "Stuck on an unknown page")
            return
        print(f"  Unknown page state (stuck: {ctx.stuck})")
        if ctx.stuck.count >= config.UNKNOWN_PAGE_LIMIT:
            adapter.navigate(PageKind.EMPLOYER)


def _enter_employer(ctx, state, q, item):
    """STATE 1: employer page - enter the ER and continue"""
    adapter = ctx.adapter
    if ctx.stuck.bump():
        print(f"  ❌ Still on employer page for {item.er}, marking as FAILED")
        _finish(ctx, state, q, ItemStatus.FAILED, "failed", "Could not leave the employer page")
        return

    er_input = adapter.find_control(EMPLOYER_ER_INPUT)
    continue_button = adapter.find_control(EMPLOYER_CONTINUE)
    if er_input is None or continue_button is None:
        return

    print(f"[CAPTURE] Employer page: entering ER {item.er}")
    if ctx.pause_requested():
        return
    adapter.set_field_value(er_input, item.er)
    if ctx.pause_requested():
        return

    if adapter.get_value(er_input) == item.er:
        adapter.click(continue_button)
    elif ctx.stuck.count >= config.UNKNOWN_PAGE_LIMIT:
        adapter.navigate(PageKind.EMPLOYER)


def _fill_and_submit(ctx, state, q, item, arrived=False):
    """STATE 2: capture form - fill every field, then submit"""
    adapter = ctx.adapter

    header = adapter.read_header()
    if header and item.er not in header:
        if ctx.stuck.bump():
            print(f"  ❌ Capture form never showed {item.er}, marking as FAILED")
            _finish(ctx, state, q, ItemStatus.FAILED, "failed", "Capture form showed another employer")
            return
        print("  Wrong employer displayed, navigating to employer page...")
        adapter.navigate(PageKind.EMPLOYER)
        return
    if arrived:
        ctx.stuck.reset()

    print(f"[CAPTURE] Filling form for {item.er}...")
    for fill in (_fill_period, _fill_radios, _fill_dropdowns, _fill_counts):
        if ctx.pause_requested():
            return
        fill(ctx, state, item)

    ctx.wait("pre_submit")
    if ctx.pause_requested():
        return

    submit = adapter.find_control(CAPTURE_SUBMIT)
    if submit is not None and adapter.is_enabled(submit):
        print(f"[CAPTURE] Submitting {item.er}...")
        state.awaiting_response = True
        state.last_submit_time = ctx.now()
        # Recorded before the click so a crash cannot lead to a blind resubmit
        ctx.save(state)
        adapter.click(submit)
        ctx.stuck.reset()
        return

    if ctx.stuck.bump():
        print("  ❌ Max stuck count reached, marking as FAILED")
        _finish(ctx, state, q, ItemStatus.FAILED, "failed", "Submit button stayed disabled")
        return
    print(f"  ⚠️ Submit button disabled (stuck: {ctx.stuck})")


def _fill_period(ctx, state, item):
    adapter = ctx.adapter
    for period_input in adapter.find_controls(CAPTURE_PERIOD_INPUTS):
        if adapter.get_value(period_input) != state.target_period:
            adapter.set_field_value(period_input, state.target_period)


def _fill_radios(ctx, state, item):
    adapter = ctx.adapter
    for name, key in ((CAPTURE_MEDIA_RADIO, "submission_medium"), (CAPTURE_MODE_RADIO, "submission_mode")):
        radio = adapter.find_control(name, value=CAPTURE_FORM_DEFAULTS[key])
        if radio is not None and not adapter.is_checked(radio):
            adapter.check_radio(radio)


def _fill_dropdowns(ctx, state, item):
    for key in CAPTURE_DROPDOWNS:
        label_hint, option = CAPTURE_FORM_DEFAULTS[key]
        ctx.adapter.select_option(label_hint, option)


def _fill_counts(ctx, state, item):
    adapter = ctx.adapter
    lf_input = adapter.find_control(CAPTURE_LF_INPUT)
    if lf_input is not None:
        adapter.set_field_value(lf_input, str(item.unit_count))
    amount_input = adapter.find_control(CAPTURE_AMOUNT_INPUT)
    if amount_input is not None:
        adapter.set_field_value(amount_input, format_amount(item.amount))


def _finish(ctx, state, q, status, result, message):
    item = q.finish(status, result, message, ctx.now())
    state.capture_retry_count = 0
    state.awaiting_response = False
    state.last_submit_time = 0
    ctx.stuck.reset()
    log_result(item.er, Phase.CAPTURE.value, result, message, lf=item.unit_count, amt=item.amount)

    if q.is_exhausted():
        _complete(state)
    else:
        ctx.adapter.navigate(PageKind.EMPLOYER)


def _complete(state):
    print("✅ Capture complete!")
    transition(state, Phase.COMPLETE)
