"""Validation loop: import last month's data into each captured CR and submit it

Sub-states (validation_state):
    force_scan          build the queue from every ER on the review list
    searching           portal search issued for the current CR
    opened              the current CR's data-entry page was opened by us
    imported            previous month imported, minimum CTB not yet checked
    ctb_checked         every employee meets the minimum
    submitted_awaiting  submitted for validation, waiting for the dialog

A CR with employees below the minimum is removed from the queue and parked
in needs_wage_edit; the wage-edit loop sends it back here. A CR that comes
back still short fails instead of being parked again.
"""

import ssnit_automator.config as config
from ssnit_automator.browser.adapter import (
    DATA_ENTRY_AUTO_POST,
    DATA_ENTRY_IMPORT,
    DATA_ENTRY_LINK,
    DATA_ENTRY_SUBMIT,
    EMPLOYEE_TABLE,
    UNPROCESSED_TABLE,
)
from ssnit_automator.perception.pages import PageKind
from ssnit_automator.phases.review_list import ListOutcome, clear_review_search, open_from_review_list
from ssnit_automator.reasoning.classify import DialogKind, classify_response
from ssnit_automator.reasoning.contribution import adjusted_total, find_ctb_issues
from ssnit_automator.reasoning.normalize import month_matches
from ssnit_automator.reasoning.periods import previous_month_labels
from ssnit_automator.state.model import ItemStatus, Phase, ValidationQueueItem, WageAdjustmentItem
from ssnit_automator.state.phase import FORCE_SCAN, transition
from ssnit_automator.state.queue import validation_queue, wage_edit_queue
from ssnit_automator.utils.logging import local_timestamp, log_result

SEARCHING = "searching"
OPENED = "opened"
IMPORTED = "imported"
CTB_CHECKED = "ctb_checked"
SUBMITTED_AWAITING = "submitted_awaiting"

# States that survive a return to the review list
_LIST_STATES = (FORCE_SCAN, SEARCHING)


def step(ctx, state):
    q = validation_queue(state)
    try:
        _step(ctx, state, q)
    finally:
        state.validation_index = q.index


def _step(ctx, state, q):
    adapter = ctx.adapter

    if state.validation_state == FORCE_SCAN:
        _force_scan(ctx, state, q)
        return

    # ---------- dialogs first ----------
    signals = adapter.detect_response_dialog()
    dialog = classify_response(signals)
    awaiting = state.validation_state == SUBMITTED_AWAITING

    if dialog.kind == DialogKind.CONSENT:
        print("[VALIDATION] Consent modal detected - clicking Yes...")
        adapter.acknowledge_dialog(dialog)
        return

    if dialog.kind in (DialogKind.SUCCESS, DialogKind.RECEIPT):
        if adapter.acknowledge_dialog(dialog) and awaiting:
            print("[VALIDATION] Validation succeeded!")
            _finish(ctx, state, q, ItemStatus.DONE, "submitted", "Validation successful")
        return

    if dialog.kind == DialogKind.KNOWN_ERROR:
        if adapter.acknowledge_dialog(dialog) and awaiting:
            print(f"[VALIDATION] Error modal detected: {dialog.message}")
            _finish(ctx, state, q, ItemStatus.FAILED, "error", dialog.message)
        return

    if dialog.kind == DialogKind.UNKNOWN:
        current = q.current()
        ctx.require_intervention(
            state,
            f"Unknown modal: {dialog.message}. Please handle manually and click Resume.",
            dialog=signals,
            er=current.er if current else None,
        )
        return

    # ---------- outstanding submit ----------
    if awaiting and state.validation_submit_time:
        now = ctx.now()
        if ctx.policy.is_timed_out(state.validation_submit_time, now):
            print("[VALIDATION] Submit timeout - marking as failed")
            _finish(ctx, state, q, ItemStatus.FAILED, "failed", "Timeout waiting for validation response")
            return
        elapsed = ctx.policy.elapsed(state.validation_submit_time, now) / 1000
        print(f"[VALIDATION] Waiting for modal response... ({elapsed:.0f}s)")
        return

    item = q.current()
    if item is None:
        _complete(ctx, state)
        return

    import_dialog = adapter.find_import_dialog()
    if import_dialog is not None:
        _import_previous_month(ctx, state, q, item, import_dialog)
        return

    page = adapter.detect_current_page()
    if page == PageKind.UNPROCESSED:
        _on_review_list(ctx, state, q, item)
    elif page == PageKind.DATA_ENTRY:
        _on_data_entry(ctx, state, q, item)
    else:
        if ctx.stuck.bump():
            print(f"  ❌ Stuck on an unknown page for {item.er}, skipping...")
            _finish(ctx, state, q, ItemStatus.FAILED, "stuck", "Stuck on an unknown page")
            return
        if ctx.stuck.count >= config.UNKNOWN_PAGE_LIMIT:
            print("  On unknown page, navigating back to unprocessed list...")
            adapter.navigate(PageKind.UNPROCESSED)


def _force_scan(ctx, state, q):
    adapter = ctx.adapter
    if adapter.detect_current_page() != PageKind.UNPROCESSED:
        adapter.navigate(PageKind.UNPROCESSED)
        return

    print("[FORCE VALIDATION] Scanning unprocessed table for all CRs...")
    seen = []
    for row in adapter.read_table(UNPROCESSED_TABLE):
        if row["er"] not in seen:
            seen.append(row["er"])

    state.validation_state = None
    if not seen:
        print("  ⚠️ No CRs found in unprocessed table")
        state.force_validation = False
        transition(state, Phase.COMPLETE)
        return

    names = {record.er: record.name for record in state.employers}
    q.rebuild([ValidationQueueItem(er=er, name=names.get(er, "Unknown")) for er in seen])
    print(f"  ✓ Found {len(seen)} CRs to validate")


def _on_review_list(ctx, state, q, item):
    """STATE 1: unprocessed list - open the CR or search for it"""
    print(f"[VALIDATION] Looking for ER {item.er} in unprocessed list...")
    if state.validation_state not in _LIST_STATES:
        state.validation_state = None

    outcome = open_from_review_list(ctx, item, DATA_ENTRY_LINK)
    if outcome == ListOutcome.OPENED:
        item.not_found_count = 0
        state.validation_state = OPENED
        return
    if outcome == ListOutcome.SEARCHED:
        state.validation_state = SEARCHING
        return

    print(f"  ER {item.er} not found, moving to back of queue...")
    item.not_found_count += 1
    item.search_attempted = False
    q.requeue_current()
    state.validation_state = None

    remaining = q.remaining()
    if remaining and all(i.not_found_count >= config.NOT_FOUND_LIMIT for i in remaining):
        ctx.require_intervention(
            state,
            f"None of the remaining {len(remaining)} CRs found in unprocessed table "
            "(search attempted). Please check manually or Skip.",
        )
        return

    clear_review_search(ctx)
    ctx.stuck.reset()


def _import_previous_month(ctx, state, q, item, dialog):
    """Import dialog open: pick the row for the month before the target"""
    adapter = ctx.adapter
    labels = previous_month_labels(state.target_period)
    print(f"[VALIDATION] Import modal open, looking for previous month ({', '.join(labels[:2])})...")

    target = None
    for row in adapter.read_import_rows(dialog):
        if month_matches(row["period"], labels):
            print(f"  Matched period: \"{row['period']}\"")
            target = row
            break

    if target is None:
        ctx.require_intervention(
            state,
            f"Previous month not found for ER {item.er}. Tried formats: "
            f"{', '.join(labels[:2])}. Please import manually or Skip.",
        )
        return

    if adapter.select_import_row(target["handle"]) and adapter.confirm_import(dialog):
        state.validation_state = IMPORTED
        ctx.stuck.reset()
        ctx.wait("click_settle")
        return

    if ctx.stuck.bump():
        print(f"  ❌ Import stayed disabled for {item.er}")
        _finish(ctx, state, q, ItemStatus.FAILED, "stuck", "Could not import previous month")
        return
    print(f"  ⚠️ Import button still disabled (stuck: {ctx.stuck})")


def _on_data_entry(ctx, state, q, item):
    """STATE 2: data-entry page - import, check the minimum, submit"""
    adapter = ctx.adapter
    validation_state = state.validation_state

    if validation_state not in (OPENED, IMPORTED, CTB_CHECKED):
        # Not opened for the current CR (skipped or resumed elsewhere)
        print("  Data entry page is not for the current CR, returning to list...")
        adapter.navigate(PageKind.UNPROCESSED)
        return

    if validation_state == IMPORTED:
        employees = adapter.read_table(EMPLOYEE_TABLE)
        issues = find_ctb_issues(employees)
        if issues and item.wage_edit_rounds >= config.MAX_WAGE_EDIT_ROUNDS:
            print(f"  ❌ CTB still below minimum for {item.er} after wage edit")
            _finish(
                ctx, state, q, ItemStatus.FAILED, "ctb_below_minimum",
                f"{len(issues)} employee(s) still below {config.MIN_CTB} after wage edit",
            )
            return
        if issues:
            _park_for_wage_edit(ctx, state, q, item, employees, issues)
            return
        state.validation_state = CTB_CHECKED

    submit = adapter.find_control(DATA_ENTRY_SUBMIT)
    if submit is not None and adapter.is_enabled(submit):
        _set_auto_post(ctx, state.auto_post_after_validation)
        print(f"[VALIDATION] Submitting CR {item.er} for validation...")
        state.validation_state = SUBMITTED_AWAITING
        state.validation_submit_time = ctx.now()
        ctx.save(state)
        adapter.click(submit)
        return

    if submit is not None and state.validation_state == CTB_CHECKED:
        ctx.require_intervention(
            state, f"Submit disabled for ER {item.er} after import. Please review data or Skip."
        )
        return

    import_button = adapter.find_control(DATA_ENTRY_IMPORT)
    if import_button is not None and validation_state == OPENED:
        print(f"  Opening import modal for {item.er}...")
        adapter.click(import_button)
        return

    if ctx.stuck.bump():
        print(f"  ❌ Stuck on data entry for {item.er}, skipping...")
        _finish(ctx, state, q, ItemStatus.FAILED, "stuck", "Could not complete data entry")


def _set_auto_post(ctx, wanted):
    """Match the "post after validation" checkbox to the user's preference"""
    adapter = ctx.adapter
    checkbox = adapter.find_control(DATA_ENTRY_AUTO_POST)
    if checkbox is None:
        return
    if adapter.is_checked(checkbox) != bool(wanted):
        adapter.click(checkbox)


def _park_for_wage_edit(ctx, state, q, item, employees, issues):
    current, adjusted = adjusted_total([e["value"] for e in employees])
    state.ctb_issue_log.append({
        "er": item.er,
        "period": state.target_period,
        "employerName": item.name,
        "timestamp": local_timestamp(ctx.now()),
        "issues": [issue.to_dict() for issue in issues],
    })
    state.needs_wage_edit.append(
        WageAdjustmentItem(
            er=item.er,
            name=item.name,
            period=state.target_period,
            current_total=current,
            adjusted_total=adjusted,
            issues=issues,
            rounds=item.wage_edit_rounds + 1,
        )
    )
    print(f"  ⚠️ CTB below minimum for {item.er} - {len(issues)} employee(s) affected")
    print(f"  Current total: {current:.2f}, adjusted total needed: {adjusted:.2f}")
    log_result(
        item.er, Phase.VALIDATION.value, "needs_wage_edit",
        f"{len(issues)} employee(s) below {config.MIN_CTB}",
        current_total=current, adjusted_total=adjusted,
    )

    q.remove_current()
    state.validation_state = None
    ctx.stuck.reset()
    ctx.adapter.navigate(PageKind.UNPROCESSED)


def _finish(ctx, state, q, status, result, message):
    item = q.finish(status, result, message, ctx.now())
    state.validation_state = None
    state.validation_submit_time = 0
    ctx.stuck.reset()
    if item is not None:
        mark = "✓" if status == ItemStatus.DONE else "✗"
        print(f"  {mark} {item.er} {result}")
        log_result(item.er, Phase.VALIDATION.value, result, message)
    ctx.adapter.navigate(PageKind.UNPROCESSED)


def _complete(ctx, state):
    if state.needs_wage_edit:
        print(f"Validation pass done, {len(state.needs_wage_edit)} CR(s) need wage edit")
        wq = wage_edit_queue(state)
        wq.rebuild([WageAdjustmentItem.from_dict(i.to_dict()) for i in state.needs_wage_edit])
        state.wage_edit_index = wq.index
        state.wage_edit_state = None
        state.validation_state = None
        transition(state, Phase.WAGE_EDIT)
        ctx.adapter.navigate(PageKind.UNPROCESSED)
        return

    print("✅ Validation complete!")
    state.force_validation = False
    transition(state, Phase.COMPLETE)
