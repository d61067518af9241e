"""Scraping loop: read each employer's prior-period history from the report

One ER per step: search for it, wait until the report table shows it, then
extract one EmployerRecord and dequeue the ER. The user may add, edit or
delete records while scraping runs or once it has finished.
"""

import ssnit_automator.config as config
from ssnit_automator.browser.adapter import REPORT_ER_INPUT, REPORT_SEARCH, REPORT_TABLE
from ssnit_automator.perception.pages import PageKind
from ssnit_automator.reasoning.contribution import compute_flags
from ssnit_automator.reasoning.periods import get_sequence
from ssnit_automator.state.model import (
    EDITED_PERIOD,
    MANUAL_PERIOD,
    EmployerRecord,
    Observation,
    Phase,
)
from ssnit_automator.state.phase import ER_NUMBER, PhaseError, transition
from ssnit_automator.state.store import load_state
from ssnit_automator.utils.logging import log_result
from ssnit_automator.utils.timing import now_ms

# Record edits are refused while a downstream queue is being worked
_LOCKED_PHASES = (Phase.CAPTURE, Phase.VALIDATION, Phase.WAGE_EDIT)


def progress(state):
    """(scraped, original) counts for the progress line"""
    total = state.original_er_count or (len(state.er_queue) + len(state.employers))
    return len(state.employers), total


def extract_record(er, rows, period, scraped_at):
    """Bucket report rows into an EmployerRecord for er"""
    seq = get_sequence(period)
    record = EmployerRecord(
        er=er,
        name=(rows[0]["name"] if rows else "") or "Unknown",
        period=period,
        scraped_at=scraped_at,
    )
    for row in rows:
        if row.get("self_capture"):
            record.self_capture = True
        observation = Observation(
            period=row["period"], type=row["type"], count=row["count"], amount=row["amount"]
        )
        if row["period"] == seq.target_label:
            record.already_captured = True
        if row["period"] == seq.p1_label:
            record.p1.append(observation)
        if row["period"] == seq.p2_label:
            record.p2.append(observation)
    return compute_flags(record)


def step(ctx, state):
    adapter = ctx.adapter

    if not state.er_queue:
        print("✅ Scraping complete!")
        transition(state, Phase.IDLE)
        return

    er = state.current_er
    done, total = progress(state)
    print(f"[SCRAPING {done}/{total}] {er}")

    # Never extract the same ER twice in one run
    if state.find_employer(er) is not None:
        print(f"  ER {er} already scraped, moving to next...")
        _dequeue(ctx, state)
        return

    if adapter.detect_current_page() != PageKind.REPORT:
        if ctx.stuck.bump(config.UNKNOWN_PAGE_LIMIT):
            ctx.stuck.reset()
            adapter.navigate(PageKind.REPORT)
        return

    er_field = adapter.find_control(REPORT_ER_INPUT)
    if er_field is None:
        # Form not ready yet
        return

    rows = adapter.read_table(REPORT_TABLE)
    table_er = rows[0]["er"] if rows else None

    if table_er != er:
        if rows:
            print(f"  Table shows {table_er}, searching for {er}...")
        elif ctx.last_search == er and ctx.stuck.bump():
            # Searched repeatedly and the report stays empty: no history
            print(f"  ⚠️ No report rows for {er}")
            _store_record(ctx, state, extract_record(er, [], state.target_period, ctx.now()))
            return
        _search(ctx, er_field, er)
        return

    _store_record(ctx, state, extract_record(er, rows, state.target_period, ctx.now()))


def _search(ctx, er_field, er):
    adapter = ctx.adapter
    adapter.set_field_value(er_field, "")
    adapter.set_field_value(er_field, er)
    search_button = adapter.find_control(REPORT_SEARCH)
    if search_button is None:
        print("  ⚠️ Search button not found")
        return
    print(f"  Searching for ER: {er}")
    adapter.click(search_button)
    ctx.last_search = er
    ctx.wait("search_results")


def _store_record(ctx, state, record):
    if ctx.store.get(["phase"]).get("phase") != Phase.SCRAPING.value:
        print(f"  Scraping stopped, not storing {record.er}")
        return

    # Appended straight into the stored list; records are not a tick-owned key
    def append(records):
        if any(r.er == record.er for r in records):
            return
        records.append(record)

    _change_records(ctx.store, append)
    state.employers.append(record)
    flags = [
        name for name, on in (
            ("already_captured", record.already_captured),
            ("continuity_error", record.continuity_error),
            ("zero_value", record.zero_value_error),
            ("self_capture", record.self_capture),
        ) if on
    ]
    log_result(
        record.er, Phase.SCRAPING.value, "scraped",
        name=record.name, lf=record.unit_count(), amt=record.amount(), flags=flags,
    )
    _dequeue(ctx, state)


def _dequeue(ctx, state):
    state.er_queue.pop(0)
    ctx.stuck.reset()
    ctx.last_search = None
    print(f"  Moving to next ER: {state.current_er or 'DONE'}")


# ---------- user record operations ----------

def _load_editable(store):
    state = load_state(store)
    if state.phase in _LOCKED_PHASES:
        raise PhaseError(f"Records cannot be changed while {state.phase.value} is running")
    return state


def _change_records(store, change):
    """Run change(records) against the stored records in one write

    Only scrapedResults is rewritten, so a scraping tick running at the same
    time keeps its queue and the records it appends.
    """
    outcome = []

    def apply(raw):
        records = [EmployerRecord.from_dict(r) for r in raw or []]
        outcome.append(change(records))
        return [r.to_dict() for r in records]

    store.update("scrapedResults", apply)
    return outcome[0]


def _find(records, er):
    for record in records:
        if record.er == er:
            return record
    raise PhaseError(f"ER {er} not found")


def _require_positive(count, amount):
    if count <= 0:
        raise PhaseError("Enter a valid number of employees (LF)")
    if amount <= 0:
        raise PhaseError("Enter a valid contribution amount")


def add_manual_record(store, er, name, count, amount, clock=now_ms):
    """Add a record for an ER the report could not supply"""
    er = (er or "").strip()
    if not ER_NUMBER.match(er):
        raise PhaseError("Enter a valid 9-digit ER number")
    count = int(count)
    amount = float(amount)
    _require_positive(count, amount)

    state = _load_editable(store)
    record = EmployerRecord(
        er=er,
        name=(name or "").strip() or "Manual Entry",
        period=state.target_period,
        p1=[Observation(period=MANUAL_PERIOD, type=config.NORMAL_TYPE, count=count, amount=amount)],
        scraped_at=clock(),
        is_manual=True,
    )

    def add(records):
        if any(r.er == er for r in records):
            raise PhaseError(f"ER {er} already exists")
        records.append(record)

    _change_records(store, add)
    print(f"✓ Manual entry added: {er} - {record.name} (LF: {count}, Amt: {amount})")
    return record


def edit_record(store, er, name=None, count=None, amount=None):
    """Correct a record's name, unit count or amount

    Valid values clear both error flags; the NORMAL p1 row is tagged EDITED
    unless it was entered manually.
    """
    _load_editable(store)

    def edit(records):
        record = _find(records, er)
        normal = record.normal_p1()
        new_count = int(count) if count is not None else (normal.count if normal else 0)
        new_amount = float(amount) if amount is not None else (normal.amount if normal else 0.0)
        _require_positive(new_count, new_amount)

        if name is not None and name.strip():
            record.name = name.strip()
        if normal is None:
            normal = Observation(period=EDITED_PERIOD, type=config.NORMAL_TYPE)
            record.p1.append(normal)
        normal.count = new_count
        normal.amount = new_amount
        if normal.period != MANUAL_PERIOD:
            normal.period = EDITED_PERIOD

        record.continuity_error = False
        record.zero_value_error = False
        record.is_edited = True
        return record

    record = _change_records(store, edit)
    print(f"✓ Record updated: {er} - {record.name} (LF: {record.unit_count()}, Amt: {record.amount()})")
    return record


def delete_record(store, er):
    _load_editable(store)

    def delete(records):
        record = _find(records, er)
        records.remove(record)
        return record

    record = _change_records(store, delete)
    print(f"🗑️ Record deleted: {er}")
    return record
