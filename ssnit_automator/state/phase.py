"""Phase controller: the top-level state machine and the control surface

IDLE → SCRAPING → IDLE (capture-ready) → CAPTURE → COMPLETE →
VALIDATION ⇄ WAGE_EDIT → COMPLETE

Start operations are only accepted from IDLE or COMPLETE. The loops use
transition() for the automatic moves; pause/resume/stop/skip are user
actions that may arrive from another process while a scheduler is running.
"""

import re

from ssnit_automator.reasoning.contribution import is_capture_eligible
from ssnit_automator.reasoning.periods import parse_period
from ssnit_automator.state.model import (
    AutomationState,
    ItemStatus,
    Phase,
    QueueItem,
    ValidationQueueItem,
    WageAdjustmentItem,
)
from ssnit_automator.state.queue import capture_queue, validation_queue, wage_edit_queue
from ssnit_automator.state.store import load_state, save_state
from ssnit_automator.utils.timing import now_ms

ER_NUMBER = re.compile(r"^\d{9}$")

SKIP_MESSAGE = "Manually skipped by user"

# Validation state that makes the loop scan the review list for its queue
FORCE_SCAN = "force_scan"

# Valid transitions: {from_phase: {valid_to_phases}}
PHASE_TRANSITIONS = {
    Phase.IDLE: {Phase.SCRAPING, Phase.CAPTURE, Phase.VALIDATION, Phase.WAGE_EDIT},
    Phase.SCRAPING: {Phase.IDLE},
    Phase.CAPTURE: {Phase.COMPLETE},
    Phase.VALIDATION: {Phase.WAGE_EDIT, Phase.COMPLETE},
    Phase.WAGE_EDIT: {Phase.VALIDATION},
    Phase.COMPLETE: {Phase.SCRAPING, Phase.CAPTURE, Phase.VALIDATION, Phase.WAGE_EDIT},
}

STARTABLE_FROM = {Phase.IDLE, Phase.COMPLETE}

# Document keys each phase's loop writes back after a tick. Everything else,
# scraped records included, belongs to other writers.
_VALIDATION_KEYS = (
    "phase",
    "validationQueue",
    "currentValidationIndex",
    "validationState",
    "validationSubmitTime",
    "forceValidationMode",
    "needsWageEdit",
    "wageEditQueue",
    "currentWageEditIndex",
    "wageEditState",
    "ctbIssueLog",
)
OWNED_KEYS = {
    Phase.SCRAPING: ("phase", "erQueue"),
    Phase.CAPTURE: (
        "phase",
        "captureQueue",
        "currentCaptureIndex",
        "retryCount",
        "awaitingResponse",
        "lastSubmitTime",
    ),
    Phase.VALIDATION: _VALIDATION_KEYS,
    Phase.WAGE_EDIT: _VALIDATION_KEYS,
}


class PhaseError(Exception):
    """Raised when a phase cannot be started or controlled as requested."""
    pass


class IllegalPhaseTransition(PhaseError):
    """Raised when a phase change is not in PHASE_TRANSITIONS."""

    def __init__(self, from_phase, to_phase):
        self.from_phase = from_phase
        self.to_phase = to_phase
        super().__init__(f"Illegal phase transition: {from_phase.value} -> {to_phase.value}")


def transition(state, phase):
    """Move state to phase if the table allows it"""
    if state.phase == phase:
        return state
    if phase not in PHASE_TRANSITIONS.get(state.phase, set()):
        raise IllegalPhaseTransition(state.phase, phase)
    print(f"  Phase: {state.phase.value} → {phase.value}")
    state.phase = phase
    return state


def parse_er_numbers(raw):
    """Split free text into (valid, invalid) ER numbers

    Valid numbers are 9 digits, deduplicated in first-seen order.
    """
    if isinstance(raw, str):
        tokens = re.split(r"[\n,\s]+", raw)
    else:
        tokens = list(raw)
    valid, invalid = [], []
    for token in tokens:
        token = str(token).strip()
        if not token:
            continue
        if ER_NUMBER.match(token):
            if token not in valid:
                valid.append(token)
        else:
            invalid.append(token)
    return valid, invalid


def build_capture_items(state):
    """Queue items for every capture-eligible record"""
    return [
        QueueItem(
            er=record.er,
            name=record.name,
            record_id=record.id,
            unit_count=record.unit_count(),
            amount=record.amount(),
        )
        for record in state.employers
        if is_capture_eligible(record)
    ]


def build_validation_items(state):
    """Queue items for every record whose capture succeeded or already existed"""
    items = []
    for item in state.capture_queue:
        if item.status not in (ItemStatus.DONE, ItemStatus.DUPLICATE):
            continue
        record = state.find_employer(item.er)
        items.append(
            ValidationQueueItem(
                er=item.er,
                name=record.name if record else item.name,
                record_id=item.record_id,
                unit_count=item.unit_count,
                amount=item.amount,
            )
        )
    return items


class PhaseController:
    """User-facing phase operations against the shared store

    arbiter (optional) is claimed on every start; scheduler (optional) is
    cancelled on stop.
    """

    def __init__(self, store, arbiter=None, scheduler=None, clock=now_ms):
        self.store = store
        self.arbiter = arbiter
        self.scheduler = scheduler
        self.clock = clock

    def load(self) -> AutomationState:
        return load_state(self.store)

    def _require_startable(self, state, phase):
        if state.phase not in STARTABLE_FROM:
            raise PhaseError(
                f"Cannot start {phase.value}: {state.phase.value} is still active (stop it first)"
            )

    def _begin(self, state, phase):
        transition(state, phase)
        state.is_paused = False
        state.intervention_required = False
        state.intervention_message = ""
        state.login_pending = False
        save_state(self.store, state)
        if self.arbiter is not None:
            self.arbiter.claim_active_surface()
        print(f"▶️ {phase.value} started")
        return state

    # ---------- starts ----------

    def start_scraping(self, period, ers):
        """Seed a fresh run. Returns (state, invalid ER tokens)."""
        parse_period(period)
        valid, invalid = parse_er_numbers(ers)
        if invalid:
            print(f"  ⚠️ Ignoring {len(invalid)} invalid ER(s): {', '.join(invalid[:5])}")
        if not valid:
            raise PhaseError("No valid 9-digit ER numbers found")

        current = self.load()
        self._require_startable(current, Phase.SCRAPING)

        state = AutomationState(
            phase=current.phase,
            target_period=period,
            er_queue=valid,
            original_er_count=len(valid),
            started_at=self.clock(),
            auto_post_after_validation=current.auto_post_after_validation,
        )
        print(f"  {len(valid)} ER(s) queued for {period}")
        return self._begin(state, Phase.SCRAPING), invalid

    def start_capture(self):
        state = self.load()
        self._require_startable(state, Phase.CAPTURE)
        items = build_capture_items(state)
        if not items:
            raise PhaseError("No valid employers to capture")

        q = capture_queue(state)
        q.rebuild(items)
        state.capture_index = q.index
        state.capture_retry_count = 0
        state.awaiting_response = False
        state.last_submit_time = 0
        print(f"  {len(items)} employer(s) queued for capture")
        return self._begin(state, Phase.CAPTURE)

    def start_validation(self, force=False, auto_post=None):
        state = self.load()
        self._require_startable(state, Phase.VALIDATION)
        if force and not state.target_period:
            raise PhaseError("No target period set. Complete scraping first.")

        items = [] if force else build_validation_items(state)
        if not force and not items:
            raise PhaseError("No captured ERs to validate. Complete capture first.")

        q = validation_queue(state)
        q.rebuild(items)
        state.validation_index = q.index
        state.validation_state = FORCE_SCAN if force else None
        state.validation_submit_time = 0
        state.force_validation = force
        state.needs_wage_edit = []
        if auto_post is not None:
            state.auto_post_after_validation = bool(auto_post)
        if force:
            print("  Force mode: the review list will be scanned for every CR")
        else:
            print(f"  {len(items)} CR(s) queued for validation")
        return self._begin(state, Phase.VALIDATION)

    def start_wage_edit(self):
        state = self.load()
        self._require_startable(state, Phase.WAGE_EDIT)
        if not state.needs_wage_edit:
            raise PhaseError("No CRs need wage editing")

        items = [WageAdjustmentItem.from_dict(i.to_dict()) for i in state.needs_wage_edit]
        for item in items:
            item.status = ItemStatus.PENDING
        q = wage_edit_queue(state)
        q.rebuild(items)
        state.wage_edit_index = q.index
        state.wage_edit_state = None
        print(f"  {len(items)} CR(s) queued for wage edit")
        return self._begin(state, Phase.WAGE_EDIT)

    # ---------- control ----------

    def pause(self):
        self.store.set({"isPaused": True})
        print("⏸️ Automation PAUSED")

    def resume(self):
        self.store.set({"isPaused": False, "interventionRequired": False, "interventionMessage": ""})
        print("▶️ Automation RESUMED")

    def require_intervention(self, message):
        self.store.set({"isPaused": True, "interventionRequired": True, "interventionMessage": message})
        print(f"🛑 Intervention required: {message}")

    def stop(self):
        """Reset to IDLE from any state and clear every queue"""
        if self.scheduler is not None:
            self.scheduler.cancel()
        state = self.load()
        fresh = AutomationState(
            phase=Phase.IDLE,
            target_period=state.target_period,
            employers=state.employers,
            original_er_count=state.original_er_count,
            auto_post_after_validation=state.auto_post_after_validation,
            ctb_issue_log=state.ctb_issue_log,
        )
        save_state(self.store, fresh)
        print("⏹️ Automation STOPPED")
        return fresh

    def skip_current(self):
        """Mark the active loop's current item skipped, clear intervention, resume"""
        state = self.load()
        owned = OWNED_KEYS.get(state.phase, ())
        now = self.clock()
        skipped = None

        if state.phase == Phase.CAPTURE:
            q = capture_queue(state)
            skipped = q.finish(ItemStatus.SKIPPED, message=SKIP_MESSAGE, now=now)
            state.capture_index = q.index
            state.capture_retry_count = 0
            state.awaiting_response = False
            state.last_submit_time = 0
            if q.is_exhausted():
                transition(state, Phase.COMPLETE)
        elif state.phase == Phase.VALIDATION:
            q = validation_queue(state)
            skipped = q.finish(ItemStatus.SKIPPED, message=SKIP_MESSAGE, now=now)
            state.validation_index = q.index
            state.validation_state = None
            state.validation_submit_time = 0
        elif state.phase == Phase.WAGE_EDIT:
            q = wage_edit_queue(state)
            skipped = q.finish(ItemStatus.SKIPPED, message=SKIP_MESSAGE, now=now)
            state.wage_edit_index = q.index
            state.wage_edit_state = None
        else:
            raise PhaseError(f"Nothing to skip in {state.phase.value}")

        state.is_paused = False
        state.intervention_required = False
        state.intervention_message = ""
        # Only the phase's queue keys and the control flags; records stay untouched
        save_state(self.store, state, keys=owned + ("isPaused", "interventionRequired", "interventionMessage"))
        if skipped is not None:
            print(f"⏭️ Skipped {skipped.er}")
        return skipped
