"""Step scheduler: one bounded unit of work per tick

Every tick re-reads the persisted document, runs at most one step of the
active phase's loop and writes the result back. Nothing authoritative is
kept in memory between ticks except the stuck counter.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import ssnit_automator.config as config
from ssnit_automator.debug.dialog_collector import flush_unknown_dialogs, record_unknown_dialog
from ssnit_automator.perception.pages import PageKind
from ssnit_automator.phases.policy import ResponseTimeoutPolicy, StuckCounter
from ssnit_automator.state.model import Phase
from ssnit_automator.state.phase import OWNED_KEYS
from ssnit_automator.state.queue import capture_queue, validation_queue, wage_edit_queue
from ssnit_automator.state.store import load_state, save_state
from ssnit_automator.utils.timing import human_delay, now_ms

# Keys the phase controller owns; a tick never overwrites them
CONTROL_KEYS = ("isPaused", "interventionRequired", "interventionMessage", "activeWorkerId")

# Per-item progress dropped when a skip finished the current item mid-tick
_ITEM_PROGRESS = {
    Phase.CAPTURE: {"capture_retry_count": 0, "awaiting_response": False, "last_submit_time": 0},
    Phase.VALIDATION: {"validation_state": None, "validation_submit_time": 0},
    Phase.WAGE_EDIT: {"wage_edit_state": None},
}

_QUEUES = {
    Phase.CAPTURE: ("capture_queue", capture_queue),
    Phase.VALIDATION: ("validation_queue", validation_queue),
    Phase.WAGE_EDIT: ("wage_edit_queue", wage_edit_queue),
}

# Where each phase resumes after a login interstitial
HOME_PAGES = {
    Phase.SCRAPING: PageKind.REPORT,
    Phase.CAPTURE: PageKind.EMPLOYER,
    Phase.VALIDATION: PageKind.UNPROCESSED,
    Phase.WAGE_EDIT: PageKind.UNPROCESSED,
}

IDLE_PHASES = (Phase.IDLE, Phase.COMPLETE)


@dataclass
class EngineContext:
    """Everything a loop step may touch besides the state document"""

    adapter: Any
    store: Any
    arbiter: Any
    now: Callable[[], int] = now_ms
    sleep: Callable[[float, float], None] = human_delay
    policy: ResponseTimeoutPolicy = field(default_factory=ResponseTimeoutPolicy)
    stuck: StuckCounter = field(default_factory=StuckCounter)
    in_flight: bool = False
    tick_phase: Optional[Phase] = None
    last_search: Optional[str] = None
    last_page: Optional[PageKind] = None

    def wait(self, name):
        """Settle delay from the active timing profile"""
        self.sleep(*config.delay_range(name))

    def pause_requested(self):
        """True when the user paused or stopped since this tick began"""
        stored = self.store.get(["isPaused", "phase"])
        if stored.get("isPaused"):
            print("  ⏸️ Pause detected mid-operation, stopping...")
            return True
        if self.tick_phase is not None and stored.get("phase") != self.tick_phase.value:
            print("  ⏹️ Phase changed mid-operation, stopping...")
            return True
        return False

    def save(self, state):
        """Persist the keys this phase owns unless the phase was changed underneath it"""
        stored = self.store.get(["phase"]).get("phase")
        if self.tick_phase is not None and stored != self.tick_phase.value:
            print(f"  Phase is now {stored}, discarding this step's changes")
            return False
        phase = self.tick_phase or state.phase
        if phase in _QUEUES:
            _keep_outside_outcomes(self.store, state, phase)
        save_state(self.store, state, keys=OWNED_KEYS.get(phase), exclude=CONTROL_KEYS)
        return True

    def require_intervention(self, state, message, dialog=None, er=None):
        """Halt ticking until a human resumes or skips"""
        if dialog is not None:
            record_unknown_dialog(
                er=er,
                phase=state.phase.value,
                page=self._page_name(),
                title=dialog.title,
                header=dialog.header,
                message=dialog.message,
                text=dialog.text,
            )
        state.is_paused = True
        state.intervention_required = True
        state.intervention_message = message
        self.store.set({"isPaused": True, "interventionRequired": True, "interventionMessage": message})
        flush_unknown_dialogs()
        print(f"🛑 Intervention required: {message}")

    def _page_name(self):
        try:
            kind = self.adapter.detect_current_page()
        except Exception:
            return None
        return kind.value if kind else None


def _keep_outside_outcomes(store, state, phase):
    """Adopt terminal outcomes another writer (a skip) stored during the tick

    Items are matched by ER. When the current item was finished elsewhere,
    its in-flight progress is dropped so the next tick starts clean.
    """
    attr, make_queue = _QUEUES[phase]
    stored = getattr(load_state(store), attr)
    finished = {item.er: item for item in stored if item.is_terminal}
    if not finished:
        return

    items = getattr(state, attr)
    current = make_queue(state).current()
    for i, item in enumerate(items):
        outside = finished.get(item.er)
        if outside is not None and not item.is_terminal:
            items[i] = outside
            if item is current:
                print(f"  {item.er} was {outside.status.value} elsewhere, dropping its progress")
                for name, value in _ITEM_PROGRESS[phase].items():
                    setattr(state, name, value)


def _default_loops():
    from ssnit_automator.phases import capture, scraping, validation, wage_edit

    return {
        Phase.SCRAPING: scraping.step,
        Phase.CAPTURE: capture.step,
        Phase.VALIDATION: validation.step,
        Phase.WAGE_EDIT: wage_edit.step,
    }


class StepScheduler:
    def __init__(self, ctx: EngineContext, loops=None):
        self.ctx = ctx
        self.loops = loops if loops is not None else _default_loops()
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def tick(self):
        """Run at most one step. Returns True when a step ran."""
        ctx = self.ctx
        if ctx.in_flight:
            return False
        ctx.in_flight = True
        try:
            return self._tick()
        finally:
            ctx.in_flight = False
            ctx.tick_phase = None

    def _tick(self):
        ctx = self.ctx
        state = load_state(ctx.store)
        if state.phase in IDLE_PHASES:
            return False
        if not ctx.arbiter.is_this_surface_active():
            return False
        if state.is_paused or state.intervention_required:
            return False

        ctx.tick_phase = state.phase

        if ctx.adapter.is_login_page():
            if not state.login_pending:
                print("🔒 Login page detected - waiting for login...")
                ctx.store.set({"loginPending": True})
            return False

        if state.login_pending:
            print("🔓 Login complete, resuming...")
            ctx.store.set({"loginPending": False})
            ctx.adapter.navigate(HOME_PAGES[state.phase])
            return True

        step = self.loops[state.phase]
        try:
            step(ctx, state)
        except Exception as e:
            print(f"  ⚠️ {state.phase.value} step error: {e}")
        ctx.save(state)
        return True

    def run(self, max_ticks=None):
        """Tick at the phase's fixed interval until cancelled or idle"""
        self._cancelled = False
        ticks = 0
        while not self._cancelled:
            phase = load_state(self.ctx.store).phase
            if phase in IDLE_PHASES:
                print(f"Phase is {phase.value}, scheduler stopping")
                break
            self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            interval = config.TICK_INTERVALS_MS.get(phase.value, config.IDLE_TICK_MS)
            self.ctx.sleep(interval, interval)
        return ticks
