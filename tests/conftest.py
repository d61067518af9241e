"""Shared fixtures: an in-memory store and a scripted fake portal"""

import pytest

import ssnit_automator.config as config
from ssnit_automator.browser.adapter import PageAdapter
from ssnit_automator.perception.pages import PageKind
from ssnit_automator.phases.scheduler import EngineContext, StepScheduler
from ssnit_automator.reasoning.classify import DialogSignals
from ssnit_automator.state.arbiter import StoreArbiter
from ssnit_automator.state.model import AutomationState
from ssnit_automator.state.phase import PhaseController
from ssnit_automator.state.store import MemoryStore, load_state, save_state

SURFACE_ID = "surface-test"


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.t = start

    def __call__(self):
        return self.t

    def advance(self, ms):
        self.t += ms


class FakeControl:
    def __init__(self, name, value="", enabled=True, checked=False):
        self.name = name
        self.value = value
        self.enabled = enabled
        self.checked = checked

    def __repr__(self):
        return f"FakeControl({self.name!r})"


def success_dialog():
    return DialogSignals(visible=True, has_success_icon=True, title="Success", text="Data Successfully Saved")


def error_dialog(message):
    return DialogSignals(visible=True, has_error_icon=True, message=message, text=f"Errors Occured {message}")


def consent_dialog():
    return DialogSignals(visible=True, has_warning_icon=True, title="Submit for Validation?")


def unknown_dialog(message="Session will expire soon"):
    return DialogSignals(visible=True, title="Notice", message=message, text=message)


class FakePortal(PageAdapter):
    """Scripted stand-in for the portal

    Tests register callbacks in on_click (control name -> fn(portal, control)),
    on_ack (fn(portal, dialog)), on_open (fn(portal, row, link)) and
    on_import (fn(portal)).
    """

    def __init__(self):
        self.page = None
        self.login = False
        self.header = ""
        self.dialog = DialogSignals()
        self.controls = {}
        self.control_lists = {}
        self.tables = {}
        self.import_rows = None
        self.on_click = {}
        self.on_ack = None
        self.on_open = None
        self.on_import = None
        self.navigations = []
        self.clicks = []
        self.acknowledged = []
        self.selected_options = []
        self.opened = []

    def add_control(self, name, **kwargs):
        control = FakeControl(name, **kwargs)
        self.controls[name] = control
        return control

    # pages
    def detect_current_page(self):
        return self.page

    def is_login_page(self):
        return self.login

    def navigate(self, kind):
        self.navigations.append(kind)
        self.page = kind

    # controls
    def find_control(self, name, **params):
        return self.controls.get(name)

    def find_controls(self, name):
        return list(self.control_lists.get(name, []))

    def is_enabled(self, handle):
        return handle.enabled

    def is_checked(self, handle):
        return handle.checked

    def get_value(self, handle):
        return handle.value

    def click(self, handle):
        if not handle.enabled:
            return False
        self.clicks.append(handle.name)
        callback = self.on_click.get(handle.name)
        if callback is not None:
            callback(self, handle)
        elif handle.name.endswith("auto_post"):
            handle.checked = not handle.checked
        return True

    def set_field_value(self, handle, value):
        handle.value = str(value)
        return True

    def check_radio(self, handle):
        handle.checked = True
        return True

    def select_option(self, label_hint, text):
        self.selected_options.append((label_hint, text))
        return True

    def press_enter(self, handle):
        self.clicks.append(f"{handle.name}:enter")

    # tables
    def read_table(self, name):
        return list(self.tables.get(name, []))

    def find_row_by_exact_column_match(self, value, table, column=None):
        for row in self.tables.get(table, []):
            if row.get("er") == value:
                return row
        return None

    def open_row_link(self, row, link):
        self.opened.append((row["er"], link))
        if self.on_open is not None:
            self.on_open(self, row, link)
        return True

    def read_header(self):
        return self.header

    # dialogs
    def detect_response_dialog(self):
        return self.dialog

    def acknowledge_dialog(self, dialog):
        self.acknowledged.append(dialog.kind)
        self.dialog = DialogSignals()
        if self.on_ack is not None:
            self.on_ack(self, dialog)
        return True

    def find_import_dialog(self):
        return "import-dialog" if self.import_rows is not None else None

    def read_import_rows(self, dialog):
        return [{"period": period, "handle": period} for period in self.import_rows]

    def select_import_row(self, row):
        self.selected_import = row
        return True

    def confirm_import(self, dialog):
        self.import_rows = None
        if self.on_import is not None:
            self.on_import(self)
        return True


@pytest.fixture(autouse=True)
def run_files(tmp_path, monkeypatch):
    """Keep run logs out of the working directory"""
    monkeypatch.setattr(config, "LOG_FILE", str(tmp_path / "log.jsonl"))
    monkeypatch.setattr(config, "DEBUG_DIALOG_FILE", str(tmp_path / "debug_dialogs.jsonl"))
    return tmp_path


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def portal():
    return FakePortal()


@pytest.fixture
def arbiter(store):
    return StoreArbiter(store, SURFACE_ID)


@pytest.fixture
def ctx(portal, store, arbiter, clock):
    arbiter.claim_active_surface()
    return EngineContext(
        adapter=portal,
        store=store,
        arbiter=arbiter,
        now=clock,
        sleep=lambda min_ms, max_ms: None,
    )


@pytest.fixture
def scheduler(ctx):
    return StepScheduler(ctx)


@pytest.fixture
def controller(store, arbiter, clock):
    return PhaseController(store, arbiter=arbiter, clock=clock)


@pytest.fixture
def seed(store, arbiter):
    """Persist a prepared AutomationState and make this surface active"""

    def _seed(state: AutomationState):
        save_state(store, state)
        arbiter.claim_active_surface()
        return state

    return _seed


@pytest.fixture
def current(store):
    return lambda: load_state(store)


