import pytest
from conftest import consent_dialog, error_dialog, success_dialog, unknown_dialog

import ssnit_automator.config as config
from ssnit_automator.browser.adapter import (
    DATA_ENTRY_AUTO_POST,
    DATA_ENTRY_IMPORT,
    DATA_ENTRY_SUBMIT,
    EDIT_AMOUNT_INPUT,
    EDIT_UPDATE,
    EMPLOYEE_TABLE,
    LIST_SEARCH,
    LIST_SEARCH_INPUT,
    UNPROCESSED_TABLE,
)
from ssnit_automator.perception.pages import PageKind
from ssnit_automator.reporting.report import build_report
from ssnit_automator.state.model import AutomationState, ItemStatus, Phase, ValidationQueueItem, WageAdjustmentItem

XENO, YARA = "200000001", "200000002"

UNDERPAID = [
    {"ss_number": "S1", "name": "Ama", "value": 40.0},
    {"ss_number": "S2", "name": "Yaw", "value": 100.0},
    {"ss_number": "S3", "name": "Blank", "value": 0.0},
]
PAID = [
    {"ss_number": "S1", "name": "Ama", "value": 79.35},
    {"ss_number": "S2", "name": "Yaw", "value": 100.0},
]


def _validation_state(*ers, **kwargs):
    return AutomationState(
        phase=Phase.VALIDATION,
        target_period="202601",
        validation_queue=[ValidationQueueItem(er=er, name=f"Employer {er}") for er in ers],
        **kwargs,
    )


class Portal:
    """Review list, data-entry and edit pages with a CR's employee table"""

    def __init__(self, portal, employees, listed=None, respond=success_dialog):
        self.portal = portal
        self.employees = {er: list(rows) for er, rows in employees.items()}
        portal.page = PageKind.UNPROCESSED
        portal.tables[UNPROCESSED_TABLE] = [{"er": er} for er in (listed if listed is not None else employees)]
        portal.add_control(LIST_SEARCH_INPUT)
        portal.add_control(LIST_SEARCH)
        portal.add_control(DATA_ENTRY_IMPORT)
        portal.add_control(DATA_ENTRY_SUBMIT, enabled=False)
        portal.add_control(DATA_ENTRY_AUTO_POST, checked=True)
        portal.add_control(EDIT_AMOUNT_INPUT)
        portal.add_control(EDIT_UPDATE)
        self.respond = respond
        self.open_er = None
        self.submitted = []
        self.updated = []

        portal.on_open = self.open
        portal.on_import = self.imported
        portal.on_ack = self.acknowledged
        portal.on_click[DATA_ENTRY_IMPORT] = self.show_import
        portal.on_click[DATA_ENTRY_SUBMIT] = self.submit
        portal.on_click[EDIT_UPDATE] = self.update

    def open(self, portal, row, link):
        self.open_er = row["er"]
        portal.header = f"Employer {row['er']} ({row['er']})"
        portal.controls[DATA_ENTRY_SUBMIT].enabled = False
        portal.tables[EMPLOYEE_TABLE] = []
        portal.page = PageKind.DATA_ENTRY if link == "data_entry" else PageKind.EDIT_PRIVATE

    def show_import(self, portal, control):
        portal.import_rows = ["November 2025", "Dec 2025", "January 2026"]

    def imported(self, portal):
        portal.tables[EMPLOYEE_TABLE] = self.employees[self.open_er]
        portal.controls[DATA_ENTRY_SUBMIT].enabled = True

    def submit(self, portal, control):
        self.submitted.append(self.open_er)
        portal.dialog = consent_dialog()

    def acknowledged(self, portal, dialog):
        if dialog.kind == "consent" and self.respond is not None:
            portal.dialog = self.respond()

    def update(self, portal, control):
        self.updated.append((self.open_er, portal.controls[EDIT_AMOUNT_INPUT].value))
        self.employees[self.open_er] = PAID


def test_clean_cr_is_imported_and_submitted(seed, scheduler, portal, current):
    seed(_validation_state(XENO))
    site = Portal(portal, {XENO: PAID})

    scheduler.run(max_ticks=20)

    state = current()
    assert state.phase == Phase.COMPLETE
    item = state.validation_queue[0]
    assert (item.status, item.result) == (ItemStatus.DONE, "submitted")
    assert site.submitted == [XENO]
    assert portal.selected_import == "Dec 2025"
    # Post-after-validation follows the stored preference (off)
    assert not portal.controls[DATA_ENTRY_AUTO_POST].checked
    assert portal.acknowledged == ["consent", "success"]


def test_auto_post_preference_is_applied(seed, scheduler, portal):
    seed(_validation_state(XENO, auto_post_after_validation=True))
    Portal(portal, {XENO: PAID})
    portal.controls[DATA_ENTRY_AUTO_POST].checked = False

    scheduler.run(max_ticks=20)

    assert portal.controls[DATA_ENTRY_AUTO_POST].checked


def test_error_after_submit_fails_the_item(seed, scheduler, portal, current):
    seed(_validation_state(XENO, YARA))
    Portal(portal, {XENO: PAID, YARA: PAID}, respond=lambda: error_dialog("Validation failed: bad SSN"))

    scheduler.run(max_ticks=30)

    state = current()
    assert [(i.er, i.result) for i in state.validation_queue] == [(XENO, "error"), (YARA, "error")]
    assert state.validation_queue[0].message == "Validation failed: bad SSN"
    summary = build_report(state)["summary"]
    assert summary["validationFailed"] == 2


def test_submit_without_response_times_out(seed, scheduler, portal, clock, current):
    seed(_validation_state(XENO))
    site = Portal(portal, {XENO: PAID}, respond=None)

    for _ in range(10):
        if site.submitted:
            break
        scheduler.tick()
    scheduler.tick()
    assert current().validation_state == "submitted_awaiting"

    clock.advance(config.RESPONSE_TIMEOUT_MS + 1)
    scheduler.tick()

    item = current().validation_queue[0]
    assert item.status == ItemStatus.FAILED
    assert item.message == "Timeout waiting for validation response"


def test_missing_cr_goes_to_the_back_then_halts(seed, scheduler, portal, current):
    seed(_validation_state(XENO, YARA))
    Portal(portal, {}, listed=[])

    scheduler.run(max_ticks=40)

    state = current()
    assert state.intervention_required
    assert state.is_paused
    assert "None of the remaining 2 CRs" in state.intervention_message
    assert [i.not_found_count for i in state.validation_queue] == [3, 3]
    assert portal.clicks.count(LIST_SEARCH) >= 6


def test_search_finds_a_cr_outside_the_visible_page(seed, scheduler, portal, current):
    seed(_validation_state(XENO))
    site = Portal(portal, {XENO: PAID}, listed=[])

    def search(portal, control):
        query = portal.controls[LIST_SEARCH_INPUT].value
        portal.tables[UNPROCESSED_TABLE] = [{"er": query}] if query in site.employees else []

    portal.on_click[LIST_SEARCH] = search
    scheduler.run(max_ticks=20)

    assert current().validation_queue[0].status == ItemStatus.DONE


def test_missing_previous_month_needs_a_human(seed, scheduler, portal, current):
    seed(_validation_state(XENO))
    Portal(portal, {XENO: PAID})
    portal.on_click[DATA_ENTRY_IMPORT] = lambda portal, control: setattr(portal, "import_rows", ["March 2025"])

    scheduler.run(max_ticks=10)

    state = current()
    assert state.intervention_required
    assert "Previous month not found" in state.intervention_message
    assert "December 2025" in state.intervention_message


def test_ctb_shortfall_goes_through_wage_edit_and_back(seed, scheduler, portal, current):
    seed(_validation_state(XENO))
    site = Portal(portal, {XENO: UNDERPAID})

    scheduler.run(max_ticks=40)

    state = current()
    assert state.phase == Phase.COMPLETE
    assert site.updated == [(XENO, "179.35")]
    assert site.submitted == [XENO]

    assert len(state.ctb_issue_log) == 1
    issue = state.ctb_issue_log[0]["issues"]
    assert [(i["ssNumber"], i["requiredAdjustment"]) for i in issue] == [("S1", 39.35)]

    edit = state.wage_edit_queue[0]
    assert (edit.current_total, edit.adjusted_total) == (140.0, 179.35)
    assert (edit.status, edit.result, edit.message) == (ItemStatus.DONE, "updated", "Total adjusted to 179.35")
    assert state.needs_wage_edit == []
    assert [(i.er, i.status) for i in state.validation_queue] == [(XENO, ItemStatus.DONE)]

    report = build_report(state)
    assert report["wageEdits"][0]["affectedEmployees"] == 1
    assert report["summary"]["validated"] == 1


def test_cr_missing_from_edit_list_is_still_validated(seed, scheduler, portal, current):
    seed(_validation_state(XENO))
    site = Portal(portal, {XENO: UNDERPAID})

    # Park the CR, then hide it from the list for the whole edit pass
    for _ in range(10):
        scheduler.tick()
        if current().phase == Phase.WAGE_EDIT:
            break
    portal.tables[UNPROCESSED_TABLE] = []
    for _ in range(20):
        scheduler.tick()
        if current().phase == Phase.VALIDATION:
            break
    portal.tables[UNPROCESSED_TABLE] = [{"er": XENO}]

    scheduler.run(max_ticks=20)

    state = current()
    edit = state.wage_edit_queue[0]
    assert (edit.status, edit.result, edit.message) == (
        ItemStatus.FAILED, "not_found", "CR not found in unprocessed list",
    )
    # Back in validation, still short, and not parked a second time
    assert state.phase == Phase.COMPLETE
    assert [(i.er, i.status, i.result) for i in state.validation_queue] == [
        (XENO, ItemStatus.FAILED, "ctb_below_minimum"),
    ]
    assert site.updated == []
    assert site.submitted == []
    assert len(state.ctb_issue_log) == 1
    assert build_report(state)["summary"]["validationFailed"] == 1


def test_failed_edit_returns_to_validation_and_fails_there(seed, scheduler, portal, current):
    seed(_validation_state(XENO, YARA))
    site = Portal(portal, {XENO: UNDERPAID, YARA: PAID})
    portal.controls[EDIT_UPDATE].enabled = False

    scheduler.run(max_ticks=60)

    state = current()
    assert state.phase == Phase.COMPLETE
    assert [(i.er, i.status, i.result) for i in state.wage_edit_queue] == [
        (XENO, ItemStatus.FAILED, "stuck"),
    ]
    assert [(i.er, i.status, i.result) for i in state.validation_queue] == [
        (YARA, ItemStatus.DONE, "submitted"),
        (XENO, ItemStatus.FAILED, "ctb_below_minimum"),
    ]
    assert state.validation_queue[1].message == "1 employee(s) still below 79.35 after wage edit"
    assert site.submitted == [YARA]
    summary = build_report(state)["summary"]
    assert summary["validated"] == 1
    assert summary["validationFailed"] == 1


def test_force_scan_builds_queue_from_review_list(seed, scheduler, portal, current):
    seed(_validation_state(validation_state="force_scan", force_validation=True))
    Portal(portal, {XENO: PAID, YARA: PAID}, listed=[XENO, YARA, XENO])

    scheduler.tick()

    state = current()
    assert [i.er for i in state.validation_queue] == [XENO, YARA]
    assert state.validation_state is None


def test_force_scan_of_empty_list_completes(seed, scheduler, portal, current):
    seed(_validation_state(validation_state="force_scan", force_validation=True))
    Portal(portal, {}, listed=[])

    scheduler.tick()

    state = current()
    assert state.phase == Phase.COMPLETE
    assert not state.force_validation


def test_data_entry_page_for_a_skipped_cr_returns_to_list(seed, scheduler, portal):
    seed(_validation_state(XENO))
    Portal(portal, {XENO: PAID})
    portal.page = PageKind.DATA_ENTRY

    scheduler.tick()

    assert portal.page == PageKind.UNPROCESSED
    assert portal.clicks == []


@pytest.mark.parametrize("phase", [Phase.VALIDATION, Phase.WAGE_EDIT])
def test_unknown_dialog_needs_a_human(seed, scheduler, portal, current, phase):
    state = _validation_state(XENO)
    state.phase = phase
    seed(state)
    Portal(portal, {XENO: PAID})
    portal.dialog = unknown_dialog()

    scheduler.tick()

    assert current().intervention_required


@pytest.mark.parametrize("phase", [Phase.VALIDATION, Phase.WAGE_EDIT])
def test_unknown_page_that_persists_fails_the_item(seed, scheduler, portal, current, phase):
    state = _validation_state(XENO)
    if phase == Phase.WAGE_EDIT:
        state.phase = phase
        state.wage_edit_queue = [
            WageAdjustmentItem(er=XENO, name="Xeno", period="202601", current_total=140.0, adjusted_total=179.35),
        ]
    seed(state)
    Portal(portal, {XENO: PAID})
    portal.page = PageKind.REPORT
    portal.navigate = lambda kind: portal.navigations.append(kind)

    for _ in range(config.MAX_STUCK_COUNT):
        scheduler.tick()

    stored = current()
    item = (stored.validation_queue if phase == Phase.VALIDATION else stored.wage_edit_queue)[0]
    assert (item.status, item.message) == (ItemStatus.FAILED, "Stuck on an unknown page")
    assert portal.navigations[:2] == [PageKind.UNPROCESSED, PageKind.UNPROCESSED]
