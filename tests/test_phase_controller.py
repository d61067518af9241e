import pytest

from ssnit_automator.phases.policy import ResponseTimeoutPolicy, StuckCounter, TimeoutDecision
from ssnit_automator.reasoning.periods import InvalidPeriod
from ssnit_automator.state.model import (
    AutomationState,
    EmployerRecord,
    ItemStatus,
    Observation,
    Phase,
    QueueItem,
    ValidationQueueItem,
    WageAdjustmentItem,
)
from ssnit_automator.state.phase import (
    SKIP_MESSAGE,
    IllegalPhaseTransition,
    PhaseError,
    parse_er_numbers,
    transition,
)


def _record(er, count=3, amount=300.0, **flags):
    record = EmployerRecord(
        er=er, name=f"Employer {er}", period="202601",
        p1=[Observation("DEC 2025", "NORMAL", count, amount)] if count is not None else [],
    )
    for key, value in flags.items():
        setattr(record, key, value)
    return record


class TestPolicy:
    def test_wait_retry_fail(self):
        policy = ResponseTimeoutPolicy(timeout_ms=1000, max_retries=1)
        assert policy.evaluate(0, 0, 1000) == TimeoutDecision.WAIT
        assert policy.evaluate(0, 0, 1001) == TimeoutDecision.RETRY
        assert policy.evaluate(0, 1, 1001) == TimeoutDecision.FAIL

    def test_elapsed_never_negative(self):
        assert ResponseTimeoutPolicy().elapsed(500, 100) == 0

    def test_stuck_counter(self):
        stuck = StuckCounter(limit=2)
        assert not stuck.bump()
        assert stuck.bump()
        assert str(stuck) == "2/2"
        stuck.reset()
        assert stuck.count == 0
        assert not stuck.bump(limit=3)


class TestHelpers:
    def test_parse_er_numbers(self):
        valid, invalid = parse_er_numbers("123456789, 987654321\n123456789  12345 abc")
        assert valid == ["123456789", "987654321"]
        assert invalid == ["12345", "abc"]

    def test_parse_er_numbers_from_list(self):
        assert parse_er_numbers(["111111111", " 222222222 "]) == (["111111111", "222222222"], [])

    def test_transition_table(self):
        state = AutomationState()
        transition(state, Phase.SCRAPING)
        transition(state, Phase.IDLE)
        transition(state, Phase.CAPTURE)
        with pytest.raises(IllegalPhaseTransition):
            transition(state, Phase.VALIDATION)

    def test_wage_edit_only_returns_to_validation(self):
        state = AutomationState(phase=Phase.WAGE_EDIT)
        with pytest.raises(IllegalPhaseTransition):
            transition(state, Phase.COMPLETE)


class TestStarts:
    def test_start_scraping(self, controller, current, clock):
        state, invalid = controller.start_scraping("202601", "123456789 bad 987654321 123456789")
        assert invalid == ["bad"]
        stored = current()
        assert stored.phase == Phase.SCRAPING
        assert stored.er_queue == ["123456789", "987654321"]
        assert stored.original_er_count == 2
        assert stored.started_at == clock()
        assert stored.active_worker_id == "surface-test"

    def test_start_scraping_rejects_bad_input(self, controller):
        with pytest.raises(InvalidPeriod):
            controller.start_scraping("2026-01", "123456789")
        with pytest.raises(PhaseError):
            controller.start_scraping("202601", "12 34")

    def test_start_scraping_resets_previous_run(self, controller, seed, current):
        seed(AutomationState(
            phase=Phase.COMPLETE, employers=[_record("111111111")], auto_post_after_validation=True,
        ))
        controller.start_scraping("202602", "222222222")
        stored = current()
        assert stored.employers == []
        assert stored.auto_post_after_validation is True

    def test_cannot_start_while_active(self, controller, seed):
        seed(AutomationState(phase=Phase.CAPTURE))
        with pytest.raises(PhaseError):
            controller.start_scraping("202601", "123456789")
        with pytest.raises(PhaseError):
            controller.start_validation()

    def test_start_capture_queues_eligible_only(self, controller, seed, current):
        seed(AutomationState(target_period="202601", employers=[
            _record("111111111"),
            _record("222222222", count=None),
            _record("333333333", self_capture=True),
            _record("444444444", already_captured=True),
            _record("555555555", count=2, amount=50.0),
        ]))
        controller.start_capture()
        stored = current()
        assert stored.phase == Phase.CAPTURE
        assert [(i.er, i.unit_count, i.amount) for i in stored.capture_queue] == [
            ("111111111", 3, 300.0),
            ("555555555", 2, 50.0),
        ]

    def test_start_capture_with_nothing_eligible(self, controller, seed):
        seed(AutomationState(employers=[_record("111111111", count=0)]))
        with pytest.raises(PhaseError):
            controller.start_capture()

    def test_start_validation_from_capture_results(self, controller, seed, current):
        seed(AutomationState(phase=Phase.COMPLETE, target_period="202601", employers=[_record("111111111")],
                             capture_queue=[
                                 QueueItem(er="111111111", status=ItemStatus.DONE),
                                 QueueItem(er="222222222", status=ItemStatus.DUPLICATE),
                                 QueueItem(er="333333333", status=ItemStatus.FAILED),
                             ]))
        controller.start_validation(auto_post=True)
        stored = current()
        assert stored.phase == Phase.VALIDATION
        assert [i.er for i in stored.validation_queue] == ["111111111", "222222222"]
        assert stored.validation_queue[0].name == "Employer 111111111"
        assert stored.auto_post_after_validation is True
        assert stored.validation_state is None

    def test_start_validation_without_captures(self, controller, seed):
        seed(AutomationState(phase=Phase.COMPLETE))
        with pytest.raises(PhaseError):
            controller.start_validation()

    def test_force_validation(self, controller, seed, current):
        seed(AutomationState(phase=Phase.COMPLETE, target_period="202601"))
        controller.start_validation(force=True)
        stored = current()
        assert stored.validation_state == "force_scan"
        assert stored.force_validation is True
        assert stored.validation_queue == []

    def test_force_validation_needs_a_period(self, controller):
        with pytest.raises(PhaseError):
            controller.start_validation(force=True)

    def test_start_wage_edit(self, controller, seed, current):
        item = WageAdjustmentItem(er="111111111", name="X", period="202601",
                                  current_total=140.0, adjusted_total=179.35)
        seed(AutomationState(phase=Phase.COMPLETE, needs_wage_edit=[item]))
        controller.start_wage_edit()
        stored = current()
        assert stored.phase == Phase.WAGE_EDIT
        assert [i.er for i in stored.wage_edit_queue] == ["111111111"]

    def test_start_wage_edit_with_nothing_parked(self, controller):
        with pytest.raises(PhaseError):
            controller.start_wage_edit()


class TestControl:
    def test_pause_and_resume(self, controller, seed, current):
        seed(AutomationState(phase=Phase.CAPTURE))
        controller.pause()
        assert current().is_paused
        controller.require_intervention("Look at this")
        assert current().intervention_message == "Look at this"
        controller.resume()
        stored = current()
        assert not stored.is_paused
        assert not stored.intervention_required
        assert stored.intervention_message == ""

    def test_stop_clears_queues_and_keeps_records(self, controller, seed, current):
        seed(AutomationState(
            phase=Phase.VALIDATION, target_period="202601", employers=[_record("111111111")],
            validation_queue=[ValidationQueueItem(er="111111111")], is_paused=True,
            ctb_issue_log=[{"er": "111111111"}],
        ))
        controller.stop()
        stored = current()
        assert stored.phase == Phase.IDLE
        assert stored.validation_queue == []
        assert not stored.is_paused
        assert [r.er for r in stored.employers] == ["111111111"]
        assert stored.ctb_issue_log == [{"er": "111111111"}]

    def test_stop_cancels_scheduler(self, store, arbiter):
        from ssnit_automator.state.phase import PhaseController

        class Recorder:
            cancelled = False

            def cancel(self):
                self.cancelled = True

        recorder = Recorder()
        PhaseController(store, arbiter=arbiter, scheduler=recorder).stop()
        assert recorder.cancelled

    def test_skip_in_capture(self, controller, seed, current):
        seed(AutomationState(
            phase=Phase.CAPTURE, is_paused=True, intervention_required=True,
            capture_queue=[QueueItem(er="111111111"), QueueItem(er="222222222")],
            awaiting_response=True, last_submit_time=10,
        ))
        skipped = controller.skip_current()
        stored = current()
        assert skipped.er == "111111111"
        assert stored.capture_queue[0].status == ItemStatus.SKIPPED
        assert stored.capture_queue[0].message == SKIP_MESSAGE
        assert stored.capture_index == 1
        assert not stored.awaiting_response
        assert not stored.is_paused
        assert not stored.intervention_required
        assert stored.phase == Phase.CAPTURE

    def test_skipping_last_capture_item_completes(self, controller, seed, current):
        seed(AutomationState(phase=Phase.CAPTURE, capture_queue=[QueueItem(er="111111111")]))
        controller.skip_current()
        assert current().phase == Phase.COMPLETE

    def test_skip_in_validation_resets_sub_state(self, controller, seed, current):
        seed(AutomationState(
            phase=Phase.VALIDATION, validation_state="imported",
            validation_queue=[ValidationQueueItem(er="111111111"), ValidationQueueItem(er="222222222")],
        ))
        controller.skip_current()
        stored = current()
        assert stored.validation_state is None
        assert stored.validation_queue[0].status == ItemStatus.SKIPPED
        assert stored.validation_index == 1

    def test_skip_outside_a_loop(self, controller):
        with pytest.raises(PhaseError):
            controller.skip_current()
