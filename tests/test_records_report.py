import csv
import json

import pytest

from ssnit_automator.main import build_parser, load_er_numbers, main
from ssnit_automator.phases.scraping import add_manual_record, delete_record, edit_record, extract_record
from ssnit_automator.reporting.report import CSV_HEADER, build_report, export_csv, export_json
from ssnit_automator.state.model import (
    AutomationState,
    ItemStatus,
    Phase,
    QueueItem,
)
from ssnit_automator.state.phase import PhaseError
from ssnit_automator.state.store import JsonFileStore, load_state, save_state


def _scraped_state(phase=Phase.IDLE):
    rows = [
        {"er": "300000001", "name": "Delta Co", "type": "NORMAL", "count": 0, "period": "DEC 2025",
         "amount": 0.0, "self_capture": False},
    ]
    return AutomationState(
        phase=phase,
        target_period="202601",
        employers=[
            extract_record("300000001", rows, "202601", 1),
            extract_record("300000002", [], "202601", 2),
        ],
    )


class TestRecordOperations:
    def test_add_manual_record(self, seed, store):
        seed(_scraped_state())
        record = add_manual_record(store, " 300000009 ", "", 4, "410.5", clock=lambda: 99)
        stored = load_state(store).find_employer("300000009")
        assert stored == record
        assert stored.is_manual
        assert stored.name == "Manual Entry"
        assert stored.p1[0].period == "MANUAL"
        assert (stored.unit_count(), stored.amount()) == (4, 410.5)

    @pytest.mark.parametrize("er, count, amount", [
        ("30000000", 1, 1.0),
        ("300000001", 1, 1.0),
        ("300000009", 0, 1.0),
        ("300000009", 1, -2.0),
    ])
    def test_add_manual_record_rejects(self, seed, store, er, count, amount):
        seed(_scraped_state())
        with pytest.raises(PhaseError):
            add_manual_record(store, er, "X", count, amount)

    def test_edit_clears_flags(self, seed, store):
        seed(_scraped_state())
        edit_record(store, "300000001", name="Delta Company", count=3, amount=120.0)
        record = load_state(store).find_employer("300000001")
        assert record.name == "Delta Company"
        assert not record.zero_value_error
        assert record.is_edited
        assert record.p1[0].period == "EDITED"
        assert (record.unit_count(), record.amount()) == (3, 120.0)

    def test_edit_fills_in_missing_history(self, seed, store):
        seed(_scraped_state())
        edit_record(store, "300000002", count=2, amount=90.0)
        record = load_state(store).find_employer("300000002")
        assert not record.continuity_error
        assert record.normal_p1().period == "EDITED"

    def test_edit_keeps_manual_marker(self, seed, store):
        seed(_scraped_state())
        add_manual_record(store, "300000009", "Echo", 1, 80.0)
        edit_record(store, "300000009", amount=95.0)
        record = load_state(store).find_employer("300000009")
        assert record.p1[0].period == "MANUAL"
        assert record.amount() == 95.0

    def test_edit_needs_positive_values(self, seed, store):
        seed(_scraped_state())
        with pytest.raises(PhaseError):
            edit_record(store, "300000002", count=2)

    def test_delete(self, seed, store):
        seed(_scraped_state())
        delete_record(store, "300000002")
        assert [r.er for r in load_state(store).employers] == ["300000001"]
        with pytest.raises(PhaseError):
            delete_record(store, "300000002")

    @pytest.mark.parametrize("phase", [Phase.CAPTURE, Phase.VALIDATION, Phase.WAGE_EDIT])
    def test_records_are_locked_while_queues_run(self, seed, store, phase):
        seed(_scraped_state(phase))
        with pytest.raises(PhaseError):
            delete_record(store, "300000001")

    def test_records_can_change_while_scraping(self, seed, store):
        seed(_scraped_state(Phase.SCRAPING))
        add_manual_record(store, "300000009", "Echo", 1, 80.0)
        assert load_state(store).find_employer("300000009") is not None


def _captured_state():
    state = _scraped_state()
    state.phase = Phase.COMPLETE
    state.capture_queue = [
        QueueItem(er="300000003", name="Foxtrot", unit_count=2, amount=200.0,
                  status=ItemStatus.DONE, result="success", message="Data saved successfully", timestamp=1),
        QueueItem(er="300000004", name="Golf, Ltd", unit_count=1, amount=90.0,
                  status=ItemStatus.DUPLICATE, result="duplicate", message="Already exists"),
        QueueItem(er="300000005", name="Hotel", unit_count=1, amount=95.0,
                  status=ItemStatus.FAILED, result="failed", message="no response after retry"),
        QueueItem(er="300000006", name="India", unit_count=1, amount=85.0,
                  status=ItemStatus.SKIPPED, result="skipped", message="Manually skipped by user"),
    ]
    return state


class TestReport:
    def test_summary(self):
        report = build_report(_captured_state())
        summary = report["summary"]
        assert summary["totalScraped"] == 2
        assert summary["totalQueued"] == 4
        assert summary["captured"] == 2
        assert summary["failed"] == 2
        assert summary["skippedDuringScrape"] == 2
        assert summary["successRate"] == 50.0
        assert report["metadata"]["periodFormatted"] == "January 2026"
        assert [e["er"] for e in report["scrapeResults"]["zeroValues"]] == ["300000001"]
        assert [e["er"] for e in report["scrapeResults"]["continuityErrors"]] == ["300000002"]
        assert [e["er"] for e in report["captureResults"]["skipped"]] == ["300000006"]

    def test_empty_run_has_zero_rate(self):
        assert build_report(AutomationState())["summary"]["successRate"] == 0

    def test_csv_export(self, tmp_path):
        path = export_csv(build_report(_captured_state()), tmp_path / "out" / "report.csv")
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == CSV_HEADER
        assert [r[0] for r in rows[1:]] == ["300000003", "300000004", "300000005", "300000006"]
        assert rows[2][1] == "Golf, Ltd"
        assert rows[1][4] == "success"

    def test_json_export(self, tmp_path):
        path = export_json(build_report(_captured_state()), tmp_path / "report.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary"]["captured"] == 2


class TestCommandLine:
    def test_ers_from_text_and_file(self, tmp_path):
        ers_file = tmp_path / "ers.txt"
        ers_file.write_text("111111111  # first\n\n# comment only\n222222222,333333333\n", encoding="utf-8")
        args = build_parser().parse_args(["scrape", "--period", "202601", "--ers", "444444444",
                                          "--ers-file", str(ers_file)])
        assert load_er_numbers(args).split() == ["444444444", "111111111", "222222222,333333333"]

    def test_start_only_records_the_phase(self, tmp_path):
        path = tmp_path / "state.json"
        code = main(["--store", str(path), "scrape", "--period", "202601",
                     "--ers", "111111111,222222222", "--start-only"])
        assert code == 0
        state = load_state(JsonFileStore(path))
        assert state.phase == Phase.SCRAPING
        assert state.er_queue == ["111111111", "222222222"]

    def test_control_commands(self, tmp_path):
        path = tmp_path / "state.json"
        save_state(JsonFileStore(path), _captured_state())
        assert main(["--store", str(path), "pause"]) == 0
        assert load_state(JsonFileStore(path)).is_paused
        assert main(["--store", str(path), "resume"]) == 0
        assert not load_state(JsonFileStore(path)).is_paused

    def test_errors_return_nonzero(self, tmp_path, capsys):
        path = tmp_path / "state.json"
        assert main(["--store", str(path), "capture", "--start-only"]) == 1
        assert "No valid employers" in capsys.readouterr().out
        assert main(["--store", str(path), "skip"]) == 1

    def test_report_command_writes_files(self, tmp_path):
        path = tmp_path / "state.json"
        save_state(JsonFileStore(path), _captured_state())
        csv_path = tmp_path / "report.csv"
        assert main(["--store", str(path), "report", "--csv", str(csv_path)]) == 0
        assert csv_path.exists()

    def test_record_commands(self, tmp_path):
        path = tmp_path / "state.json"
        save_state(JsonFileStore(path), _scraped_state())
        assert main(["--store", str(path), "add-record", "300000009", "--lf", "2", "--amount", "150"]) == 0
        assert main(["--store", str(path), "edit-record", "300000001", "--lf", "1", "--amount", "80"]) == 0
        assert main(["--store", str(path), "delete-record", "300000002"]) == 0
        ers = [r.er for r in load_state(JsonFileStore(path)).employers]
        assert ers == ["300000001", "300000009"]
