"""Run report built from the persisted state, with CSV and JSON export"""

import csv
import json
from pathlib import Path

from ssnit_automator.reasoning.periods import format_period
from ssnit_automator.state.model import ItemStatus
from ssnit_automator.utils.logging import local_timestamp

CSV_HEADER = ["ER Number", "Employer Name", "LF", "Amount", "Result", "Message", "Timestamp"]

CAPTURE_BUCKETS = ["success", "duplicate", "error", "failed", "skipped"]

CAPTURED_STATUSES = (ItemStatus.DONE, ItemStatus.DUPLICATE)


def _scrape_bucket(record):
    if record.is_manual:
        return "manualEntries"
    if record.already_captured:
        return "alreadyCaptured"
    if record.continuity_error:
        return "continuityErrors"
    if record.zero_value_error:
        return "zeroValues"
    if record.self_capture:
        return "selfCapture"
    return "valid"


def _entry(item, name=None, lf=None, amount=None):
    return {
        "er": item.er,
        "employerName": name if name is not None else item.name,
        "lf": lf if lf is not None else getattr(item, "unit_count", 0),
        "amt": amount if amount is not None else getattr(item, "amount", 0.0),
        "result": item.result or ("pending" if not item.is_terminal else item.status.value),
        "message": item.message,
        "timestamp": local_timestamp(item.timestamp) if item.timestamp else None,
    }


def build_report(state):
    """Summary document for one run"""
    scrape = {
        "valid": [],
        "alreadyCaptured": [],
        "continuityErrors": [],
        "zeroValues": [],
        "selfCapture": [],
        "manualEntries": [],
    }
    for record in state.employers:
        scrape[_scrape_bucket(record)].append({
            "er": record.er,
            "employerName": record.name,
            "lf": record.unit_count(),
            "amt": record.amount(),
            "isManual": record.is_manual,
            "isEdited": record.is_edited,
        })

    capture = {bucket: [] for bucket in CAPTURE_BUCKETS}
    for item in state.capture_queue:
        if item.result in capture:
            capture[item.result].append(_entry(item))

    validation = [_entry(item) for item in state.validation_queue]
    wage_edits = [
        {
            "er": item.er,
            "employerName": item.name,
            "currentTotal": item.current_total,
            "adjustedTotal": item.adjusted_total,
            "affectedEmployees": len(item.issues),
            "result": item.result or item.status.value,
            "message": item.message,
        }
        for item in state.wage_edit_queue
    ]

    captured = sum(1 for i in state.capture_queue if i.status in CAPTURED_STATUSES)
    failed = sum(1 for i in state.capture_queue if i.status in (ItemStatus.FAILED, ItemStatus.SKIPPED))
    processed = captured + failed
    skipped_during_scrape = sum(
        len(scrape[k]) for k in ("alreadyCaptured", "continuityErrors", "zeroValues", "selfCapture")
    )

    return {
        "metadata": {
            "generatedAt": local_timestamp(),
            "targetPeriod": state.target_period,
            "periodFormatted": format_period(state.target_period),
            "phase": state.phase.value,
        },
        "summary": {
            "totalScraped": len(state.employers),
            "totalQueued": len(state.capture_queue),
            "captured": captured,
            "failed": failed,
            "validated": sum(1 for i in state.validation_queue if i.status == ItemStatus.DONE),
            "validationFailed": sum(1 for i in state.validation_queue if i.status == ItemStatus.FAILED),
            "skippedDuringScrape": skipped_during_scrape,
            "successRate": round(captured / processed * 100, 1) if processed else 0,
        },
        "scrapeResults": scrape,
        "captureResults": capture,
        "validationResults": validation,
        "wageEdits": wage_edits,
        "ctbIssueLog": list(state.ctb_issue_log),
    }


def capture_rows(report):
    """Flat rows for the CSV export, bucket order"""
    rows = []
    for bucket in CAPTURE_BUCKETS:
        for entry in report["captureResults"][bucket]:
            rows.append([
                entry["er"],
                entry["employerName"],
                entry["lf"],
                entry["amt"],
                entry["result"],
                entry["message"],
                entry["timestamp"] or "",
            ])
    return rows


def export_csv(report, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL)
        writer.writerow(CSV_HEADER)
        writer.writerows(capture_rows(report))
    print(f"📄 CSV report written to {path}")
    return path


def export_json(report, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, ensure_ascii=False, indent=2)
    print(f"📄 JSON report written to {path}")
    return path


def print_summary(report):
    summary = report["summary"]
    meta = report["metadata"]
    print("\n" + "=" * 60)
    print(f"REPORT - {meta['periodFormatted']} ({meta['phase']})")
    print("=" * 60)
    print(f"Scraped:            {summary['totalScraped']}")
    print(f"Skipped at scrape:  {summary['skippedDuringScrape']}")
    print(f"Queued for capture: {summary['totalQueued']}")
    print(f"Captured:           {summary['captured']}")
    print(f"Capture failed:     {summary['failed']}")
    print(f"Validated:          {summary['validated']}")
    print(f"Validation failed:  {summary['validationFailed']}")
    print(f"Success rate:       {summary['successRate']}%")
    print("=" * 60)
