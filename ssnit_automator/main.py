#!/usr/bin/env python3
"""
SSNIT Automator - Main Orchestration

Start a phase, then keep one browser ticking through it. Control commands
(pause, resume, skip, stop, status) only touch the state file, so they can be
run from a second terminal while the engine is running.
"""

import argparse
import sys
import time

import ssnit_automator.config as config
from ssnit_automator.phases.scheduler import HOME_PAGES, EngineContext, StepScheduler
from ssnit_automator.phases.scraping import add_manual_record, delete_record, edit_record, progress
from ssnit_automator.reasoning.periods import InvalidPeriod, format_period
from ssnit_automator.reporting.report import build_report, export_csv, export_json, print_summary
from ssnit_automator.state.arbiter import StoreArbiter
from ssnit_automator.state.phase import PhaseController, PhaseError
from ssnit_automator.state.queue import capture_queue, validation_queue, wage_edit_queue
from ssnit_automator.state.store import JsonFileStore, StoreError, load_state
from ssnit_automator.utils.timing import format_elapsed_time


def apply_speed(speed):
    """Configure speed mode based on command-line flag"""
    if speed == "dev":
        config.DEV_TEST_SPEED = True
        config.SUPER_DEV_SPEED = False
        print("⚡ DEV_TEST_SPEED enabled\n")
    elif speed == "super":
        config.DEV_TEST_SPEED = False
        config.SUPER_DEV_SPEED = True
        print("⚡⚡ SUPER_DEV_SPEED enabled\n")
    else:
        config.DEV_TEST_SPEED = False
        config.SUPER_DEV_SPEED = False

    # Rebuild TIMING dict after config changes
    timing = config.get_active_timing()
    violations = config.validate_timing(timing)
    if violations:
        print("⚠️ TIMING PROFILE VIOLATIONS - Falling back to default profile:")
        for violation in violations:
            print(f"  - {violation}")
        timing = config.TIMING_PROFILES["default"]
    config.TIMING = timing


def load_er_numbers(args):
    """ERs from --ers text and/or --ers-file (one or more per line, # comments)"""
    tokens = []
    if args.ers:
        tokens.append(args.ers)
    if args.ers_file:
        with open(args.ers_file, "r", encoding="utf-8") as f:
            for line in f:
                line = line.split("#", 1)[0].strip()
                if line:
                    tokens.append(line)
    return "\n".join(tokens)


def run_engine(store, arbiter, headless=False):
    """Open the portal and tick until the phase finishes or Ctrl+C"""
    from ssnit_automator.browser.adapter import PlaywrightPageAdapter
    from ssnit_automator.browser.session import close_browser, launch_browser

    p, context, page = launch_browser(headless=headless)
    adapter = PlaywrightPageAdapter(page)
    arbiter.claim_active_surface()
    ctx = EngineContext(adapter=adapter, store=store, arbiter=arbiter)
    scheduler = StepScheduler(ctx)

    state = load_state(store)
    home = HOME_PAGES.get(state.phase)
    if home is not None:
        adapter.navigate(home)

    start_time = time.time()
    try:
        ticks = scheduler.run()
        print(f"\n✅ Engine stopped after {ticks} tick(s)")
    except KeyboardInterrupt:
        print("\n⏹️ Interrupted - progress is saved, continue with `run`")
    finally:
        print(f"⏱️  Total time: {format_elapsed_time(time.time() - start_time)}")
        close_browser(p, context)


def print_status(state):
    print(f"Phase:        {state.phase.value}")
    print(f"Period:       {format_period(state.target_period) or '-'}")
    print(f"Paused:       {state.is_paused}")
    if state.intervention_required:
        print(f"🛑 Intervention: {state.intervention_message}")
    if state.login_pending:
        print("🔒 Waiting for login")

    done, total = progress(state)
    print(f"Scraped:      {done}/{total}")
    for label, q in (
        ("Capture", capture_queue(state)),
        ("Validation", validation_queue(state)),
        ("Wage edit", wage_edit_queue(state)),
    ):
        if len(q):
            counts = ", ".join(f"{k}={v}" for k, v in q.counts().items() if v)
            current = q.current()
            suffix = f" (current: {current.er})" if current else ""
            print(f"{label + ':':<13} {counts}{suffix}")
    if state.needs_wage_edit:
        print(f"Needs wage edit: {', '.join(i.er for i in state.needs_wage_edit)}")


def build_parser():
    parser = argparse.ArgumentParser(
        description="SSNIT Automator - contribution report capture and validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Speed Modes:
  --speed dev       faster delays for testing
  --speed super     fastest delays still above the safety floors
  (default)         Production speed

Examples:
  python -m ssnit_automator.main scrape --period 202601 --ers-file ers.txt
  python -m ssnit_automator.main capture
  python -m ssnit_automator.main validate --auto-post
  python -m ssnit_automator.main pause          (from a second terminal)
  python -m ssnit_automator.main report --csv results/report.csv
        """,
    )
    parser.add_argument("--store", default=config.STATE_FILE, help="State file (default: %(default)s)")
    parser.add_argument("--speed", choices=["dev", "super"], help="Speed mode: dev or super")
    parser.add_argument("--headless", action="store_true", help="Run the browser headless")
    sub = parser.add_subparsers(dest="command", required=True)

    scrape = sub.add_parser("scrape", help="Start scraping for a period and a batch of ERs")
    scrape.add_argument("--period", required=True, help="Target period YYYYMM")
    scrape.add_argument("--ers", help="ER numbers separated by commas, spaces or newlines")
    scrape.add_argument("--ers-file", help="File with ER numbers")

    sub.add_parser("capture", help="Start capture for every eligible scraped record")

    validate = sub.add_parser("validate", help="Start validation of captured CRs")
    validate.add_argument("--force", action="store_true", help="Validate every CR on the unprocessed list")
    post = validate.add_mutually_exclusive_group()
    post.add_argument("--auto-post", dest="auto_post", action="store_true", default=None,
                      help="Tick 'post after validation'")
    post.add_argument("--no-auto-post", dest="auto_post", action="store_false",
                      help="Untick 'post after validation'")

    sub.add_parser("wage-edit", help="Start wage edit for CRs below the minimum CTB")

    for name in ("scrape", "capture", "validate", "wage-edit"):
        sub.choices[name].add_argument("--start-only", action="store_true",
                                       help="Only record the new phase; do not open the browser")

    sub.add_parser("run", help="Continue the current phase in the browser")
    sub.add_parser("pause", help="Pause the running engine")
    sub.add_parser("resume", help="Resume (also clears an intervention)")
    sub.add_parser("skip", help="Skip the current item and resume")
    sub.add_parser("stop", help="Reset to IDLE and clear every queue")
    sub.add_parser("status", help="Show phase and queue progress")

    add = sub.add_parser("add-record", help="Add a manual employer record")
    add.add_argument("er")
    add.add_argument("--name", default="")
    add.add_argument("--lf", type=int, required=True, help="Number of employees")
    add.add_argument("--amount", type=float, required=True, help="Total contribution")

    edit = sub.add_parser("edit-record", help="Correct a scraped record")
    edit.add_argument("er")
    edit.add_argument("--name")
    edit.add_argument("--lf", type=int)
    edit.add_argument("--amount", type=float)

    delete = sub.add_parser("delete-record", help="Delete a scraped record")
    delete.add_argument("er")

    report = sub.add_parser("report", help="Summarize the run")
    report.add_argument("--csv", help="Write capture results as CSV")
    report.add_argument("--json", help="Write the full report as JSON")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    apply_speed(args.speed)

    store = JsonFileStore(args.store)
    arbiter = StoreArbiter(store)
    controller = PhaseController(store, arbiter=arbiter)
    command = args.command

    try:
        if command == "scrape":
            if not args.ers and not args.ers_file:
                parser.error("Either --ers or --ers-file must be provided")
            controller.start_scraping(args.period, load_er_numbers(args))
        elif command == "capture":
            controller.start_capture()
        elif command == "validate":
            controller.start_validation(force=args.force, auto_post=args.auto_post)
        elif command == "wage-edit":
            controller.start_wage_edit()
        elif command == "pause":
            controller.pause()
        elif command == "resume":
            controller.resume()
        elif command == "skip":
            controller.skip_current()
        elif command == "stop":
            controller.stop()
        elif command == "status":
            print_status(controller.load())
        elif command == "add-record":
            add_manual_record(store, args.er, args.name, args.lf, args.amount)
        elif command == "edit-record":
            edit_record(store, args.er, name=args.name, count=args.lf, amount=args.amount)
        elif command == "delete-record":
            delete_record(store, args.er)
        elif command == "report":
            report = build_report(controller.load())
            print_summary(report)
            if args.csv:
                export_csv(report, args.csv)
            if args.json:
                export_json(report, args.json)
    except (PhaseError, InvalidPeriod, StoreError) as e:
        print(f"❌ {e}")
        return 1

    if command == "run" or (command in ("scrape", "capture", "validate", "wage-edit") and not args.start_only):
        run_engine(store, arbiter, headless=args.headless)
    return 0


if __name__ == "__main__":
    sys.exit(main())
