"""CLI for the fleet reports bot: run sweeps, inspect reports, register the webhook."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys


async def _store():
    from app.db.engine import async_session_factory, create_tables
    from app.services.kv_store import KVStore
    from app.services.report_store import ReportStore

    await create_tables()
    return ReportStore(KVStore(async_session_factory))


async def cmd_run_reminders(args):
    """Run a single reminder sweep and print the summary."""
    from app.config import get_settings
    from app.services.notifier import build_notifier
    from app.services.reminders import run_reminders

    store = await _store()
    notifier = build_notifier()
    try:
        summary = await run_reminders(store, notifier, get_settings().reminders)
    finally:
        await notifier.aclose()
    print(f"checked={summary.checked} sent={summary.sent}")


async def cmd_list_open(args):
    store = await _store()
    ids = await store.open_ids()
    if not ids:
        print("No open reports")
        return
    for rid in ids:
        report = await store.get(rid)
        if report is None:
            print(f"  {rid}  (missing)")
            continue
        print(f"  {report.id}  {report.status.value:<8} {report.asset.value} {report.unit_number or '?'}  {report.problem}")


async def cmd_show_report(args):
    from app.services.formatter import format_history, format_report

    store = await _store()
    report = await store.get(args.report_id)
    if report is None:
        print(f"Report {args.report_id} not found")
        sys.exit(1)
    print(format_report(report, report.status.value.upper()))
    print(format_history(report))


async def cmd_set_webhook(args):
    from app.config import get_settings
    from app.services.notifier import build_notifier

    settings = get_settings()
    notifier = build_notifier()
    try:
        ok = await notifier.set_webhook(args.url, settings.webhook_secret)
    finally:
        await notifier.aclose()
    if not ok:
        print("setWebhook failed")
        sys.exit(1)
    print(f"Webhook set to {args.url}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Fleet reports bot CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run-reminders", help="Run one reminder sweep")
    subparsers.add_parser("list-open", help="List reports in the open index")

    sr = subparsers.add_parser("show-report", help="Print a report and its history")
    sr.add_argument("report_id", help="Report id, e.g. 4542 or 4542-2")

    sw = subparsers.add_parser("set-webhook", help="Register the Telegram webhook URL")
    sw.add_argument("url", help="Public URL of the /webhook endpoint")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "run-reminders":
        asyncio.run(cmd_run_reminders(args))
    elif args.command == "list-open":
        asyncio.run(cmd_list_open(args))
    elif args.command == "show-report":
        asyncio.run(cmd_show_report(args))
    elif args.command == "set-webhook":
        asyncio.run(cmd_set_webhook(args))


if __name__ == "__main__":
    main()
