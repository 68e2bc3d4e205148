#!/usr/bin/env python3
"""
run_notification_jobs.py - Run scheduled AMMS push notification jobs.

Usage examples:
  python scripts/run_notification_jobs.py pm-schedule
  python scripts/run_notification_jobs.py pm-schedule --days-before 3
  python scripts/run_notification_jobs.py long-repairs --threshold-minutes 120
  python scripts/run_notification_jobs.py --env-file /path/to/.env long-repairs

Intended schedule: pm-schedule once a day, long-repairs every 30 minutes.
"""
import argparse
import logging
import os
import sys
import textwrap
from pathlib import Path

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parents[1] / "backend"
sys.path.append(str(BACKEND_DIR))

from amms.core.logging import setup_logging  # noqa: E402
from amms.db import SessionScope  # noqa: E402
from amms.modules.notifications.jobs import CheckLongRepairs, NotifyPmSchedules  # noqa: E402
from amms.modules.notifications.schemas import PmScheduleNotifyRequest  # noqa: E402

logger = logging.getLogger("notifications.jobs")


def LoadEnvFile(EnvPath: str | None) -> None:
    if not EnvPath:
        return
    if not os.path.exists(EnvPath):
        raise RuntimeError(f"Env file not found: {EnvPath}")
    load_dotenv(dotenv_path=EnvPath)


def ParseArgs(Argv: list[str] | None = None) -> argparse.Namespace:
    Parser = argparse.ArgumentParser(description="Run AMMS push notification jobs.")
    Parser.add_argument("--env-file", default=None, help="Load environment variables from this file first.")
    Subparsers = Parser.add_subparsers(dest="job", required=True)

    PmParser = Subparsers.add_parser("pm-schedule", help="Notify PM schedules due soon.")
    PmParser.add_argument("--days-before", type=int, default=0, choices=range(0, 31), metavar="N")
    PmParser.add_argument("--notify-all", action="store_true", help="Notify every technician, not only the assignee.")

    LongParser = Subparsers.add_parser("long-repairs", help="Warn about repairs running past the threshold.")
    LongParser.add_argument("--threshold-minutes", type=int, default=120)

    return Parser.parse_args(Argv)


def RunJob(Args: argparse.Namespace):
    with SessionScope() as Db:
        if Args.job == "pm-schedule":
            Request = PmScheduleNotifyRequest(
                days_before=Args.days_before,
                notify_assigned_only=not Args.notify_all,
            )
            return NotifyPmSchedules(Db, Request)
        return CheckLongRepairs(Db, threshold_minutes=Args.threshold_minutes)


def Main(Argv: list[str] | None = None) -> int:
    Args = ParseArgs(Argv)
    LoadEnvFile(Args.env_file)
    setup_logging()

    try:
        Result = RunJob(Args)
    except KeyboardInterrupt:
        return 0
    except Exception as Ex:
        logger.exception("notification job failed job=%s", Args.job)
        print("\nError:")
        print(textwrap.indent(str(Ex), "  "))
        return 1

    print(
        f"{Args.job}: sent={Result.sent} failed={Result.failed} "
        f"notified={Result.notified} processed={Result.processed} - {Result.message}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(Main())
