#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Scheduled deadline scan.

Meant to run from cron once a day:

    python scripts/run_deadline_scan.py [--date YYYY-MM-DD]
"""

import argparse
import json
import sys
import os
import logging
from datetime import date

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from domain.errors import PQRSError
from models.enums import DEFAULT_DEADLINE_THRESHOLD_DAYS, RESOLVED_STATE
from services.case_store import CaseStore
from services.deadlines import DeadlineMonitor
from services.mongodb import get_mongodb_service, close_mongodb_connection
from services.notifications import create_notification_service
from services.redis import create_alert_cooldown

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Alert on PQRS cases near their response deadline")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Reference date (default: today)")
    return parser.parse_args(argv)


def build_monitor() -> DeadlineMonitor:
    """Deadline monitor configured from environment variables."""
    return DeadlineMonitor(
        CaseStore(get_mongodb_service()),
        create_notification_service(os.getenv('PQRS_NOTIFICATION_RECIPIENT', '')),
        threshold_days=int(os.getenv('DEADLINE_THRESHOLD_DAYS', str(DEFAULT_DEADLINE_THRESHOLD_DAYS))),
        excluded_state=os.getenv('RESOLVED_STATE', RESOLVED_STATE),
        cooldown=create_alert_cooldown(float(os.getenv('ALERT_COOLDOWN_HOURS', '0')))
    )


def main(argv=None) -> int:
    args = parse_args(argv)
    reference_date = args.date or date.today()

    try:
        result = build_monitor().scan_and_alert(reference_date)
    except PQRSError as e:
        logger.error(f"Deadline scan failed: {e}")
        return 1
    finally:
        close_mongodb_connection()

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
