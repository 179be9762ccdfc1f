#!/usr/bin/env python3
"""Replay recent PAID gateway orders and grant anything that was missed.

Usage examples:
  ./venv/bin/python scripts/sync_transactions.py --lookback-days 30
  ./venv/bin/python scripts/sync_transactions.py --sweep
"""

import argparse
import dataclasses
import json

from dotenv import load_dotenv

from learnx import create_app
from learnx.config import load_config
from learnx.extensions import EXTENSION_KEY
from learnx.services import sync_service


def build_context():
    load_dotenv()
    config = dataclasses.replace(load_config(), reconcile_sweep_interval_seconds=0)
    app = create_app(config)
    return app.extensions[EXTENSION_KEY]


def main():
    parser = argparse.ArgumentParser(description="Reconcile gateway payments with local payment records.")
    parser.add_argument(
        "--lookback-days",
        type=int,
        default=None,
        help="How many days of PAID gateway orders to replay (defaults to SYNC_LOOKBACK_DAYS).",
    )
    parser.add_argument(
        "--sweep",
        action="store_true",
        help="Also re-check local PENDING payments against the gateway.",
    )
    args = parser.parse_args()

    ctx = build_context()
    summary = {"sync": sync_service.sync_paid_orders(ctx, lookback_days=args.lookback_days).to_dict()}
    if args.sweep:
        summary["sweep"] = sync_service.sweep_pending_payments(ctx).to_dict()
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
