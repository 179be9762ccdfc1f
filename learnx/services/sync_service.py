"""Repair paths for payments whose webhook never arrived.

``sync_paid_orders`` replays the gateway's recent PAID orders and
``sweep_pending_payments`` re-checks local PENDING records. Both finish
payments through ``reconciliation_service`` only. ``ReconciliationSweeper``
runs them periodically on a daemon thread.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import sentry_sdk

from learnx.errors import GatewayError, ValidationError
from learnx.logging_config import log_event
from learnx.repositories import payments_repo
from learnx.services import payment_state, reconciliation_service

logger = logging.getLogger('learnx.sync')

SWEEP_BATCH_LIMIT = 200
PERIODIC_SYNC_LOOKBACK_DAYS = 1


@dataclass
class SyncReport:
    scanned: int = 0
    synced: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self):
        return {
            'syncedCount': self.synced,
            'scannedCount': self.scanned,
            'skippedCount': self.skipped,
            'errorCount': self.errors,
        }


@dataclass
class SweepReport:
    checked: int = 0
    granted: int = 0
    failed: int = 0
    still_pending: int = 0
    errors: int = 0

    def to_dict(self):
        return {
            'checkedCount': self.checked,
            'grantedCount': self.granted,
            'failedCount': self.failed,
            'pendingCount': self.still_pending,
            'errorCount': self.errors,
        }


def lookback_window(lookback_days, today):
    """Return ``(from, to)`` ISO dates covering the trailing window through tomorrow."""
    start = today - timedelta(days=int(lookback_days))
    end = today + timedelta(days=1)
    return start.isoformat(), end.isoformat()


def sync_paid_orders(ctx, lookback_days=None, today=None):
    gateway = ctx.require_gateway()
    db = ctx.require_db()
    days = lookback_days or ctx.config.sync_lookback_days
    if today is None:
        today = datetime.fromtimestamp(ctx.time.time(), tz=timezone.utc).date()
    from_date, to_date = lookback_window(days, today)

    orders = {}
    for order in gateway.iter_orders(from_date, to_date, order_status=payment_state.GATEWAY_PAID,
                                     count=ctx.config.sync_page_size):
        order_id = reconciliation_service.normalize_order_id((order or {}).get('order_id'))
        if order_id:
            orders[order_id] = order

    report = SyncReport(scanned=len(orders))
    local_records = payments_repo.get_many(db, list(orders))
    for order_id, order in orders.items():
        record = local_records.get(order_id)
        if record and payment_state.normalize_status(record.get('status')) == payment_state.SUCCESS:
            report.skipped += 1
            continue
        try:
            result = reconciliation_service.apply_gateway_order(ctx, order, 'sync')
        except ValidationError as e:
            report.errors += 1
            logger.warning(f"Sync could not reconcile order {order_id}: {e.message}")
            continue
        except Exception:
            report.errors += 1
            logger.exception(f"Sync failed on order {order_id}")
            continue
        if result.granted:
            report.synced += 1
        else:
            report.skipped += 1

    log_event(logger, logging.INFO, 'sync_completed', from_date=from_date, to_date=to_date, **report.to_dict())
    return report


def sweep_pending_payments(ctx, now_ts=None, limit=SWEEP_BATCH_LIMIT):
    db = ctx.require_db()
    ctx.require_gateway()
    now_ts = ctx.time.time() if now_ts is None else now_ts
    cutoff = now_ts - ctx.config.reconcile_pending_min_age_seconds
    report = SweepReport()
    for doc in payments_repo.list_by_status_created_before(db, payment_state.PENDING, cutoff, limit):
        report.checked += 1
        try:
            result = reconciliation_service.reconcile_order(ctx, doc.id, 'sweep')
        except (GatewayError, ValidationError) as e:
            report.errors += 1
            logger.warning(f"Sweep could not reconcile order {doc.id}: {e.message}")
            continue
        except Exception:
            report.errors += 1
            logger.exception(f"Sweep failed on order {doc.id}")
            continue
        if result.outcome == payment_state.OUTCOME_GRANTED:
            report.granted += 1
        elif result.outcome == payment_state.OUTCOME_FAILED:
            report.failed += 1
        elif result.outcome == payment_state.OUTCOME_PENDING:
            report.still_pending += 1

    log_event(logger, logging.INFO, 'sweep_completed', **report.to_dict())
    return report


class ReconciliationSweeper:
    """Daemon thread running the sweep and a short sync on a fixed interval."""

    def __init__(self, ctx, interval_seconds):
        self.ctx = ctx
        self.interval_seconds = max(1, int(interval_seconds))
        self._stop = threading.Event()
        self._thread = None

    def run_once(self):
        sweep = sweep_pending_payments(self.ctx)
        sync = sync_paid_orders(self.ctx, lookback_days=PERIODIC_SYNC_LOOKBACK_DAYS)
        return sweep, sync

    def _run(self):
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception as exc:
                logger.exception('Periodic reconciliation sweep failed')
                sentry_sdk.capture_exception(exc)

    def start(self):
        if self._thread is not None:
            return self._thread
        self._thread = threading.Thread(target=self._run, name='learnx-reconcile-sweeper', daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
