# Overview: Service-layer operations for the daily cash balance chain; encapsulates snapshot reads and upserts.

"""
Cash Balance Chain

WHY: Cash in hand carries over from one day to the next. Day N opens with
day N-1's closing balance, so every single-day report depends on the one
before it. The chain is kept as an explicit (quarry, day) keyed snapshot
table rather than an implicit "read yesterday's note" inside each report.

STATES per (quarry, day): no snapshot -> snapshot. The only transition is a
single-day period metrics run persisting its closing balance.

RULES:
1. Missing history is normal (first operating day): opening balance is 0.0
2. Multi-day ranges open with the single most recent snapshot, the one for
   the day before to_date. Snapshots are never summed; each already
   subsumes everything before it.
3. Upserts are serialized per (quarry, day); last writer wins
"""

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..models import DailyBalanceSnapshot
from quarrydesk.services.concurrency import keyed_lock, lock_for_update, run_with_retry
from quarrydesk.time_utils import to_date_stamp


def get_snapshot(quarry_id: int, day: date) -> DailyBalanceSnapshot | None:
    return db.session.query(DailyBalanceSnapshot).filter(
        DailyBalanceSnapshot.quarry_id == quarry_id,
        DailyBalanceSnapshot.date_stamp == to_date_stamp(day),
    ).first()


def get_opening_balance(quarry_id: int | None, day: date) -> float:
    """Closing balance of the day before `day`, or 0.0 when there is none."""
    if quarry_id is None:
        return 0.0
    snapshot = get_snapshot(quarry_id, day - timedelta(days=1))
    if snapshot is None:
        return 0.0
    return float(snapshot.closing_balance or 0.0)


def get_range_opening_balance(quarry_id: int | None, from_date: date, to_date: date) -> float:
    """
    Opening balance for a reporting range.

    Single day: the previous day's closing balance.
    Multi-day: the snapshot for to_date - 1 (most recent closing balance).
    All-sites views have no chain and open at 0.0.
    """
    if quarry_id is None:
        return 0.0
    if from_date == to_date:
        return get_opening_balance(quarry_id, from_date)
    return get_opening_balance(quarry_id, to_date)


def upsert_snapshot(quarry_id: int, day: date, closing_balance: float, *, notes: str | None = None) -> DailyBalanceSnapshot:
    """
    Create or overwrite the snapshot for (quarry_id, day) and commit.

    The same inputs always recompute the same balance, so last writer wins
    is safe once writers for one key are serialized.
    """
    stamp = to_date_stamp(day)

    def _write() -> DailyBalanceSnapshot:
        query = db.session.query(DailyBalanceSnapshot).filter(
            DailyBalanceSnapshot.quarry_id == quarry_id,
            DailyBalanceSnapshot.date_stamp == stamp,
        )
        snapshot = lock_for_update(query).first()
        if snapshot is None:
            snapshot = DailyBalanceSnapshot(quarry_id=quarry_id, snapshot_date=day)
            db.session.add(snapshot)
        snapshot.closing_balance = float(closing_balance)
        if notes is not None:
            snapshot.notes = notes
        db.session.commit()
        return snapshot

    with keyed_lock(("balance_snapshot", quarry_id, stamp)):
        snapshot = run_with_retry(_write)

    current_app.logger.info(
        "Balance snapshot quarry=%s date=%s closing_balance=%.2f",
        quarry_id, day.isoformat(), snapshot.closing_balance,
    )
    return snapshot
