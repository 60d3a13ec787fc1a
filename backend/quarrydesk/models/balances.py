from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from quarrydesk.time_utils import to_date_stamp, to_iso_date, to_utc_z


class DailyBalanceSnapshot(db.Model):
    """
    End-of-day cash in hand for one quarry.

    WHY: Day N's opening balance is day N-1's closing balance. Keeping the
    chain as an explicit (quarry, day) keyed row makes the dependency visible
    instead of burying it in report generation.

    DESIGN:
    - Exactly one row per (quarry_id, date_stamp)
    - Written only by single-day period metrics runs (upsert, last writer wins)
    - Never edited by users
    """
    __tablename__ = "daily_balance_snapshots"
    __table_args__ = (
        db.UniqueConstraint("quarry_id", "date_stamp", name="uq_daily_balance_quarry_stamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quarry_id = db.Column(db.Integer, db.ForeignKey("quarries.id"), nullable=False, index=True)
    snapshot_date = db.Column(db.Date, nullable=False)
    date_stamp = db.Column(db.String(8), nullable=False, index=True)
    closing_balance = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    quarry = db.relationship("Quarry", backref=db.backref("balance_snapshots", lazy=True))

    @validates("snapshot_date")
    def _stamp_snapshot_date(self, key, value):
        self.date_stamp = to_date_stamp(value)
        return value

    def __repr__(self) -> str:
        return f"<DailyBalanceSnapshot quarry_id={self.quarry_id} date={self.date_stamp} closing={self.closing_balance}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quarry_id": self.quarry_id,
            "snapshot_date": to_iso_date(self.snapshot_date),
            "closing_balance": self.closing_balance,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
