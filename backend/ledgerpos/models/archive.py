from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class ArchiveRecord(db.Model):
    """Pre-delete snapshot of a soft-deleted ledger record."""
    __tablename__ = "archive_records"
    __table_args__ = (
        db.Index("ix_archive_records_item", "item_type", "item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_type = db.Column(db.String(32), nullable=False)
    item_id = db.Column(db.Integer, nullable=False)
    original_data = db.Column(db.JSON, nullable=False)

    deleted_by_user_id = db.Column(db.Integer, nullable=True)
    deleter_name = db.Column(db.String(255), nullable=True)
    reason = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_type": self.item_type,
            "item_id": self.item_id,
            "original_data": self.original_data,
            "deleted_by_user_id": self.deleted_by_user_id,
            "deleter_name": self.deleter_name,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
