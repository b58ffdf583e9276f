from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SoftDeleteMixin:
    """
    Soft-delete columns shared by every ledger record.

    Ledger rows are never hard-deleted in normal operation. Deleting flips
    is_deleted and stamps who/when/why; a snapshot goes to the archive sink.
    """
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deletion_reason = db.Column(db.String(255), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, nullable=True)

    def soft_delete_dict(self) -> dict:
        return {
            "is_deleted": self.is_deleted,
            "deletion_reason": self.deletion_reason,
            "deleted_at": to_utc_z(self.deleted_at),
            "deleted_by_user_id": self.deleted_by_user_id,
        }
