# Overview: Soft-delete of ledger records with snapshots sent to the archive sink.

"""
Soft-Delete and Archival

One pattern for every ledger record that can be deleted:
1. the caller validates authorization and runs inside run_atomic()
2. soft_delete() flips the flag and stamps actor/time/reason
3. the pre-delete snapshot goes to the archive sink in the same unit

The sink is pluggable through app.config["ARCHIVE_SINK"]. The default
writes ArchiveRecord rows on the current session, so the archive copy
commits or rolls back together with the delete.
"""

from __future__ import annotations

from flask import current_app

from ..errors import ValidationFailed
from ..extensions import db
from ..identity import Actor
from ..models import ArchiveRecord
from ..time_utils import utcnow


class DatabaseArchiveSink:
    """Writes snapshots to the archive_records table."""

    def archive(self, *, item_type: str, item_id: int, snapshot: dict, actor: Actor, reason: str) -> ArchiveRecord:
        record = ArchiveRecord(
            item_type=item_type,
            item_id=item_id,
            original_data=snapshot,
            deleted_by_user_id=actor.id,
            deleter_name=actor.username,
            reason=reason,
            created_at=utcnow(),
        )
        db.session.add(record)
        return record


def get_archive_sink():
    return current_app.config.get("ARCHIVE_SINK") or DatabaseArchiveSink()


def soft_delete(record, *, item_type: str, actor: Actor, reason: str, snapshot: dict | None = None):
    """
    Mark record deleted and hand its snapshot to the archive sink.

    Does not commit. Raises ValidationFailed for a missing reason or a
    record that is already deleted.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A deletion reason is required")
    if record.is_deleted:
        raise ValidationFailed(
            f"{item_type} {record.id} is already deleted",
            details={"item_type": item_type, "item_id": record.id},
        )

    if snapshot is None:
        snapshot = record.to_dict()

    record.is_deleted = True
    record.deletion_reason = reason
    record.deleted_at = utcnow()
    record.deleted_by_user_id = actor.id

    get_archive_sink().archive(
        item_type=item_type,
        item_id=record.id,
        snapshot=snapshot,
        actor=actor,
        reason=reason,
    )
    return record


def list_archive(item_type: str | None = None, limit: int = 100) -> list[ArchiveRecord]:
    query = db.session.query(ArchiveRecord)
    if item_type:
        query = query.filter_by(item_type=item_type)
    return query.order_by(ArchiveRecord.created_at.desc(), ArchiveRecord.id.desc()).limit(limit).all()
