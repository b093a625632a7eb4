from __future__ import annotations

from ..extensions import db
from phoneshop.time_utils import utcnow, to_utc_z


class SoftDeleteMixin:
    """
    Logical deletion plus timestamps shared by every business entity.

    Rows are never physically removed: deletion flips is_active and stamps
    deleted_at so history (payments, sales, repairs) stays auditable.
    """
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def soft_delete(self) -> None:
        self.is_active = False
        self.deleted_at = utcnow()

    def _audit_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


def money_str(value) -> str | None:
    """Decimals go over the wire as strings so no client parses them as floats."""
    if value is None:
        return None
    return f"{value:.2f}"
