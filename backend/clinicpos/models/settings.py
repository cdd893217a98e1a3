from __future__ import annotations

from ..extensions import db
from ..money import money_str
from clinicpos.time_utils import to_utc_z


STORE_SETTINGS_ID = 1


class StoreSettings(db.Model):
    """
    Single-row store-wide settings (id = 1).

    Read once per checkout call; the resolved values are passed down
    explicitly instead of being fetched ad hoc by each component.
    """
    __tablename__ = "store_settings"

    id = db.Column(db.Integer, primary_key=True, default=STORE_SETTINGS_ID)
    store_name = db.Column(db.String(120), nullable=False, default="Danesha Clinic")
    commission_default_percent = db.Column(db.Numeric(5, 2), nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_name": self.store_name,
            "commission_default_percent": money_str(self.commission_default_percent),
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
