from ofiz.extensions import db
from ofiz.models.base import PKType, TimestampMixin


class PlatformSetting(TimestampMixin, db.Model):
    """Runtime override for a configuration value, e.g. ``commission_pct.booking``."""

    __tablename__ = "platform_settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.String(255), nullable=False)
    updated_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
