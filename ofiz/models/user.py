from flask_login import UserMixin

from ofiz.extensions import db
from ofiz.models.base import PKType, TimestampMixin

USER_ROLES = ("client", "master", "business", "admin")


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    role = db.Column(db.String(24), nullable=False, index=True)
    locale = db.Column(db.String(8), nullable=False, default="es")
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)

    client_bookings = db.relationship(
        "Booking", back_populates="client", lazy="dynamic", foreign_keys="Booking.client_id"
    )
    master_bookings = db.relationship(
        "Booking", back_populates="master", lazy="dynamic", foreign_keys="Booking.master_id"
    )
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")
    credits = db.relationship("ReferralCredit", back_populates="user", lazy="dynamic")

    @property
    def is_active(self):
        return bool(self.is_active_user)
