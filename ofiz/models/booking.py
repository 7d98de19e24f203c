from ofiz.extensions import db
from ofiz.models.base import Money, PKType, TimestampMixin

BOOKING_STATUSES = ("pending", "confirmed", "in_progress", "pending_review", "completed", "cancelled")
TERMINAL_STATUSES = frozenset({"completed", "cancelled"})


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    client_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    master_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    total_price = db.Column(Money, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    scheduled_date = db.Column(db.DateTime(timezone=True), nullable=True)
    client_address = db.Column(db.String(255), nullable=True)

    # Who set the current total_price; "master" while a counter-proposal awaits the client.
    proposed_by = db.Column(db.String(16), nullable=False, default="client")
    negotiation_round = db.Column(db.Integer, nullable=False, default=0)

    client_confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    work_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    review_requested_at = db.Column(db.DateTime(timezone=True), nullable=True)
    work_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version = db.Column(db.Integer, nullable=False, default=1)

    client = db.relationship("User", back_populates="client_bookings", foreign_keys=[client_id])
    master = db.relationship("User", back_populates="master_bookings", foreign_keys=[master_id])
    conversation = db.relationship("Conversation", back_populates="booking", uselist=False)
    payments = db.relationship("Payment", back_populates="booking", lazy="dynamic", foreign_keys="Payment.booking_id")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.Index("ix_bookings_client_status", "client_id", "status"),
        db.Index("ix_bookings_master_status", "master_id", "status"),
        db.CheckConstraint("total_price >= 0", name="ck_booking_total_price_non_negative"),
    )

    @property
    def has_counter_proposal(self):
        return self.status == "pending" and self.proposed_by == "master" and self.negotiation_round > 0

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def party_role(self, user_id):
        if user_id == self.client_id:
            return "client"
        if user_id == self.master_id:
            return "master"
        return None

    def counterparty_id(self, user_id):
        return self.master_id if user_id == self.client_id else self.client_id

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "master_id": self.master_id,
            "status": self.status,
            "total_price": str(self.total_price),
            "notes": self.notes,
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "client_address": self.client_address,
            "proposed_by": self.proposed_by,
            "negotiation_round": self.negotiation_round,
            "has_counter_proposal": self.has_counter_proposal,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "client_confirmed_at": self.client_confirmed_at.isoformat() if self.client_confirmed_at else None,
            "work_started_at": self.work_started_at.isoformat() if self.work_started_at else None,
            "review_requested_at": self.review_requested_at.isoformat() if self.review_requested_at else None,
            "work_completed_at": self.work_completed_at.isoformat() if self.work_completed_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
