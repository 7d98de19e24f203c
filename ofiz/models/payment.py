from ofiz.extensions import db
from ofiz.models.base import Money, PKType, TimestampMixin

PAYMENT_STATUSES = ("approved", "pending", "in_process", "rejected")
IN_FLIGHT_STATUSES = frozenset({"pending", "in_process"})


class Payment(TimestampMixin, db.Model):
    __tablename__ = "payments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    master_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    amount = db.Column(Money, nullable=False)
    commission_amount = db.Column(Money, nullable=False)
    master_amount = db.Column(Money, nullable=False)
    price_base = db.Column(Money, nullable=False)
    commission_pct = db.Column(db.Numeric(5, 2), nullable=False)
    provider_fee = db.Column(Money, nullable=False, default=0)
    credits_applied = db.Column(Money, nullable=False, default=0)

    status = db.Column(db.String(24), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(48), nullable=True)
    payment_percentage = db.Column(db.Integer, nullable=False, default=100)
    remaining_amount = db.Column(Money, nullable=False, default=0)
    is_partial_payment = db.Column(db.Boolean, nullable=False, default=False, index=True)
    remaining_payment_id = db.Column(PKType, db.ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)
    installments = db.Column(db.Integer, nullable=False, default=1)
    provider_payment_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    escrow_released_at = db.Column(db.DateTime(timezone=True), nullable=True)
    extra = db.Column("metadata", db.JSON, nullable=True)

    booking = db.relationship("Booking", back_populates="payments", foreign_keys=[booking_id])
    initial_payment = db.relationship("Payment", remote_side=[id], foreign_keys=[remaining_payment_id])
    commission = db.relationship("Commission", back_populates="payment", uselist=False)

    __table_args__ = (
        db.Index("ix_payments_booking_status", "booking_id", "status"),
        # Compared in cents; SQLite keeps NUMERIC values as floats.
        db.CheckConstraint(
            "round((commission_amount + master_amount - amount) * 100) = 0", name="ck_payment_split_adds_up"
        ),
    )

    @property
    def is_remaining_payment(self):
        return self.remaining_payment_id is not None

    @property
    def in_escrow(self):
        return self.status == "approved" and self.escrow_released_at is None

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "amount": str(self.amount),
            "commission_amount": str(self.commission_amount),
            "master_amount": str(self.master_amount),
            "price_base": str(self.price_base),
            "provider_fee": str(self.provider_fee),
            "credits_applied": str(self.credits_applied),
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_percentage": self.payment_percentage,
            "remaining_amount": str(self.remaining_amount),
            "is_partial_payment": self.is_partial_payment,
            "remaining_payment_id": self.remaining_payment_id,
            "provider_payment_id": self.provider_payment_id,
            "escrow_released_at": self.escrow_released_at.isoformat() if self.escrow_released_at else None,
        }


class Commission(TimestampMixin, db.Model):
    __tablename__ = "commissions"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    payment_id = db.Column(PKType, db.ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, unique=True)
    master_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(Money, nullable=False)
    percentage = db.Column(db.Numeric(5, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    payment = db.relationship("Payment", back_populates="commission")
