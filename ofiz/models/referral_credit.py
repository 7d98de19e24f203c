from ofiz.extensions import db
from ofiz.models.base import Money, PKType, TimestampMixin


class ReferralCredit(TimestampMixin, db.Model):
    __tablename__ = "referral_credits"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(Money, nullable=False)
    used = db.Column(db.Boolean, nullable=False, default=False, index=True)
    used_in_booking_id = db.Column(
        PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Set once the payment the credit was reserved for has been recorded.
    used_in_payment_id = db.Column(PKType, db.ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)

    user = db.relationship("User", back_populates="credits")

    __table_args__ = (db.CheckConstraint("amount > 0", name="ck_referral_credit_amount_positive"),)
