from ofiz.extensions import db
from ofiz.models.base import Money, PKType, TimestampMixin

QUOTATION_STATUSES = ("pending", "accepted", "rejected", "expired")


class Quotation(TimestampMixin, db.Model):
    __tablename__ = "quotations"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    conversation_id = db.Column(
        PKType, db.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    master_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(180), nullable=False)
    description = db.Column(db.Text, nullable=True)
    items = db.Column(db.JSON, nullable=False, default=list)
    subtotal = db.Column(Money, nullable=False)
    discount = db.Column(Money, nullable=False, default=0)
    total = db.Column(Money, nullable=False)
    valid_until = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "booking_id": self.booking_id,
            "title": self.title,
            "description": self.description,
            "items": self.items,
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "total": str(self.total),
            "valid_until": self.valid_until.isoformat(),
            "status": self.status,
        }
