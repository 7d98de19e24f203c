from ofiz.extensions import db
from ofiz.models.base import PKType, TimestampMixin


class Conversation(TimestampMixin, db.Model):
    __tablename__ = "conversations"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    client_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    master_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True, unique=True)

    booking = db.relationship("Booking", back_populates="conversation")
    messages = db.relationship(
        "Message", back_populates="conversation", lazy="dynamic", cascade="all, delete-orphan"
    )


class Message(TimestampMixin, db.Model):
    __tablename__ = "messages"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    conversation_id = db.Column(
        PKType, db.ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    is_system = db.Column(db.Boolean, nullable=False, default=False)

    conversation = db.relationship("Conversation", back_populates="messages")
    sender = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "is_system": self.is_system,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
