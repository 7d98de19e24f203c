from ofiz.errors import NotFound, OwnershipViolation
from ofiz.extensions import db
from ofiz.models import Booking, Conversation, Message


class ChatService:
    @staticmethod
    def can_access_booking_chat(booking, user):
        return user.role == "admin" or user.id in {booking.client_id, booking.master_id}

    @staticmethod
    def conversation_for_booking(booking):
        conversation = Conversation.query.filter_by(booking_id=booking.id).first()
        if conversation:
            return conversation
        conversation = Conversation(client_id=booking.client_id, master_id=booking.master_id, booking_id=booking.id)
        db.session.add(conversation)
        db.session.flush()
        return conversation

    @staticmethod
    def post_system_message(booking, sender_id, content):
        conversation = ChatService.conversation_for_booking(booking)
        row = Message(conversation_id=conversation.id, sender_id=sender_id, content=content, is_system=True)
        db.session.add(row)
        db.session.flush()
        return row

    @staticmethod
    def list_messages(booking_id, user):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise NotFound("Booking not found.")
        if not ChatService.can_access_booking_chat(booking, user):
            raise OwnershipViolation("You are not a party to this booking.")
        conversation = Conversation.query.filter_by(booking_id=booking_id).first()
        if not conversation:
            return []
        return conversation.messages.order_by(Message.created_at.asc(), Message.id.asc()).limit(300).all()
