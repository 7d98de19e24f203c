from ofiz.services.auth_service import AuthService
from ofiz.services.booking_service import BookingService
from ofiz.services.chat_service import ChatService
from ofiz.services.credit_service import CreditService
from ofiz.services.notification_service import NotificationService
from ofiz.services.payment_service import PaymentService
from ofiz.services.platform_service import PlatformService
from ofiz.services.quotation_service import QuotationService

__all__ = [
    "AuthService",
    "BookingService",
    "ChatService",
    "CreditService",
    "NotificationService",
    "PaymentService",
    "PlatformService",
    "QuotationService",
]
