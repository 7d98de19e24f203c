from ofiz.models.booking import Booking
from ofiz.models.conversation import Conversation, Message
from ofiz.models.notification import Notification
from ofiz.models.payment import Commission, Payment
from ofiz.models.platform_setting import PlatformSetting
from ofiz.models.quotation import Quotation
from ofiz.models.referral_credit import ReferralCredit
from ofiz.models.user import User

__all__ = [
    "User",
    "Booking",
    "Conversation",
    "Message",
    "Notification",
    "Payment",
    "Commission",
    "ReferralCredit",
    "Quotation",
    "PlatformSetting",
]
