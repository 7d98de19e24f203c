import logging
from decimal import Decimal

from sqlalchemy import func, or_, update

from ofiz.errors import Conflict
from ofiz.extensions import db
from ofiz.models import ReferralCredit
from ofiz.services.settlement import money

logger = logging.getLogger(__name__)


class CreditService:
    @staticmethod
    def available_balance(user_id):
        total = (
            db.session.query(func.coalesce(func.sum(ReferralCredit.amount), 0))
            .filter(ReferralCredit.user_id == user_id, ReferralCredit.used.is_(False))
            .scalar()
        )
        return money(total)

    @staticmethod
    def grant(user_id, amount):
        credit = ReferralCredit(user_id=user_id, amount=money(amount), used=False)
        db.session.add(credit)
        db.session.commit()
        return credit

    @staticmethod
    def reserve(user_id, booking_id, amount):
        """Mark unused credits as used in ``booking_id`` until ``amount`` is covered.

        The caller commits. A credit larger than what is still needed is split so
        the remainder stays available.
        """
        needed = money(amount)
        if needed <= 0:
            return Decimal("0.00")

        candidates = (
            ReferralCredit.query.filter_by(user_id=user_id, used=False)
            .order_by(ReferralCredit.created_at.asc(), ReferralCredit.id.asc())
            .with_for_update()
            .all()
        )
        chosen = []
        covered = Decimal("0.00")
        for credit in candidates:
            if covered >= needed:
                break
            chosen.append(credit)
            covered += money(credit.amount)
        if covered < needed:
            raise Conflict("Not enough credits available.")

        result = db.session.execute(
            update(ReferralCredit)
            .where(ReferralCredit.id.in_([credit.id for credit in chosen]))
            .where(ReferralCredit.used.is_(False))
            .values(used=True, used_in_booking_id=booking_id)
        )
        if result.rowcount != len(chosen):
            db.session.rollback()
            logger.warning("Credit reservation race for user %s on booking %s", user_id, booking_id)
            raise Conflict("Credits changed while the payment was being prepared. Try again.")

        overshoot = covered - needed
        last = chosen[-1]
        if overshoot > 0:
            last.amount = money(last.amount) - overshoot
            db.session.add(ReferralCredit(user_id=user_id, amount=overshoot, used=False))
        db.session.flush()
        logger.info("Reserved %s in credits for user %s on booking %s", needed, user_id, booking_id)
        return needed

    @staticmethod
    def attach(user_id, booking_id, payment_id):
        """Tie credits reserved for a booking attempt to the payment that recorded it."""
        db.session.execute(
            update(ReferralCredit)
            .where(ReferralCredit.user_id == user_id)
            .where(ReferralCredit.used_in_booking_id == booking_id)
            .where(ReferralCredit.used.is_(True))
            .where(ReferralCredit.used_in_payment_id.is_(None))
            .values(used_in_payment_id=payment_id)
        )

    @staticmethod
    def release(user_id, booking_id, payment_id=None):
        """Compensation for a failed payment attempt: return the booking's credits to the user.

        Credits already settled by another payment of the same booking stay used.
        """
        attempt = ReferralCredit.used_in_payment_id.is_(None)
        if payment_id is not None:
            attempt = or_(attempt, ReferralCredit.used_in_payment_id == payment_id)
        result = db.session.execute(
            update(ReferralCredit)
            .where(ReferralCredit.user_id == user_id)
            .where(ReferralCredit.used_in_booking_id == booking_id)
            .where(ReferralCredit.used.is_(True))
            .where(attempt)
            .values(used=False, used_in_booking_id=None, used_in_payment_id=None)
        )
        if result.rowcount:
            logger.info("Released %s credit(s) of user %s from booking %s", result.rowcount, user_id, booking_id)
        return result.rowcount
