from decimal import Decimal, InvalidOperation

from flask import current_app

from ofiz.errors import AppError
from ofiz.extensions import cache, db
from ofiz.models import PlatformSetting

TRANSACTION_DOMAINS = ("booking", "marketplace_order", "business_contract")


class PlatformService:
    @staticmethod
    @cache.memoize(timeout=300)
    def get_setting(key, default=None):
        setting = db.session.get(PlatformSetting, key)
        if not setting:
            return default
        return setting.value

    @staticmethod
    def get_decimal(key, default):
        raw = PlatformService.get_setting(key, str(default))
        try:
            return Decimal(str(raw))
        except (InvalidOperation, ValueError):
            current_app.logger.warning("Platform setting %s has a non-numeric value %r", key, raw)
            return Decimal(str(default))

    @staticmethod
    def set_setting(key, value, updated_by=None):
        setting = db.session.get(PlatformSetting, key)
        if setting:
            setting.value = str(value)
            setting.updated_by = updated_by
        else:
            setting = PlatformSetting(key=key, value=str(value), updated_by=updated_by)
            db.session.add(setting)
        db.session.commit()
        cache.delete_memoized(PlatformService.get_setting)
        return setting

    @staticmethod
    def commission_pct(domain="booking"):
        """Commission percentage for a transaction domain; settings override config."""
        rates = current_app.config["COMMISSION_RATES"]
        if domain not in rates:
            raise AppError(f"Unknown transaction domain: {domain!r}.", 400)
        return PlatformService.get_decimal(f"commission_pct.{domain}", rates[domain])
