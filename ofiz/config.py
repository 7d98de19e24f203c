import os
from datetime import timedelta


def normalize_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


def _parse_rates(raw: str, default: dict) -> dict:
    """Parse ``key=value;key=value`` pairs, falling back to ``default`` per key."""
    rates = dict(default)
    for item in (raw or "").split(";"):
        if "=" not in item:
            continue
        key, value = item.split("=", 1)
        if key.strip():
            rates[key.strip()] = value.strip()
    return rates


DEFAULT_COMMISSION_RATES = {
    "booking": "5",
    "marketplace_order": "12",
    "business_contract": "5",
}

# Provider fee rates by accreditation timing and payment method.
DEFAULT_PROVIDER_FEE_RATES = {
    "immediate": {
        "debit": "0.025",
        "credit_one": "0.053",
        "credit_installments": "0.0779",
    },
    "delayed21": {
        "debit": "0.019",
        "credit_one": "0.044",
        "credit_installments": "0.0689",
    },
}


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-unsafe-key")
    SQLALCHEMY_DATABASE_URI = normalize_database_url(
        os.getenv("DATABASE_URL", "sqlite:///instance/ofiz.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(os.getenv("CACHE_DEFAULT_TIMEOUT", "120"))
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.getenv("RATELIMIT_DEFAULT", "200 per day;80 per hour")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    AUTH_TOKEN_MAX_AGE = int(os.getenv("AUTH_TOKEN_MAX_AGE", str(int(timedelta(days=7).total_seconds()))))

    COMMISSION_RATES = _parse_rates(os.getenv("COMMISSION_RATES", ""), DEFAULT_COMMISSION_RATES)
    PROVIDER_FEE_RATES = DEFAULT_PROVIDER_FEE_RATES

    MERCADO_PAGO_ACCESS_TOKEN = os.getenv("MERCADO_PAGO_ACCESS_TOKEN")
    MERCADO_PAGO_API_URL = os.getenv("MERCADO_PAGO_API_URL", "https://api.mercadopago.com")
    MERCADO_PAGO_WEBHOOK_SECRET = os.getenv("MERCADO_PAGO_WEBHOOK_SECRET")
    MERCADO_PAGO_NOTIFICATION_URL = os.getenv("MERCADO_PAGO_NOTIFICATION_URL")
    MERCADO_PAGO_TIMEOUT = float(os.getenv("MERCADO_PAGO_TIMEOUT", "30"))
    MERCADO_PAGO_STATEMENT_DESCRIPTOR = os.getenv("MERCADO_PAGO_STATEMENT_DESCRIPTOR", "OFIZ")

    SENTRY_DSN = os.getenv("SENTRY_DSN")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CACHE_TYPE = "NullCache"
    RATELIMIT_ENABLED = False
    MERCADO_PAGO_ACCESS_TOKEN = "TEST-access-token"
    MERCADO_PAGO_WEBHOOK_SECRET = None
    SENTRY_DSN = None


config_by_env = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
