from ofiz.config import BaseConfig, DevelopmentConfig, ProductionConfig, TestingConfig, config_by_env

__all__ = [
    "BaseConfig",
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",
    "config_by_env",
]
