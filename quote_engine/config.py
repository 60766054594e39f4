from pydantic import BaseModel
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./quotes.db"
    COMPANY_NAME: str = "Planned Furniture Studio"
    LOG_LEVEL: str = "INFO"

    # Pricing defaults, a store_settings row overrides these when present
    MARKUP_DEFAULT: float = 0.0  # percent applied to imported cost
    INTEREST_RATE_MONTHLY: float = 0.0  # percent per month, used for present value
    MAX_DISCOUNT_PCT: float = 100.0
    MAX_REFERRAL_PCT: float = 90.0  # referral uplift is unstable close to 100%
    BALANCE_TOLERANCE: float = 1.00  # one currency unit
    SCHEDULE_INTERVAL_DAYS: int = 30

    # Auth: tokens are issued by the identity provider, we only verify them
    JWT_SECRET: str = ""  # REQUIRED in production, fail loudly if missing at auth time
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_EXPIRE_MINUTES: int = 15

    class Config:
        env_file = ".env"


settings = Settings()


class PricingConfig(BaseModel):
    """
    Read-only pricing snapshot taken when a pipeline run starts.

    Every pricing and present-value call receives one of these explicitly;
    nothing downstream reads `settings` directly.
    """

    markup_percent: float = 0.0
    interest_rate_monthly: float = 0.0
    max_discount_percent: float = 100.0
    max_referral_percent: float = 90.0
    balance_tolerance: float = 1.00
    schedule_interval_days: int = 30

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, source: Settings = None, overrides: dict = None) -> "PricingConfig":
        """Snapshot env settings, with per-store overrides (None values ignored)."""
        source = source or settings
        values = {
            "markup_percent": source.MARKUP_DEFAULT,
            "interest_rate_monthly": source.INTEREST_RATE_MONTHLY,
            "max_discount_percent": source.MAX_DISCOUNT_PCT,
            "max_referral_percent": source.MAX_REFERRAL_PCT,
            "balance_tolerance": source.BALANCE_TOLERANCE,
            "schedule_interval_days": source.SCHEDULE_INTERVAL_DAYS,
        }
        for key, value in (overrides or {}).items():
            if key in values and value is not None:
                values[key] = value
        return cls(**values)
