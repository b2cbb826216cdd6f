import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _get_bool(env_name: str, default: bool = False) -> bool:
    val = os.getenv(env_name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class Settings:
    # App
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 5000
    APP_ENV: str = "development"
    APP_VERSION: str = "2.0"
    LOG_LEVEL: str = "INFO"

    # Database (SQLite file by default)
    DB_URL: str = "sqlite+aiosqlite:///market.db"
    DB_ECHO: bool = False

    # Redis (optional, order status feed)
    REDIS_URL: str = ""
    ORDER_EVENTS_CHANNEL: str = "order-updates"

    # ZiniPay
    ZINIPAY_API_KEY: str = ""
    ZINIPAY_API_URL: str = "https://api.zinipay.com/v1/payment"
    ZINIPAY_WEBHOOK_SECRET: str = ""
    ZINIPAY_TIMEOUT: float = 30.0

    # Redirect construction
    FRONTEND_URL: str = "http://localhost:5173"
    BACKEND_URL: str = "http://localhost:5000"

    # Placeholder used when the buyer gave no phone number
    DEFAULT_CONTACT_PHONE: str = "01700000000"

    @property
    def is_dev(self) -> bool:
        return self.APP_ENV != "production"

    @property
    def redirect_url(self) -> str:
        return f"{self.FRONTEND_URL.rstrip('/')}/orders?payment=success"

    @property
    def cancel_url(self) -> str:
        return f"{self.FRONTEND_URL.rstrip('/')}/orders?payment=cancelled"

    @property
    def webhook_url(self) -> str:
        return f"{self.BACKEND_URL.rstrip('/')}/api/payment/webhook"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and a local .env file)."""
        load_dotenv()
        return cls(
            APP_HOST=os.getenv("APP_HOST", cls.APP_HOST),
            APP_PORT=int(os.getenv("APP_PORT", os.getenv("PORT", str(cls.APP_PORT)))),
            APP_ENV=os.getenv("APP_ENV", os.getenv("NODE_ENV", cls.APP_ENV)),
            LOG_LEVEL=os.getenv("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            DB_URL=os.getenv("DB_URL", cls.DB_URL),
            DB_ECHO=_get_bool("DB_ECHO", cls.DB_ECHO),
            REDIS_URL=os.getenv("REDIS_URL", cls.REDIS_URL),
            ORDER_EVENTS_CHANNEL=os.getenv("ORDER_EVENTS_CHANNEL", cls.ORDER_EVENTS_CHANNEL),
            ZINIPAY_API_KEY=os.getenv("ZINIPAY_API_KEY", cls.ZINIPAY_API_KEY),
            ZINIPAY_API_URL=os.getenv("ZINIPAY_API_URL", cls.ZINIPAY_API_URL).rstrip("/"),
            ZINIPAY_WEBHOOK_SECRET=os.getenv("ZINIPAY_WEBHOOK_SECRET", cls.ZINIPAY_WEBHOOK_SECRET),
            ZINIPAY_TIMEOUT=float(os.getenv("ZINIPAY_TIMEOUT", str(cls.ZINIPAY_TIMEOUT))),
            FRONTEND_URL=os.getenv("FRONTEND_URL", cls.FRONTEND_URL),
            BACKEND_URL=os.getenv("BACKEND_URL", cls.BACKEND_URL),
            DEFAULT_CONTACT_PHONE=os.getenv("DEFAULT_CONTACT_PHONE", cls.DEFAULT_CONTACT_PHONE),
        )
