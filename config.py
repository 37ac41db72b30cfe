"""
Runtime configuration

All environment-driven values live on a single Settings object. Handlers
receive it through app.state instead of reading os.getenv themselves.
"""
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from fastapi import Request

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str) -> timedelta:
    """Parse "15m", "7d", "12h", "30s" or a plain number of seconds."""
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(amount)})


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class Settings:
    app_env: str = "development"
    log_level: str = "INFO"

    database_url: Optional[str] = None
    database_name: Optional[str] = None

    jwt_secret: str = "devsecret"
    jwt_expiry: timedelta = timedelta(minutes=15)
    jwt_refresh_secret: str = "devrefreshsecret"
    jwt_refresh_expiry: timedelta = timedelta(days=7)

    smtp_host: str = "smtp.hostinger.com"
    smtp_port: int = 465
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    mail_from: str = '"Sumansi" <info@sumansi.in>'
    frontend_url: str = "http://localhost:3000"

    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_api_url: str = "https://api.razorpay.com/v1"

    hcaptcha_secret: Optional[str] = None
    hcaptcha_verify_url: str = "https://hcaptcha.com/siteverify"

    admin_api_key: Optional[str] = None

    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    allowed_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "https://www.sumansi.in"]
    )

    promo_code: str = "FIRSTSUMANSI"
    promo_percent: int = 10
    admin_notify_emails: List[str] = field(default_factory=lambda: ["orders@sumansi.in"])
    contact_email: str = "info@sumansi.in"

    signup_rate_limit: int = 8
    login_rate_limit: int = 15
    payment_rate_limit: int = 100
    rate_limit_window: int = 15 * 60

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.getenv
        defaults = cls()
        return cls(
            app_env=env("APP_ENV") or env("NODE_ENV") or defaults.app_env,
            log_level=env("LOG_LEVEL", defaults.log_level),
            database_url=env("DATABASE_URL"),
            database_name=env("DATABASE_NAME"),
            jwt_secret=env("JWT_SECRET", defaults.jwt_secret),
            jwt_expiry=parse_duration(env("JWT_EXPIRY", "15m")),
            jwt_refresh_secret=env("JWT_REFRESH_SECRET", defaults.jwt_refresh_secret),
            jwt_refresh_expiry=parse_duration(env("JWT_REFRESH_EXPIRY", "7d")),
            smtp_host=env("SMTP_HOST", defaults.smtp_host),
            smtp_port=int(env("SMTP_PORT", defaults.smtp_port)),
            smtp_user=env("SMTP_USER"),
            smtp_pass=env("SMTP_PASS"),
            mail_from=env("MAIL_FROM", defaults.mail_from),
            frontend_url=env("FRONTEND_URL", defaults.frontend_url),
            razorpay_key_id=env("RAZORPAY_KEY_ID"),
            razorpay_key_secret=env("RAZORPAY_KEY_SECRET"),
            razorpay_api_url=env("RAZORPAY_API_URL", defaults.razorpay_api_url),
            hcaptcha_secret=env("HCAPTCHA_SECRET"),
            hcaptcha_verify_url=env("HCAPTCHA_VERIFY_URL", defaults.hcaptcha_verify_url),
            admin_api_key=env("ADMIN_API_KEY"),
            cloudinary_cloud_name=env("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=env("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=env("CLOUDINARY_API_SECRET"),
            allowed_origins=_split(env("ALLOWED_ORIGINS")) or defaults.allowed_origins,
            promo_code=env("PROMO_CODE", defaults.promo_code).strip().upper(),
            promo_percent=int(env("PROMO_PERCENT", defaults.promo_percent)),
            admin_notify_emails=_split(env("ADMIN_NOTIFY_EMAILS")) or defaults.admin_notify_emails,
            contact_email=env("CONTACT_EMAIL", defaults.contact_email),
            signup_rate_limit=int(env("SIGNUP_RATE_LIMIT", defaults.signup_rate_limit)),
            login_rate_limit=int(env("LOGIN_RATE_LIMIT", defaults.login_rate_limit)),
            payment_rate_limit=int(env("PAYMENT_RATE_LIMIT", defaults.payment_rate_limit)),
            rate_limit_window=int(env("RATE_LIMIT_WINDOW", defaults.rate_limit_window)),
        )


def get_settings(request: Request):
    return request.app.state.settings
