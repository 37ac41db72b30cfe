import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

import announcements
import auth
import banners
import cart
import contact
import payment
import products
import uploads
import users
import wishlist
from config import Settings
from database import connect, ensure_indexes
from errors import install_error_handlers
from gateway import RazorpayGateway
from guards import CaptchaVerifier, FixedWindowRateLimiter
from mailer import Mailer, Notifier
from storage import ImageStorage

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-Requested-With", "x-api-key", "X-API-KEY"]


def configure_logging(level: str):
    logging.basicConfig(level=level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def check_settings(settings: Settings):
    if settings.is_production and not settings.hcaptcha_secret:
        raise RuntimeError("HCAPTCHA_SECRET is required in production environment")
    if settings.is_production and settings.jwt_secret == Settings().jwt_secret:
        logger.warning("JWT_SECRET is not set, using the development default")


def create_app(settings=None, db=None, mailer=None, gateway=None, captcha=None, storage=None) -> FastAPI:
    settings = settings or Settings.from_env()
    check_settings(settings)

    client = None
    if db is None:
        client, db = connect(settings.database_url, settings.database_name)
    mailer = mailer or Mailer(
        settings.smtp_host, settings.smtp_port, settings.smtp_user, settings.smtp_pass, settings.mail_from
    )
    gateway = gateway or RazorpayGateway(
        settings.razorpay_key_id, settings.razorpay_key_secret, settings.razorpay_api_url
    )
    captcha = captcha or CaptchaVerifier(settings.hcaptcha_secret, settings.hcaptcha_verify_url)
    storage = storage or ImageStorage(
        settings.cloudinary_cloud_name, settings.cloudinary_api_key, settings.cloudinary_api_secret
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if db is not None:
            ensure_indexes(db)
        if settings.smtp_user:
            mailer.verify()
        yield
        gateway.close()
        captcha.close()
        storage.close()
        if client is not None:
            client.close()

    app = FastAPI(title="Sumansi Storefront API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.mailer = mailer
    app.state.notifier = Notifier(mailer, db)
    app.state.gateway = gateway
    app.state.captcha = captcha
    app.state.storage = storage
    app.state.limiters = {
        "signup": FixedWindowRateLimiter(settings.signup_rate_limit, settings.rate_limit_window),
        "login": FixedWindowRateLimiter(settings.login_rate_limit, settings.rate_limit_window),
        "payment": FixedWindowRateLimiter(settings.payment_rate_limit, settings.rate_limit_window),
    }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )
    install_error_handlers(app)

    for module in (auth, users, cart, wishlist, products, payment, announcements, uploads, contact):
        app.include_router(module.router)
    app.include_router(banners.router)
    app.include_router(banners.admin)

    # ----------------------- Health -----------------------
    @app.get("/")
    def root():
        return {"message": "API is running..."}

    @app.get("/test")
    def test_database(request: Request):
        db = request.app.state.db
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
            "database_name": "✅ Set" if settings.database_name else "❌ Not Set",
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            if db is not None:
                response["collections"] = db.list_collection_names()[:10]
                response["database"] = "✅ Connected & Working"
                response["connection_status"] = "Connected"
        except Exception as e:
            response["database"] = f"❌ Error: {str(e)[:80]}"
        return response

    return app


configure_logging(os.getenv("LOG_LEVEL", "INFO"))
app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
