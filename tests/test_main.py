import mongomock
import pytest

from config import Settings
from main import create_app


def test_production_without_captcha_secret_refuses_to_start():
    settings = Settings(app_env="production", hcaptcha_secret=None)

    with pytest.raises(RuntimeError, match="HCAPTCHA_SECRET"):
        create_app(settings=settings, db=mongomock.MongoClient()["sumansi_test"])


def test_production_with_captcha_secret_starts():
    settings = Settings(app_env="production", hcaptcha_secret="captcha-secret")

    app = create_app(settings=settings, db=mongomock.MongoClient()["sumansi_test"])

    assert app.state.settings.is_production
