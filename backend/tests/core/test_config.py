from decimal import Decimal

from pydantic import ValidationError
import pytest

from fitpass.core.config import Settings, settings


def test_test_environment_settings():
    assert settings.database_url.startswith("sqlite")
    assert settings.stripe_configured is False
    assert settings.payout_max_transfer_attempts == 3


def test_default_payout_rates():
    config = Settings()
    assert config.payout_rate_one_gym == Decimal("550")
    assert config.payout_rate_two_gyms == Decimal("450")
    assert config.payout_rate_three_plus == Decimal("350")
    assert config.credit_visit_payout == Decimal("90")


def test_rates_load_from_environment(monkeypatch):
    monkeypatch.setenv("PAYOUT_RATE_ONE_GYM", "600")
    monkeypatch.setenv("CREDIT_VISIT_PAYOUT", "95.50")
    config = Settings()
    assert config.payout_rate_one_gym == Decimal("600")
    assert config.credit_visit_payout == Decimal("95.50")


def test_inverted_tiers_refuse_to_load(monkeypatch):
    monkeypatch.setenv("PAYOUT_RATE_TWO_GYMS", "700")
    with pytest.raises(ValidationError, match="one_gym >= two_gyms >= three_plus"):
        Settings()


def test_negative_rate_refuses_to_load(monkeypatch):
    monkeypatch.setenv("CREDIT_VISIT_PAYOUT", "-5")
    with pytest.raises(ValidationError, match="credit_visit_payout cannot be negative"):
        Settings()


def test_currency_is_normalized(monkeypatch):
    monkeypatch.setenv("STRIPE_CURRENCY", " SEK ")
    assert Settings().stripe_currency == "sek"
    monkeypatch.setenv("STRIPE_CURRENCY", "kronor")
    with pytest.raises(ValidationError):
        Settings()


def test_broker_url_falls_back_to_redis(monkeypatch):
    monkeypatch.delenv("CELERY_BROKER_URL", raising=False)
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/2")
    assert Settings().broker_url == "redis://cache:6379/2"


def test_stripe_configured_with_key(monkeypatch):
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    config = Settings()
    assert config.stripe_configured is True
    assert "sk_test_123" not in repr(config)
