import logging

import pytest

from chefwell.core.config import PLACEHOLDER_SECRET, Settings
from chefwell.core.errors import FatalStartupError
from chefwell.core.logging_config import RedactingFilter, sanitize
from chefwell.main import create_app

STRONG_SECRET = "s" * 48


def test_dev_accepts_placeholder_secret():
    Settings(env="dev", secret_key=PLACEHOLDER_SECRET).check_startup()


def test_missing_secret_is_fatal_everywhere():
    with pytest.raises(FatalStartupError):
        Settings(env="dev", secret_key="").check_startup()


@pytest.mark.parametrize("secret", [PLACEHOLDER_SECRET, "too-short"])
def test_production_rejects_weak_secrets(secret):
    with pytest.raises(FatalStartupError):
        Settings(env="production", secret_key=secret, backend_cors_origins="https://pos.example.com").check_startup()


def test_production_requires_cors_origins():
    with pytest.raises(FatalStartupError):
        Settings(env="production", secret_key=STRONG_SECRET, backend_cors_origins=" , ").check_startup()


def test_production_with_sound_config_starts():
    settings = Settings(env="production", secret_key=STRONG_SECRET, backend_cors_origins="https://a.com, https://b.com")
    settings.check_startup()
    assert settings.cors_origins == ["https://a.com", "https://b.com"]


def test_production_refuses_sqlite():
    settings = Settings(
        env="production",
        secret_key=STRONG_SECRET,
        backend_cors_origins="https://pos.example.com",
        database_url="sqlite:///./chefwell.db",
    )
    with pytest.raises(FatalStartupError):
        settings.check_startup()
    Settings(env="test", database_url="sqlite://").check_startup()


def test_create_app_refuses_insecure_config():
    with pytest.raises(FatalStartupError):
        create_app(Settings(env="production", secret_key=PLACEHOLDER_SECRET))


def test_sanitize_masks_nested_secrets():
    data = {"user": "ana", "password": "hunter2", "nested": [{"api_token": "abc"}]}
    assert sanitize(data) == {"user": "ana", "password": "[REDACTED]", "nested": [{"api_token": "[REDACTED]"}]}


def test_redacting_filter_masks_key_value_pairs():
    record = logging.LogRecord(
        "chefwell", logging.INFO, __file__, 1, "connecting with %s", ("redis_url=redis://:pw@cache:6379",), None
    )
    RedactingFilter().filter(record)
    assert record.getMessage() == "connecting with redis_url=[REDACTED]"


def test_redacting_filter_leaves_plain_messages_alone():
    record = logging.LogRecord("chefwell", logging.INFO, __file__, 1, "tab %s closed", (7,), None)
    RedactingFilter().filter(record)
    assert record.getMessage() == "tab 7 closed"
    assert record.args == (7,)


def test_redacting_filter_masks_extra_fields():
    logger = logging.getLogger("chefwell.tests.redaction")
    record = logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, "tenant provisioned", (), None,
        extra={"secret_key": "abc", "payload": {"password": "pw", "slug": "acme"}},
    )
    RedactingFilter().filter(record)
    assert record.secret_key == "[REDACTED]"
    assert record.payload == {"password": "[REDACTED]", "slug": "acme"}
