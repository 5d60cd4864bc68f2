import logging

from storefront.core import logging_config
from storefront.core.config import settings
from storefront.core.logging_config import add_service_context, configure_logging, redact_secrets


def test_service_context_is_added():
    event = add_service_context(None, "info", {"event": "order_created"})

    assert event["service"] == settings.BUSINESS_NAME
    assert event["environment"] == settings.ENVIRONMENT


def test_secrets_are_redacted():
    event = redact_secrets(
        None,
        "warning",
        {
            "event": "payment_signature_mismatch",
            "razorpay_signature": "abc123",
            "password": "",
            "payment_id": "pay_test_1",
        },
    )

    assert event["razorpay_signature"] == "***"
    assert event["password"] == ""
    assert event["payment_id"] == "pay_test_1"


def test_client_libraries_are_quieted(monkeypatch):
    monkeypatch.setattr(settings, "DEBUG", False)
    monkeypatch.setattr(settings, "LOG_LEVEL", "info")

    configure_logging()

    for name in logging_config.NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING
