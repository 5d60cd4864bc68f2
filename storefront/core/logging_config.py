import logging
import structlog
from storefront.core.config import settings

# Never written to logs as-is
REDACTED_KEYS = {"razorpay_signature", "signature", "password", "token", "authorization"}

# Per-request chatter from the WhatsApp relay and Razorpay clients
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")


def add_service_context(logger, method_name, event_dict):
    event_dict.setdefault("service", settings.BUSINESS_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def redact_secrets(logger, method_name, event_dict):
    for key in event_dict.keys() & REDACTED_KEYS:
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def configure_logging():
    """Configure structured logging for the API and the Celery workers"""

    level = logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Console renderer for development
    renderer = structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            add_service_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
