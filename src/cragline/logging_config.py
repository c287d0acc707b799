"""Client logging: structlog rendered through the stdlib root logger."""

import logging

import structlog

from cragline.config import Settings
from cragline.session import Session

# SDK loggers that flood INFO with transport chatter
_NOISY_LOGGERS = ("google", "grpc", "urllib3")


def setup_logging(settings: Settings) -> None:
    """Configure structlog. Console output unless ``log_format`` is ``json``."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {settings.log_level}")

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(level=level, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_session(session: Session) -> None:
    """Tag every following log line with the signed-in user, or drop the tag when signed out."""
    if session.is_authenticated:
        structlog.contextvars.bind_contextvars(user_id=session.user_id)
    else:
        structlog.contextvars.unbind_contextvars("user_id")
