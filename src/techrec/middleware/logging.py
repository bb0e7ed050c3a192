"""Structured logging for the gamification service.

The façade and routers log through structlog; the engine services use plain
``logging.getLogger(__name__)``. Both end up on one handler on the
``techrec`` logger, rendered by ``structlog.stdlib.ProcessorFormatter`` so a
level-up logged by ``xp_service`` and the request that caused it share the
same request id, service name and output format.
"""

import logging

import structlog

from techrec.config import Settings

HANDLER_NAME = "techrec"

# Loggers that are chatty at INFO and say nothing useful about XP or points.
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio")


def service_context(settings: Settings) -> structlog.types.Processor:
    """Stamp every event with the service identity."""

    def add_service_fields(
        logger: object, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", settings.service_name)
        event_dict.setdefault("version", settings.app_version)
        event_dict.setdefault("env", settings.environment)
        return event_dict

    return add_service_fields


def _shared_processors(settings: Settings) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        service_context(settings),
    ]


def setup_logging(settings: Settings) -> None:
    """Configure structlog and route engine stdlib logs through the same renderer."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    shared = _shared_processors(settings)

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    ))

    app_logger = logging.getLogger("techrec")
    # setup_logging runs once per create_app; tests build many apps.
    for existing in [h for h in app_logger.handlers if h.get_name() == HANDLER_NAME]:
        app_logger.removeHandler(existing)
    app_logger.addHandler(handler)
    app_logger.setLevel(settings.log_level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug and settings.log_sql else logging.WARNING
    )
