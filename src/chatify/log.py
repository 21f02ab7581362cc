"""structlog setup.

Learn: Modules just call structlog.get_logger() and log an event name plus
key/value pairs ("presence.registered", user_id=...). This function decides
how those lines look: colored console output in development, one JSON
object per line everywhere else. merge_contextvars pulls in whatever the
request middleware bound (request_id, method, path).
"""

import logging

import structlog


def configure_logging(environment: str = "development", debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if environment == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
