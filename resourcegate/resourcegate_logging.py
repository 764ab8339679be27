import contextvars
import logging
import sys
from configparser import RawConfigParser
from contextlib import contextmanager
from logging import Logger
from logging import config as logging_config
from typing import TYPE_CHECKING, Any, Callable, Generator, Optional, Tuple

from resourcegate import config

if TYPE_CHECKING:
    from logging import LogRecord

# Applied on import, before the "logging" component configuration (if any) is read
DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "root": {"level": "INFO", "handlers": ["console"]},
    "loggers": {
        "resourcegate": {"level": "INFO"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "formatters": {
        "default": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}

# Tornado loggers replaced by the request logging of resourcegate.web
SILENCED_LOGGERS = ("tornado.general", "tornado.access", "tornado.application")

try:
    logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)
except (KeyError, ValueError):
    logging.basicConfig(format="%(asctime)s %(name)-12s %(levelname)-8s %(message)s", level=logging.INFO)


request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id")

HANDLER_FACTORIES: dict[str, Callable[[Tuple[Any, ...]], logging.Handler]] = {
    "StreamHandler": lambda args: logging.StreamHandler(args[0] if args else sys.stdout),
    "FileHandler": lambda args: logging.FileHandler(args[0]),
}


def annotate_logger(logger: Logger) -> None:
    """Makes the request ID available to the formatters of every handler of ``logger``."""
    request_id_filter = RequestIDFilter()

    for handler in logger.handlers:
        handler.addFilter(request_id_filter)


def _sections(raw_config: RawConfigParser, prefix: str) -> Generator[Tuple[str, dict[str, str]], None, None]:
    for section in raw_config.sections():
        if section.startswith(prefix):
            yield section[len(prefix) :], dict(raw_config.items(section))


def _names(value: str) -> list[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def _build_handler(options: dict[str, str], formatters: dict[str, logging.Formatter]) -> logging.Handler:
    class_name = options.get("class", "logging.StreamHandler").rsplit(".", 1)[-1]
    factory = HANDLER_FACTORIES.get(class_name)

    if not factory:
        raise ValueError(f"Unsupported handler class: {options.get('class')}")

    handler = factory(_parse_args(options.get("args", "()")))
    handler.setLevel(options.get("level", "NOTSET").upper())

    formatter = formatters.get(options.get("formatter", ""))
    if formatter:
        handler.setFormatter(formatter)

    return handler


def _apply_logger_options(
    logger: Logger, options: dict[str, str], handlers: dict[str, logging.Handler], root: bool = False
) -> None:
    logger.setLevel(options.get("level", "NOTSET").upper())
    logger.handlers = [handlers[name] for name in _names(options.get("handlers", "")) if name in handlers]

    if not root:
        logger.propagate = options.get("propagate", "1") == "1"


def _configure_logging_from_raw(raw_config: RawConfigParser) -> None:
    """Configures logging from the ``formatter_*``, ``handler_*`` and ``logger_*`` sections of the "logging"
    component, which use the layout of ``logging.config.fileConfig`` files. Only stream and file handlers are
    supported.

    :raises: :class:`ValueError`: a handler uses an unsupported class or has malformed arguments
    """
    formatters = {
        name: logging.Formatter(options.get("format", "%(message)s"), options.get("datefmt"))
        for name, options in _sections(raw_config, "formatter_")
    }
    handlers = {name: _build_handler(options, formatters) for name, options in _sections(raw_config, "handler_")}

    for name, options in _sections(raw_config, "logger_"):
        if name == "root":
            _apply_logger_options(logging.getLogger(), options, handlers, root=True)
        else:
            _apply_logger_options(logging.getLogger(name), options, handlers)


def _parse_args(args_str: str) -> Tuple[Any, ...]:
    """Parses the ``args`` option of a handler section, e.g. ``(sys.stderr,)`` or ``('/var/log/gate.log',)``."""
    args_str = args_str.strip()

    if args_str in ("()", ""):
        return ()

    if not (args_str.startswith("(") and args_str.endswith(")")):
        raise ValueError(f"Invalid args format: {args_str}")

    streams = {"sys.stdout": sys.stdout, "sys.stderr": sys.stderr}
    return tuple(streams.get(arg, arg.strip("'\"")) for arg in _names(args_str[1:-1]))


@contextmanager
def _safe_logging_configuration() -> Generator[None, None, None]:
    """Restores the handlers, level and propagation of every existing logger if configuring logging fails."""
    loggers = [logging.getLogger()] + [
        logger for logger in logging.Logger.manager.loggerDict.values() if isinstance(logger, Logger)
    ]
    saved = [(logger, list(logger.handlers), logger.level, logger.propagate) for logger in loggers]

    try:
        yield
    except Exception:
        for logger, handlers, level, propagate in saved:
            logger.handlers = handlers
            logger.setLevel(level)
            logger.propagate = propagate
        raise


def _safe_get_config() -> Optional[RawConfigParser]:
    try:
        return config.get_config("logging")
    except Exception:
        return None


def init_logging(loggername: str) -> Logger:
    """Returns the ``resourcegate.<loggername>`` logger, after applying the "logging" component configuration if
    there is one. Configuration errors are logged and leave the previous configuration in place.
    """
    logger = logging.getLogger(f"resourcegate.{loggername}")
    logging_conf = _safe_get_config()

    if logging_conf and logging_conf.sections():
        try:
            with _safe_logging_configuration():
                _configure_logging_from_raw(logging_conf)
        except Exception as e:
            logger.error("Logging configuration error: %s", e)

    for name in SILENCED_LOGGERS:
        logging.getLogger(name).disabled = True

    annotate_logger(logging.getLogger())

    return logger


class RequestIDFilter(logging.Filter):
    """Adds the ID of the request being handled (from ``request_id_var``) to log records, as ``reqid`` and as
    ``reqidf``, which is formatted for inclusion in a log line and empty outside of requests.
    """

    def filter(self, record: "LogRecord") -> bool:
        reqid = request_id_var.get("")

        record.reqid = reqid
        record.reqidf = f"(reqid={reqid})" if reqid else ""

        return True
